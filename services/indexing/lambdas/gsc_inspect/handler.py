import os

from aws_lambda_powertools import Logger, Metrics
from aws_lambda_powertools.metrics import MetricUnit

from services.common.api import BadRequest, current_user_id, error, header, json_body, response
from services.common.config import load_local_env
from services.indexing.clients import IndexingApiError, SearchConsoleClient

logger = Logger(service="gsc-inspect")
metrics = Metrics(namespace="IndexPilot", service="gsc-inspect")

load_local_env(os.path.dirname(__file__))


def _client(access_token: str) -> SearchConsoleClient:
    return SearchConsoleClient(access_token)


def summarize(result: dict) -> dict:
    """Collapse an inspectionResult into the fields the dashboard shows."""
    status = result.get("indexStatusResult") or {}
    verdict = status.get("verdict")
    return {
        "isIndexed": verdict == "PASS",
        "coverageState": status.get("coverageState") or "Unknown",
        "rawVerdict": verdict,
    }


@logger.inject_lambda_context
@metrics.log_metrics(capture_cold_start_metric=True)
def handler(event, context):
    user_id = current_user_id(event)
    access_token = header(event, "x-google-access-token")
    if not user_id or not access_token:
        return error(401, "Unauthorized")

    try:
        body = json_body(event)
        url, site_url = body.get("url"), body.get("siteUrl")
        if not url or not site_url:
            raise BadRequest("URL and siteUrl are required")
    except BadRequest as e:
        logger.warning("bad_payload", extra={"error": str(e)})
        return error(400, str(e))

    logger.append_keys(user_id=user_id)
    try:
        result = _client(access_token).inspect(url, site_url)
    except IndexingApiError as e:
        logger.warning("gsc_inspect_failed", extra={"url": url, "error": str(e), "status": e.status})
        metrics.add_metric(name="SearchConsoleError", unit=MetricUnit.Count, value=1)
        return error(502, str(e) or "Failed to inspect URL")

    summary = summarize(result)
    logger.info("gsc_inspected", extra={"url": url, "verdict": summary["rawVerdict"]})
    return response(200, {"success": True, **summary})
