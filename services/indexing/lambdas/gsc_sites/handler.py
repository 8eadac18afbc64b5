import os

from aws_lambda_powertools import Logger, Metrics
from aws_lambda_powertools.metrics import MetricUnit

from services.common.api import current_user_id, error, header, response
from services.common.config import load_local_env
from services.indexing.clients import IndexingApiError, SearchConsoleClient

logger = Logger(service="gsc-sites")
metrics = Metrics(namespace="IndexPilot", service="gsc-sites")

load_local_env(os.path.dirname(__file__))


def _client(access_token: str) -> SearchConsoleClient:
    return SearchConsoleClient(access_token)


@logger.inject_lambda_context
@metrics.log_metrics(capture_cold_start_metric=True)
def handler(event, context):
    user_id = current_user_id(event)
    access_token = header(event, "x-google-access-token")
    if not user_id or not access_token:
        return error(401, "Unauthorized. Please sign in with Google.")

    logger.append_keys(user_id=user_id)
    try:
        sites = _client(access_token).list_sites()
    except IndexingApiError as e:
        logger.warning("gsc_sites_failed", extra={"error": str(e), "status": e.status})
        metrics.add_metric(name="SearchConsoleError", unit=MetricUnit.Count, value=1)
        return error(502, str(e) or "Failed to fetch sites from Google")

    logger.info("gsc_sites_listed", extra={"count": len(sites)})
    return response(200, {"success": True, "sites": sites})
