import os
import re

from botocore.exceptions import ClientError

from aws_lambda_powertools import Logger, Metrics

from services.common.api import BadRequest, current_user_id, error, json_body, response
from services.common.config import load_local_env
from services.indexing import submission
from services.indexing.clients import IndexingApiError, IndexNowClient
from services.usage.models import OperationType

logger = Logger(service="indexing-indexnow")
metrics = Metrics(namespace="IndexPilot", service="indexing-indexnow")

load_local_env(os.path.dirname(__file__))

# IndexNow keys: 8-128 chars of [a-zA-Z0-9-]
_KEY_RE = re.compile(r"^[A-Za-z0-9-]{8,128}$")


def _client(host: str, key: str) -> IndexNowClient:
    return IndexNowClient(host, key)


@logger.inject_lambda_context
@metrics.log_metrics(capture_cold_start_metric=True)
def handler(event, context):
    user_id = current_user_id(event)
    if not user_id:
        return error(401, "Unauthorized")

    try:
        body = json_body(event)
        host, key = body.get("host"), body.get("key")
        if not host or not key or not isinstance(body.get("urls"), list):
            raise BadRequest("Missing required fields (host, key, urls array)")
        if not _KEY_RE.match(str(key)):
            raise BadRequest("Invalid IndexNow key")
        urls = submission.parse_urls(body)
    except BadRequest as e:
        logger.warning("bad_payload", extra={"error": str(e)})
        return error(400, str(e))

    logger.append_keys(user_id=user_id, host=host)
    operation = submission.operation_for(OperationType.INDEXNOW, len(urls))

    try:
        too_big = submission.batch_size_error(user_id, len(urls))
        if too_big:
            return too_big
        decision, reserved = submission.admit(user_id, operation, len(urls), metrics)
    except ClientError:
        logger.exception("usage_store_unavailable")
        return error(500, "Internal server error")
    if not decision.allowed:
        return submission.quota_denied_response(decision)

    try:
        _client(host, key).submit(urls)
    except IndexingApiError as e:
        logger.warning("indexnow_submit_failed", extra={"error": str(e), "count": len(urls)})
        submission.record_failure(user_id, urls, operation, str(e), metrics)
        submission.release_unused(user_id, operation, len(urls), decision, metrics)
        return error(502, str(e))

    submission.record_success(user_id, urls, operation, reserved, metrics)
    logger.info("indexnow_submitted", extra={"count": len(urls)})
    return response(200, {
        "success": True,
        "message": "Successfully submitted to IndexNow",
        "submitted": len(urls),
        "usage": {"limit": decision.limit, "current": decision.current + len(urls)},
    })
