import os
import time

from botocore.exceptions import ClientError

from aws_lambda_powertools import Logger, Metrics

from services.common.api import BadRequest, current_user_id, error, header, json_body, response
from services.common.config import http_timeout_seconds, load_local_env, pacing_seconds
from services.indexing import submission
from services.indexing.clients import GOOGLE_NOTIFICATION_TYPES, GoogleIndexingClient, IndexingApiError
from services.usage.models import OperationType

logger = Logger(service="indexing-google")
metrics = Metrics(namespace="IndexPilot", service="indexing-google")

load_local_env(os.path.dirname(__file__))

# kept back for logging the unsent URLs and releasing their reservation
SAFETY_MARGIN_MS = 2000


def _client(access_token: str) -> GoogleIndexingClient:
    return GoogleIndexingClient(access_token)


def _time_for_another(context) -> bool:
    """Room left for one more paced publish before the invocation is killed."""
    needed_ms = (pacing_seconds() + http_timeout_seconds()) * 1000 + SAFETY_MARGIN_MS
    return context.get_remaining_time_in_millis() > needed_ms


@logger.inject_lambda_context
@metrics.log_metrics(capture_cold_start_metric=True)
def handler(event, context):
    user_id = current_user_id(event)
    if not user_id:
        return error(401, "Unauthorized")
    access_token = header(event, "x-google-access-token")
    if not access_token:
        return error(401, "Unauthorized. Please sign in with Google.")

    try:
        body = json_body(event)
        urls = submission.parse_urls(body)
        notification_type = body.get("type", "URL_UPDATED")
        if notification_type not in GOOGLE_NOTIFICATION_TYPES:
            raise BadRequest(f"type must be one of {', '.join(GOOGLE_NOTIFICATION_TYPES)}")
    except BadRequest as e:
        logger.warning("bad_payload", extra={"error": str(e)})
        return error(400, str(e))

    logger.append_keys(user_id=user_id)
    operation = submission.operation_for(OperationType.GSC, len(urls))

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

    client = _client(access_token)
    results = []
    succeeded = 0
    unsent = []
    for i, url in enumerate(urls):
        if i:
            if not _time_for_another(context):
                unsent = urls[i:]
                break
            # upstream rate limit, not local quota
            time.sleep(pacing_seconds())
        try:
            client.publish(url, notification_type)
        except IndexingApiError as e:
            logger.warning("google_publish_failed", extra={"url": url, "error": str(e)})
            submission.record_failure(user_id, [url], operation, str(e), metrics)
            results.append({"url": url, "status": "error", "message": str(e)})
            continue
        succeeded += 1
        submission.record_success(user_id, [url], operation, reserved, metrics)
        results.append({"url": url, "status": "success"})

    if unsent:
        logger.warning("google_batch_out_of_time", extra={"unsent": len(unsent)})
        submission.record_unsent(user_id, unsent, operation, metrics)
    failed = len(urls) - succeeded - len(unsent)
    submission.release_unused(user_id, operation, failed + len(unsent), decision, metrics)
    logger.info("google_batch_done", extra={"submitted": succeeded, "failed": failed, "unsent": len(unsent)})

    body = {
        "success": failed == 0 and not unsent,
        "submitted": succeeded,
        "failed": failed,
        "results": results,
        "unsent": unsent,
        "usage": {"limit": decision.limit, "current": decision.current + succeeded},
    }
    if succeeded == 0:
        return response(502, {"error": results[0]["message"] if len(results) == 1 else "All submissions failed",
                              **body})
    return response(200, body)
