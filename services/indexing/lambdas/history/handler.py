from aws_lambda_powertools import Logger

from services.common.api import current_user_id, error, response
from services.usage.recorder import recent_indexing_logs

logger = Logger(service="indexing-history")

DEFAULT_LIMIT = 50
MAX_LIMIT = 200


@logger.inject_lambda_context
def handler(event, context):
    user_id = current_user_id(event)
    if not user_id:
        return error(401, "Unauthorized")

    qs = event.get("queryStringParameters") or {}
    try:
        limit = int(qs.get("limit", DEFAULT_LIMIT))
    except (TypeError, ValueError):
        return error(400, "limit must be an integer")
    limit = max(1, min(limit, MAX_LIMIT))

    try:
        entries = recent_indexing_logs(user_id, limit)
    except Exception:
        logger.exception("history_read_failed")
        return error(500, "Failed to load indexing history")

    return response(200, {"logs": [e.model_dump(mode="json") for e in entries]})
