import os

from botocore.exceptions import ClientError

from aws_lambda_powertools import Logger, Metrics
from aws_lambda_powertools.metrics import MetricUnit

from services.common.api import BadRequest, current_user_id, error, json_body, response
from services.common.config import load_local_env
from services.common.secrets import get_secret
from services.common.time_utils import ymd
from services.indexing import submission
from services.indexing.clients import IndexingApiError, OmegaIndexerClient
from services.quota.enforcer import MSG_BULK_REQUIRES_PAID, MSG_INACTIVE, MSG_NOT_FOUND
from services.quota.plans_limits import limits_for
from services.subscriptions.crud import get_subscription

logger = Logger(service="indexing-omega")
metrics = Metrics(namespace="IndexPilot", service="indexing-omega")

load_local_env(os.path.dirname(__file__))


def _client(api_key: str) -> OmegaIndexerClient:
    return OmegaIndexerClient(api_key)


def _plan_error(user_id: str):
    """Omega campaigns spend the account's shared credits: paid, entitled plans only."""
    subscription = get_subscription(user_id)
    if subscription is None:
        return error(404, MSG_NOT_FOUND)
    if not subscription.is_entitled:
        return error(403, MSG_INACTIVE, upgrade=True)
    if not limits_for(subscription.plan_id).bulk_indexing:
        return error(403, MSG_BULK_REQUIRES_PAID, upgrade=True)
    return None


@logger.inject_lambda_context
@metrics.log_metrics(capture_cold_start_metric=True)
def handler(event, context):
    user_id = current_user_id(event)
    if not user_id:
        return error(401, "Unauthorized")

    try:
        body = json_body(event)
        urls = submission.parse_urls(body)
        campaign_name = body.get("campaignName") or f"Campaign {ymd()}"
    except BadRequest as e:
        logger.warning("bad_payload", extra={"error": str(e)})
        return error(400, str(e))

    logger.append_keys(user_id=user_id)
    try:
        denied = _plan_error(user_id)
    except ClientError:
        logger.exception("subscription_store_unavailable")
        return error(500, "Internal server error")
    if denied:
        return denied

    try:
        api_key = get_secret("OMEGA_INDEXER_API_KEY", "OMEGA_INDEXER_API_KEY_ARN")
    except RuntimeError:
        logger.error("omega_key_missing")
        return error(500, "Omega Indexer API key not configured.")

    try:
        message = _client(api_key).submit(urls, campaign_name)
    except IndexingApiError as e:
        logger.warning("omega_submit_failed", extra={"error": str(e), "count": len(urls)})
        metrics.add_metric(name="UrlFailed", unit=MetricUnit.Count, value=len(urls))
        return error(502, "Failed to communicate with Omega Indexer")

    metrics.add_metric(name="UrlSubmitted", unit=MetricUnit.Count, value=len(urls))
    logger.info("omega_campaign_created", extra={"count": len(urls), "campaign": campaign_name})
    return response(200, {"success": True, "message": message, "campaignName": campaign_name, "submitted": len(urls)})
