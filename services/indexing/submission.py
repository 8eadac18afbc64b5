# services/indexing/submission.py
"""
Shared flow for the indexing lambdas. The order is always:
check quota -> external call -> commit usage (success only) -> log outcome.
"""

from typing import Optional
from urllib.parse import urlparse

from aws_lambda_powertools import Logger
from aws_lambda_powertools.metrics import MetricUnit

from services.common.api import BadRequest, error
from services.common.config import hard_quota_enabled
from services.quota.enforcer import QuotaDecision, check_usage_limit, reserve_capacity
from services.quota.plans_limits import limits_for
from services.subscriptions.crud import get_subscription
from services.usage import crud as usage_crud
from services.usage.models import OperationType
from services.usage.recorder import bookkeeping, increment_usage, log_indexing_attempt

logger = Logger(service="indexing", child=True)

MSG_UNSENT = "Not sent: the request ran out of time. Resubmit this URL."


def parse_urls(body: dict) -> list[str]:
    urls = body.get("urls")
    if urls is None and body.get("url"):
        urls = [body["url"]]
    if not isinstance(urls, list) or not urls:
        raise BadRequest("No URLs provided.")
    cleaned = []
    for u in urls:
        if not isinstance(u, str) or urlparse(u.strip()).scheme not in ("http", "https"):
            raise BadRequest(f"Invalid URL: {u!r}")
        cleaned.append(u.strip())
    return cleaned


def operation_for(base: OperationType, count: int) -> OperationType:
    if count <= 1:
        return base
    return OperationType.BULK_GSC if base == OperationType.GSC else OperationType.BULK_INDEXNOW


def batch_size_error(user_id: str, count: int) -> Optional[dict]:
    subscription = get_subscription(user_id)
    if subscription is None:
        return None  # the quota check reports the missing user
    max_batch = limits_for(subscription.plan_id).urls_per_batch
    if count > max_batch:
        return error(400, f"Your plan allows at most {max_batch} URLs per batch.",
                     limit=max_batch, upgrade=True)
    return None


def admit(user_id: str, operation: OperationType, count: int, metrics) -> tuple[QuotaDecision, bool]:
    """Returns (decision, reserved). `reserved` means usage was already committed up front."""
    if hard_quota_enabled():
        decision, reserved = reserve_capacity(user_id, operation, count), True
    else:
        decision, reserved = check_usage_limit(user_id, operation, count), False

    if not decision.allowed:
        metrics.add_metric(name="QuotaDenied", unit=MetricUnit.Count, value=1)
        logger.info("quota_denied", extra={"operation": operation.value, "count": count,
                                           "reason": decision.reason.value if decision.reason else None})
        return decision, False
    return decision, reserved


def quota_denied_response(decision: QuotaDecision) -> dict:
    return error(
        429, decision.message or "Usage limit reached",
        limit=decision.limit,
        current=decision.current,
        reason=decision.reason,
        upgrade=True,
    )


def record_success(user_id: str, urls: list[str], operation: OperationType, reserved: bool, metrics) -> None:
    metrics.add_metric(name="UrlSubmitted", unit=MetricUnit.Count, value=len(urls))
    if not reserved:
        with bookkeeping("increment_usage", metrics, count=len(urls)):
            increment_usage(user_id, operation, len(urls))
    for url in urls:
        with bookkeeping("log_indexing_attempt", metrics, url=url):
            log_indexing_attempt(user_id, url, operation.channel, "success")


def record_failure(user_id: str, urls: list[str], operation: OperationType, message: str, metrics) -> None:
    metrics.add_metric(name="UrlFailed", unit=MetricUnit.Count, value=len(urls))
    for url in urls:
        with bookkeeping("log_indexing_attempt", metrics, url=url):
            log_indexing_attempt(user_id, url, operation.channel, "error", message)


def record_unsent(user_id: str, urls: list[str], operation: OperationType, metrics) -> None:
    metrics.add_metric(name="UrlUnsent", unit=MetricUnit.Count, value=len(urls))
    for url in urls:
        with bookkeeping("log_indexing_attempt", metrics, url=url):
            log_indexing_attempt(user_id, url, operation.channel, "pending", MSG_UNSENT)


def release_unused(user_id: str, operation: OperationType, count: int, decision: QuotaDecision, metrics) -> None:
    """Return capacity reserved up front for URLs that were not indexed."""
    if decision.reserved_on and count:
        with bookkeeping("release_usage", metrics, count=count):
            usage_crud.release(user_id, operation, count, decision.reserved_on)
