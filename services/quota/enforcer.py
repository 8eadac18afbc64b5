# services/quota/enforcer.py

from datetime import datetime
from enum import Enum
from typing import Optional

from boto3.resources.base import ServiceResource
from pydantic import BaseModel

from aws_lambda_powertools import Logger

from services.common.time_utils import now_utc, ymd
from services.plans.models import PlanConfig, PlanId
from services.quota.plans_limits import get_plan
from services.subscriptions.crud import get_subscription
from services.usage import crud as usage_crud
from services.usage.models import DAILY_COUNTER, OperationType

logger = Logger(service="quota", child=True)


class DenialReason(str, Enum):
    NOT_FOUND = "not_found"
    QUOTA_EXCEEDED = "quota_exceeded"
    PLAN_RESTRICTION = "plan_restriction"
    SUBSCRIPTION_INACTIVE = "subscription_inactive"


class QuotaDecision(BaseModel):
    allowed: bool
    limit: int
    current: int
    message: Optional[str] = None
    reason: Optional[DenialReason] = None
    # UTC day (YYYY-MM-DD) the capacity was reserved on; hard quota only
    reserved_on: Optional[str] = None

    @classmethod
    def deny(cls, reason: DenialReason, message: str, *, limit: int = 0, current: int = 0) -> "QuotaDecision":
        return cls(allowed=False, limit=limit, current=current, message=message, reason=reason)


LIMIT_FIELD = {
    OperationType.GSC: "gsc_requests_per_day",
    OperationType.INDEXNOW: "index_now_requests_per_day",
}

MSG_NOT_FOUND = "User not found"
MSG_INACTIVE = "Your subscription is not active. Please update your payment method."
MSG_BULK_REQUIRES_PAID = "Bulk indexing requires a paid plan"


def _exceeded_message(plan: PlanConfig, limit: int) -> str:
    if plan.plan_id == PlanId.FREE:
        return f"Free plan limit: {limit} requests per day. Upgrade for more."
    return f"Daily limit reached ({limit}/{limit}). Resets tomorrow."


def _gate(user_id: str, operation: OperationType, count: int,
          dynamodb) -> tuple[Optional[QuotaDecision], Optional[PlanConfig]]:
    """Subscription/plan gates shared by the advisory check and the reservation."""
    if count < 1:
        raise ValueError("count must be >= 1")

    subscription = get_subscription(user_id, dynamodb)
    if subscription is None:
        return QuotaDecision.deny(DenialReason.NOT_FOUND, MSG_NOT_FOUND), None

    plan = get_plan(subscription.plan_id)

    # a lapsed paid plan is denied before any quota math
    if not subscription.is_entitled:
        return QuotaDecision.deny(DenialReason.SUBSCRIPTION_INACTIVE, MSG_INACTIVE), plan

    if operation.is_bulk and not plan.features.bulk_indexing:
        return QuotaDecision.deny(DenialReason.PLAN_RESTRICTION, MSG_BULK_REQUIRES_PAID), plan

    return None, plan


def check_usage_limit(user_id: str, operation, count: int = 1,
                      dynamodb: Optional[ServiceResource] = None,
                      now: Optional[datetime] = None) -> QuotaDecision:
    """
    Advisory check: reads the current (reconciled) usage and compares it with the
    plan's daily limit. Nothing is reserved, so concurrent callers may both pass.
    """
    operation = OperationType(operation)
    denied, plan = _gate(user_id, operation, count, dynamodb)
    if denied:
        logger.info("quota_gate_denied", extra={"user_id": user_id, "reason": denied.reason.value})
        return denied

    usage = usage_crud.load_or_create(user_id, dynamodb, now)
    base = operation.base
    limit = getattr(plan.features, LIMIT_FIELD[base])
    current = getattr(usage, DAILY_COUNTER[base])

    if current + count > limit:
        return QuotaDecision.deny(DenialReason.QUOTA_EXCEEDED, _exceeded_message(plan, limit),
                                  limit=limit, current=current)
    return QuotaDecision(allowed=True, limit=limit, current=current)


def reserve_capacity(user_id: str, operation, count: int = 1,
                     dynamodb: Optional[ServiceResource] = None,
                     now: Optional[datetime] = None) -> QuotaDecision:
    """
    Check and commit in one conditional write. On success the usage is already
    recorded; hand back unused capacity with usage.crud.release(), passing
    `reserved_on` so a release after midnight cannot eat into the new day.
    """
    operation = OperationType(operation)
    denied, plan = _gate(user_id, operation, count, dynamodb)
    if denied:
        return denied

    now = now or now_utc()
    base = operation.base
    limit = getattr(plan.features, LIMIT_FIELD[base])
    reserved = usage_crud.try_reserve(user_id, base, count, limit, dynamodb, now)
    if reserved is None:
        usage = usage_crud.load_or_create(user_id, dynamodb, now)
        current = getattr(usage, DAILY_COUNTER[base])
        return QuotaDecision.deny(DenialReason.QUOTA_EXCEEDED, _exceeded_message(plan, limit),
                                  limit=limit, current=current)

    # report the pre-reservation figure, same as the advisory check
    return QuotaDecision(allowed=True, limit=limit, current=getattr(reserved, DAILY_COUNTER[base]) - count,
                         reserved_on=ymd(now))
