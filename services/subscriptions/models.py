from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_serializer

from services.common.ddb_utils import ddb_safe
from services.common.time_utils import now_utc, to_iso_z
from services.plans.models import PlanId


class SubscriptionStatus(str, Enum):
    INACTIVE = "INACTIVE"
    ACTIVE = "ACTIVE"
    TRIALING = "TRIALING"
    PAST_DUE = "PAST_DUE"
    CANCELED = "CANCELED"


# Paid plans only grant quota in these states
ENTITLED_STATUSES = frozenset({SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIALING})

_STRIPE_STATUS_MAP = {
    "active": SubscriptionStatus.ACTIVE,
    "trialing": SubscriptionStatus.TRIALING,
    "past_due": SubscriptionStatus.PAST_DUE,
    "unpaid": SubscriptionStatus.PAST_DUE,
    "canceled": SubscriptionStatus.CANCELED,
    "incomplete_expired": SubscriptionStatus.CANCELED,
}


def status_from_stripe(stripe_status: Optional[str]) -> SubscriptionStatus:
    """incomplete / paused and anything unknown fall back to INACTIVE."""
    return _STRIPE_STATUS_MAP.get((stripe_status or "").lower(), SubscriptionStatus.INACTIVE)


class Subscription(BaseModel):
    user_id: str
    plan_id: PlanId = PlanId.FREE
    status: SubscriptionStatus = SubscriptionStatus.INACTIVE
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None
    stripe_price_id: Optional[str] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    updated_at: datetime = Field(default_factory=now_utc)

    @property
    def is_entitled(self) -> bool:
        return self.plan_id == PlanId.FREE or self.status in ENTITLED_STATUSES

    @field_serializer("current_period_start", "current_period_end", "updated_at")
    def _ser_ts(self, v: Optional[datetime]) -> Optional[str]:
        return to_iso_z(v) if v else None

    def for_dynamodb(self) -> dict:
        return ddb_safe(self.model_dump(mode="python"))
