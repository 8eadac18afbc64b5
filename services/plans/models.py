# services/plans/models.py

from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class PlanId(str, Enum):
    FREE = "FREE"
    STARTER = "STARTER"
    PRO = "PRO"
    AGENCY = "AGENCY"


class FeatureSet(BaseModel):
    model_config = ConfigDict(frozen=True)

    gsc_requests_per_day: int = Field(ge=0)
    index_now_requests_per_day: int = Field(ge=0)
    urls_per_batch: int = Field(ge=1)
    sites: int = Field(ge=1)
    bulk_indexing: bool
    priority_support: bool


class PlanConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    plan_id: PlanId
    name: str
    description: Optional[str] = None
    price_usd: Decimal
    # env var holding the Stripe price id; None for the free tier
    price_env: Optional[str] = None
    features: FeatureSet

    @field_serializer("price_usd")
    def _ser_price(self, v: Decimal) -> float:
        return float(v)
