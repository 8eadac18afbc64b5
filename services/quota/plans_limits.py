# services/quota/plans_limits.py

import os
from decimal import Decimal
from typing import Optional, Union

from services.plans.models import FeatureSet, PlanConfig, PlanId


PLANS: dict[PlanId, PlanConfig] = {
    PlanId.FREE: PlanConfig(
        plan_id=PlanId.FREE,
        name="Free",
        description="For personal use",
        price_usd=Decimal("0"),
        features=FeatureSet(
            gsc_requests_per_day=10,
            index_now_requests_per_day=50,
            urls_per_batch=10,
            sites=1,
            bulk_indexing=False,
            priority_support=False,
        ),
    ),
    PlanId.STARTER: PlanConfig(
        plan_id=PlanId.STARTER,
        name="Starter",
        description="For small websites",
        price_usd=Decimal("9"),
        price_env="STRIPE_STARTER_PRICE_ID",
        features=FeatureSet(
            gsc_requests_per_day=100,
            index_now_requests_per_day=500,
            urls_per_batch=100,
            sites=3,
            bulk_indexing=True,
            priority_support=False,
        ),
    ),
    PlanId.PRO: PlanConfig(
        plan_id=PlanId.PRO,
        name="Pro",
        description="For growing businesses",
        price_usd=Decimal("29"),
        price_env="STRIPE_PRO_PRICE_ID",
        features=FeatureSet(
            gsc_requests_per_day=500,
            index_now_requests_per_day=2000,
            urls_per_batch=500,
            sites=10,
            bulk_indexing=True,
            priority_support=True,
        ),
    ),
    PlanId.AGENCY: PlanConfig(
        plan_id=PlanId.AGENCY,
        name="Agency",
        description="For SEO agencies",
        price_usd=Decimal("99"),
        price_env="STRIPE_AGENCY_PRICE_ID",
        features=FeatureSet(
            gsc_requests_per_day=2000,
            index_now_requests_per_day=10000,
            urls_per_batch=2000,
            sites=50,
            bulk_indexing=True,
            priority_support=True,
        ),
    ),
}


def get_plan(plan_id: Union[PlanId, str]) -> PlanConfig:
    # PlanId(...) raises ValueError for identifiers outside the enumeration
    return PLANS[PlanId(plan_id)]


def limits_for(plan_id: Union[PlanId, str]) -> FeatureSet:
    return get_plan(plan_id).features


def price_id_for(plan_id: Union[PlanId, str]) -> Optional[str]:
    plan = get_plan(plan_id)
    return os.getenv(plan.price_env) if plan.price_env else None


def plan_for_price_id(price_id: Optional[str]) -> Optional[PlanId]:
    """Map a Stripe price id to the paid plan configured for it."""
    if not price_id:
        return None
    for plan in PLANS.values():
        if plan.price_env and os.getenv(plan.price_env) == price_id:
            return plan.plan_id
    return None


def plan_catalog() -> list[dict]:
    catalog = []
    for plan in PLANS.values():
        item = plan.model_dump(mode="json", exclude={"price_env"})
        item["price_id"] = price_id_for(plan.plan_id)
        catalog.append(item)
    return catalog
