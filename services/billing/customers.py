# services/billing/customers.py

from typing import Optional

import stripe
from boto3.resources.base import ServiceResource

from aws_lambda_powertools import Logger

from services.common.secrets import get_secret
from services.subscriptions.crud import get_subscription, upsert_subscription

logger = Logger(service="billing", child=True)


def configure_stripe() -> None:
    stripe.api_key = get_secret("STRIPE_SECRET_KEY", "STRIPE_SECRET_ARN")


def get_or_create_customer(user_id: str, email: str, name: Optional[str] = None,
                           dynamodb: Optional[ServiceResource] = None) -> str:
    """Return the user's Stripe customer id, creating the customer on first checkout."""
    sub = get_subscription(user_id, dynamodb)
    if sub and sub.stripe_customer_id:
        return sub.stripe_customer_id

    customer = stripe.Customer.create(
        email=email,
        name=name or email,
        metadata={"user_id": user_id},
    )
    # creates the FREE/INACTIVE record too if bootstrap never ran
    upsert_subscription(user_id, {"stripe_customer_id": customer.id}, dynamodb)
    logger.info("stripe_customer_created", extra={"user_id": user_id, "stripe_customer_id": customer.id})
    return customer.id
