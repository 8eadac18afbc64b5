# services/billing/lambdas/create_portal.py

import stripe

from aws_lambda_powertools import Logger

from services.billing.customers import configure_stripe
from services.common.api import current_user_id, error, response
from services.common.config import app_url
from services.subscriptions.crud import get_subscription

logger = Logger(service="billing-portal")


@logger.inject_lambda_context
def handler(event, context):
    user_id = current_user_id(event)
    if not user_id:
        return error(401, "Unauthorized")
    logger.append_keys(user_id=user_id)

    try:
        subscription = get_subscription(user_id)
        if subscription is None or not subscription.stripe_customer_id:
            return error(404, "No subscription found")

        configure_stripe()
        session = stripe.billing_portal.Session.create(
            customer=subscription.stripe_customer_id,
            return_url=f"{app_url()}/dashboard",
        )
    except Exception:
        logger.exception("portal_session_failed")
        return error(500, "Failed to create portal session")

    return response(200, {"url": session.url})
