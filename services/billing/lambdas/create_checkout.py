# services/billing/lambdas/create_checkout.py

import os

import stripe

from aws_lambda_powertools import Logger

from services.billing.customers import configure_stripe, get_or_create_customer
from services.common.api import BadRequest, claims, current_user_email, current_user_id, error, json_body, response
from services.common.config import app_url, load_local_env
from services.quota.plans_limits import plan_for_price_id

logger = Logger(service="billing-checkout")

load_local_env(os.path.dirname(__file__))


@logger.inject_lambda_context
def handler(event, context):
    user_id, email = current_user_id(event), current_user_email(event)
    if not user_id or not email:
        return error(401, "Unauthorized")

    try:
        body = json_body(event)
    except BadRequest as e:
        return error(400, str(e))
    price_id = body.get("price_id") or body.get("priceId")
    if not price_id:
        return error(400, "Price ID is required")
    plan = plan_for_price_id(price_id)
    if plan is None:
        return error(400, "Unknown price ID")

    logger.append_keys(user_id=user_id, plan_id=plan.value)
    try:
        configure_stripe()
        customer_id = get_or_create_customer(user_id, email, claims(event).get("name"))
        session = stripe.checkout.Session.create(
            customer=customer_id,
            line_items=[{"price": price_id, "quantity": 1}],
            mode="subscription",
            success_url=f"{app_url()}/dashboard?success=true",
            cancel_url=f"{app_url()}/pricing?canceled=true",
            # the webhook resolves the user from the session metadata
            metadata={"user_id": user_id},
            subscription_data={"metadata": {"user_id": user_id}},
        )
    except Exception:
        logger.exception("checkout_session_failed")
        return error(500, "Failed to create checkout session")

    logger.info("checkout_session_created")
    return response(200, {"session_id": session.id, "url": session.url})
