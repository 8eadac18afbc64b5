# services/subscriptions/lambdas/bootstrap_user.py
"""
Cognito post-authentication trigger: makes sure every signed-in user has a
FREE/INACTIVE subscription and a usage record. Never blocks sign-in.
"""

from aws_lambda_powertools import Logger

from services.subscriptions.crud import bootstrap_subscription
from services.usage.crud import load_or_create

logger = Logger(service="subscriptions-bootstrap")


@logger.inject_lambda_context
def handler(event, context):
    attrs = (event.get("request") or {}).get("userAttributes") or {}
    user_id = attrs.get("sub") or event.get("userName")
    if not user_id:
        logger.warning("bootstrap_missing_user_id")
        return event

    logger.append_keys(user_id=user_id)
    try:
        created = bootstrap_subscription(user_id)
        load_or_create(user_id)
        logger.info("user_bootstrapped", extra={"subscription_created": created})
    except Exception:
        # still allow sign in even if the tables are unavailable
        logger.exception("user_bootstrap_failed")
    # Cognito triggers must hand the event back
    return event
