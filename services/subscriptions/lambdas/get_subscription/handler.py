from aws_lambda_powertools import Logger

from services.common.api import current_user_id, error, response
from services.quota.plans_limits import limits_for
from services.subscriptions.crud import get_subscription
from services.subscriptions.models import Subscription
from services.usage.crud import load_or_create

logger = Logger(service="subscriptions")


@logger.inject_lambda_context
def handler(event, context):
    user_id = current_user_id(event)
    if not user_id:
        return error(401, "Unauthorized")
    logger.append_keys(user_id=user_id)

    try:
        # users who never finished bootstrap read as FREE/INACTIVE
        subscription = get_subscription(user_id) or Subscription(user_id=user_id)
        usage = load_or_create(user_id)
    except Exception:
        logger.exception("get_subscription_failed")
        return error(500, "Failed to get subscription")

    return response(200, {
        "subscription": {
            "plan": subscription.plan_id,
            "status": subscription.status,
            "current_period_end": subscription.current_period_end,
        },
        "usage": usage.counters(),
        "limits": limits_for(subscription.plan_id).model_dump(),
    })
