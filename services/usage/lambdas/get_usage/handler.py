from aws_lambda_powertools import Logger

from services.common.api import current_user_id, error, response
from services.quota.plans_limits import limits_for
from services.subscriptions.crud import get_subscription
from services.usage.crud import load_or_create

logger = Logger(service="usage")


@logger.inject_lambda_context
def handler(event, context):
    user_id = current_user_id(event)
    if not user_id:
        return error(401, "Unauthorized")
    logger.append_keys(user_id=user_id)

    try:
        subscription = get_subscription(user_id)
        if subscription is None:
            return error(404, "User not found")
        usage = load_or_create(user_id)
    except Exception:
        logger.exception("get_usage_failed")
        return error(500, "Failed to get usage")

    plan = subscription.plan_id
    return response(200, {
        "usage": usage.counters(),
        "limits": limits_for(plan).model_dump(),
        "plan": plan,
    })
