# services/plans/lambdas/list_plans.py

from services.common.api import response
from services.quota.plans_limits import plan_catalog


def handler(event, context):
    return response(200, {"plans": plan_catalog()})
