# services/subscriptions/crud.py

from typing import Optional

from boto3.dynamodb.conditions import Key
from boto3.resources.base import ServiceResource
from botocore.exceptions import ClientError

from aws_lambda_powertools import Logger

from services.common.config import subscriptions_table_name
from services.common.ddb_utils import ddb_safe, from_ddb, get_dynamodb, is_conditional_failure
from services.common.time_utils import now_utc
from services.plans.models import PlanId
from services.subscriptions.models import Subscription, SubscriptionStatus

logger = Logger(service="subscriptions", child=True)

STRIPE_SUBSCRIPTION_INDEX = "stripe_subscription_id-index"


def _table(dynamodb: Optional[ServiceResource] = None):
    return get_dynamodb(dynamodb).Table(subscriptions_table_name())


def get_subscription(user_id: str, dynamodb: Optional[ServiceResource] = None) -> Optional[Subscription]:
    resp = _table(dynamodb).get_item(Key={"user_id": user_id})
    item = resp.get("Item")
    return Subscription(**from_ddb(item)) if item else None


def bootstrap_subscription(user_id: str, dynamodb: Optional[ServiceResource] = None) -> bool:
    """Create the FREE/INACTIVE subscription on first sign-in. Returns False if it already existed."""
    sub = Subscription(user_id=user_id)
    try:
        _table(dynamodb).put_item(
            Item=sub.for_dynamodb(),
            ConditionExpression="attribute_not_exists(user_id)",
        )
    except ClientError as e:
        if is_conditional_failure(e):
            return False
        raise
    logger.info("subscription_bootstrapped", extra={"user_id": user_id})
    return True


def upsert_subscription(user_id: str, fields: dict, dynamodb: Optional[ServiceResource] = None) -> dict:
    """
    SET the given fields on the user's subscription, creating it if missing.
    plan_id/status default to FREE/INACTIVE on creation unless provided.
    """
    fields = {k: v for k, v in fields.items() if v is not None}
    fields["updated_at"] = now_utc()
    defaults = {"plan_id": PlanId.FREE, "status": SubscriptionStatus.INACTIVE}
    defaults = {k: v for k, v in defaults.items() if k not in fields}

    names, values, sets = {}, {}, []
    for i, (k, v) in enumerate(fields.items()):
        names[f"#f{i}"] = k
        values[f":f{i}"] = ddb_safe(v)
        sets.append(f"#f{i} = :f{i}")
    for i, (k, v) in enumerate(defaults.items()):
        names[f"#d{i}"] = k
        values[f":d{i}"] = ddb_safe(v)
        sets.append(f"#d{i} = if_not_exists(#d{i}, :d{i})")

    resp = _table(dynamodb).update_item(
        Key={"user_id": user_id},
        UpdateExpression="SET " + ", ".join(sets),
        ExpressionAttributeNames=names,
        ExpressionAttributeValues=values,
        ReturnValues="ALL_NEW",
    )
    return from_ddb(resp.get("Attributes", {}))


def find_by_stripe_subscription_id(stripe_subscription_id: str,
                                   dynamodb: Optional[ServiceResource] = None) -> list[Subscription]:
    table = _table(dynamodb)
    params = {
        "IndexName": STRIPE_SUBSCRIPTION_INDEX,
        "KeyConditionExpression": Key("stripe_subscription_id").eq(stripe_subscription_id),
    }
    subs = []
    while True:
        resp = table.query(**params)
        subs.extend(Subscription(**from_ddb(it)) for it in resp.get("Items", []))
        if "LastEvaluatedKey" not in resp:
            break
        params["ExclusiveStartKey"] = resp["LastEvaluatedKey"]
    return subs


def update_by_stripe_subscription_id(stripe_subscription_id: str, fields: dict,
                                     dynamodb: Optional[ServiceResource] = None) -> int:
    """Apply `fields` to every subscription linked to a Stripe subscription. Returns the match count."""
    matches = find_by_stripe_subscription_id(stripe_subscription_id, dynamodb)
    for sub in matches:
        upsert_subscription(sub.user_id, fields, dynamodb)
    if not matches:
        logger.warning("stripe_subscription_unmatched", extra={"stripe_subscription_id": stripe_subscription_id})
    return len(matches)
