# services/usage/crud.py
"""
Per-user usage counters in DynamoDB.

Daily and monthly counters are reset lazily on read. Every load compares the stored
reset stamps with the current UTC day/month and zeroes stale counters before
returning, so callers never see a previous period's numbers.
"""

from datetime import datetime
from typing import Callable, Iterable, Optional

from boto3.resources.base import ServiceResource
from botocore.exceptions import ClientError

from aws_lambda_powertools import Logger

from services.common.config import usage_table_name
from services.common.ddb_utils import get_dynamodb, is_conditional_failure
from services.common.time_utils import now_utc, parse_iso, same_utc_day, same_utc_month, to_iso_z, ymd
from services.usage.models import (
    COMMIT_COUNTERS,
    DAILY_COUNTER,
    DAILY_FIELDS,
    MONTHLY_FIELDS,
    OperationType,
    UsageRecord,
)

logger = Logger(service="usage", child=True)


def _table(dynamodb: Optional[ServiceResource] = None):
    return get_dynamodb(dynamodb).Table(usage_table_name())


def _get_item(table, user_id: str) -> Optional[dict]:
    return table.get_item(Key={"user_id": user_id}, ConsistentRead=True).get("Item")


def _stamp(dt: datetime) -> str:
    return to_iso_z(dt, timespec="microseconds")


def load_or_create(user_id: str, dynamodb: Optional[ServiceResource] = None,
                   now: Optional[datetime] = None) -> UsageRecord:
    now = now or now_utc()
    table = _table(dynamodb)

    item = _get_item(table, user_id)
    if item is None:
        record = UsageRecord(user_id=user_id, last_reset_date=now, last_monthly_reset=now)
        try:
            table.put_item(
                Item=record.for_dynamodb(),
                ConditionExpression="attribute_not_exists(user_id)",
            )
            logger.info("usage_record_created", extra={"user_id": user_id})
            return record
        except ClientError as e:
            if not is_conditional_failure(e):
                raise
            # lost the creation race; use the winner's record
            item = _get_item(table, user_id)

    item = _reset_if_stale(table, item, "last_reset_date", DAILY_FIELDS, now, same_utc_day)
    item = _reset_if_stale(table, item, "last_monthly_reset", MONTHLY_FIELDS, now, same_utc_month)
    return UsageRecord.from_dynamodb(item)


def _reset_if_stale(table, item: dict, stamp_attr: str, fields: Iterable[str], now: datetime,
                    same_period: Callable[[datetime, datetime], bool]) -> dict:
    seen = item[stamp_attr]
    if same_period(parse_iso(seen), now):
        return item

    fields = tuple(fields)
    names = {"#s": stamp_attr}
    sets = ["#s = :now"]
    for i, field in enumerate(fields):
        names[f"#c{i}"] = field
        sets.append(f"#c{i} = :zero")

    try:
        resp = table.update_item(
            Key={"user_id": item["user_id"]},
            UpdateExpression="SET " + ", ".join(sets),
            # only the reader that saw this stamp may zero the period
            ConditionExpression="#s = :seen",
            ExpressionAttributeNames=names,
            ExpressionAttributeValues={":now": _stamp(now), ":zero": 0, ":seen": seen},
            ReturnValues="ALL_NEW",
        )
    except ClientError as e:
        if not is_conditional_failure(e):
            raise
        logger.debug("usage_reset_already_applied", extra={"user_id": item["user_id"], "stamp": stamp_attr})
        return _get_item(table, item["user_id"])

    logger.info("usage_period_reset", extra={"user_id": item["user_id"], "stamp": stamp_attr, "previous": seen})
    return resp["Attributes"]


def _add_expression(fields: Iterable[str]) -> tuple[str, dict]:
    names = {}
    parts = []
    for i, field in enumerate(fields):
        names[f"#a{i}"] = field
        parts.append(f"#a{i} :n")
    return "ADD " + ", ".join(parts), names


def add_usage(user_id: str, operation: OperationType, count: int,
              dynamodb: Optional[ServiceResource] = None, now: Optional[datetime] = None) -> UsageRecord:
    """Atomically add `count` to every counter the operation moves (after reconciling the period)."""
    operation = OperationType(operation).base
    load_or_create(user_id, dynamodb, now)
    expr, names = _add_expression(COMMIT_COUNTERS[operation])
    resp = _table(dynamodb).update_item(
        Key={"user_id": user_id},
        UpdateExpression=expr,
        ExpressionAttributeNames=names,
        ExpressionAttributeValues={":n": count},
        ReturnValues="ALL_NEW",
    )
    return UsageRecord.from_dynamodb(resp["Attributes"])


def try_reserve(user_id: str, operation: OperationType, count: int, limit: int,
                dynamodb: Optional[ServiceResource] = None,
                now: Optional[datetime] = None) -> Optional[UsageRecord]:
    """
    Conditional increment: succeeds only if the daily counter stays within `limit`
    and the record still belongs to today. Returns None when it would exceed.
    """
    now = now or now_utc()
    operation = OperationType(operation).base
    load_or_create(user_id, dynamodb, now)
    if count > limit:
        return None

    expr, names = _add_expression(COMMIT_COUNTERS[operation])
    names["#daily"] = DAILY_COUNTER[operation]
    names["#stamp"] = "last_reset_date"
    try:
        resp = _table(dynamodb).update_item(
            Key={"user_id": user_id},
            UpdateExpression=expr,
            ConditionExpression="#daily <= :threshold AND begins_with(#stamp, :today)",
            ExpressionAttributeNames=names,
            ExpressionAttributeValues={":n": count, ":threshold": limit - count, ":today": ymd(now)},
            ReturnValues="ALL_NEW",
        )
    except ClientError as e:
        if is_conditional_failure(e):
            return None
        raise
    return UsageRecord.from_dynamodb(resp["Attributes"])


def release(user_id: str, operation: OperationType, count: int, reserved_on: str,
            dynamodb: Optional[ServiceResource] = None) -> bool:
    """
    Hand back capacity reserved on `reserved_on` (YYYY-MM-DD, UTC).
    A no-op once the record has rolled over to another day.
    """
    operation = OperationType(operation).base
    expr, names = _add_expression(COMMIT_COUNTERS[operation])
    names["#daily"] = DAILY_COUNTER[operation]
    names["#stamp"] = "last_reset_date"
    try:
        _table(dynamodb).update_item(
            Key={"user_id": user_id},
            UpdateExpression=expr,
            ConditionExpression="#daily >= :count AND begins_with(#stamp, :day)",
            ExpressionAttributeNames=names,
            ExpressionAttributeValues={":n": -count, ":count": count, ":day": reserved_on},
        )
    except ClientError as e:
        if is_conditional_failure(e):
            logger.warning("usage_release_skipped",
                           extra={"user_id": user_id, "count": count, "reserved_on": reserved_on})
            return False
        raise
    return True
