# services/usage/recorder.py
"""Commits successful indexing work to the usage counters and the append-only indexing log."""

from contextlib import contextmanager
from datetime import datetime
from typing import Optional

from boto3.dynamodb.conditions import Key
from boto3.resources.base import ServiceResource

from aws_lambda_powertools import Logger
from aws_lambda_powertools.metrics import MetricUnit

from services.common.config import indexing_logs_table_name
from services.common.ddb_utils import from_ddb, get_dynamodb
from services.usage import crud
from services.usage.models import IndexingChannel, IndexingLogEntry, OperationType, UsageRecord

logger = Logger(service="usage", child=True)


def increment_usage(user_id: str, operation: OperationType, count: int = 1,
                    dynamodb: Optional[ServiceResource] = None,
                    now: Optional[datetime] = None) -> UsageRecord:
    if count < 1:
        raise ValueError("count must be >= 1")
    record = crud.add_usage(user_id, operation, count, dynamodb, now)
    logger.info("usage_recorded", extra={"user_id": user_id, "operation": OperationType(operation).value,
                                         "count": count})
    return record


def log_indexing_attempt(user_id: str, url: str, channel: IndexingChannel, status: str,
                         message: Optional[str] = None,
                         dynamodb: Optional[ServiceResource] = None) -> IndexingLogEntry:
    entry = IndexingLogEntry(user_id=user_id, url=url, channel=channel, status=status, message=message)
    table = get_dynamodb(dynamodb).Table(indexing_logs_table_name())
    table.put_item(Item=entry.for_dynamodb())
    return entry


def recent_indexing_logs(user_id: str, limit: int = 50,
                         dynamodb: Optional[ServiceResource] = None) -> list[IndexingLogEntry]:
    table = get_dynamodb(dynamodb).Table(indexing_logs_table_name())
    resp = table.query(
        KeyConditionExpression=Key("user_id").eq(user_id),
        ScanIndexForward=False,
        Limit=limit,
    )
    return [IndexingLogEntry(**from_ddb(it)) for it in resp.get("Items", [])]


@contextmanager
def bookkeeping(step: str, metrics=None, **keys):
    """
    Swallow accounting/logging failures after the external call already succeeded.
    The failure is logged (and counted when a Metrics instance is given).
    """
    try:
        yield
    except Exception:
        logger.exception("bookkeeping_failed", extra={"step": step, **keys})
        if metrics is not None:
            metrics.add_metric(name="BookkeepingFailure", unit=MetricUnit.Count, value=1)
