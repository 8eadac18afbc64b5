from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from services.usage import crud
from services.usage.models import OperationType, UsageRecord

DAY1 = datetime(2025, 3, 14, 9, 0, tzinfo=timezone.utc)
DAY1_LATE = datetime(2025, 3, 14, 23, 59, 59, tzinfo=timezone.utc)
DAY2 = datetime(2025, 3, 15, 0, 0, 1, tzinfo=timezone.utc)
NEXT_MONTH = datetime(2025, 4, 1, 0, 0, 1, tzinfo=timezone.utc)


def _raw(ddb, user_id):
    return ddb.Table("Usage-test").get_item(Key={"user_id": user_id})["Item"]


def test_first_load_creates_zeroed_record(ddb):
    record = crud.load_or_create("u1", ddb, now=DAY1)
    assert record.user_id == "u1"
    assert all(v == 0 for v in record.counters().values())
    assert record.last_reset_date == DAY1
    assert record.last_monthly_reset == DAY1
    assert _raw(ddb, "u1")["last_reset_date"] == "2025-03-14T09:00:00.000000Z"


def test_load_is_idempotent(ddb):
    crud.load_or_create("u1", ddb, now=DAY1)
    crud.add_usage("u1", OperationType.GSC, 3, ddb, now=DAY1)
    again = crud.load_or_create("u1", ddb, now=DAY1_LATE)
    assert again.gsc_requests_today == 3
    assert again.last_reset_date == DAY1


def test_gsc_commit_moves_all_gsc_counters(ddb):
    record = crud.add_usage("u1", OperationType.GSC, 2, ddb, now=DAY1)
    assert record.gsc_requests_today == 2
    assert record.gsc_requests_this_month == 2
    assert record.total_gsc_requests == 2
    assert record.urls_indexed_today == 2
    assert record.urls_indexed_this_month == 2
    assert record.total_urls_indexed == 2
    assert record.index_now_requests_today == 0


def test_indexnow_commit_leaves_gsc_counters(ddb):
    record = crud.add_usage("u1", OperationType.BULK_INDEXNOW, 5, ddb, now=DAY1)
    assert record.index_now_requests_today == 5
    assert record.urls_indexed_today == 5
    assert record.urls_indexed_this_month == 5
    assert record.total_urls_indexed == 5
    assert record.gsc_requests_today == 0
    assert record.total_gsc_requests == 0


def test_daily_rollover_keeps_monthly_and_lifetime(ddb):
    crud.add_usage("u1", OperationType.GSC, 4, ddb, now=DAY1)
    crud.add_usage("u1", OperationType.INDEXNOW, 7, ddb, now=DAY1)

    record = crud.load_or_create("u1", ddb, now=DAY2)
    assert record.gsc_requests_today == 0
    assert record.index_now_requests_today == 0
    assert record.urls_indexed_today == 0
    assert record.gsc_requests_this_month == 4
    assert record.urls_indexed_this_month == 11
    assert record.total_urls_indexed == 11
    assert record.last_reset_date == DAY2
    assert record.last_monthly_reset == DAY1


def test_month_rollover_resets_both_periods(ddb):
    crud.add_usage("u1", OperationType.GSC, 4, ddb, now=DAY1)

    record = crud.load_or_create("u1", ddb, now=NEXT_MONTH)
    assert record.gsc_requests_today == 0
    assert record.gsc_requests_this_month == 0
    assert record.urls_indexed_this_month == 0
    assert record.total_gsc_requests == 4
    assert record.last_reset_date == NEXT_MONTH
    assert record.last_monthly_reset == NEXT_MONTH


def test_add_after_rollover_counts_in_new_day(ddb):
    crud.add_usage("u1", OperationType.GSC, 9, ddb, now=DAY1)
    record = crud.add_usage("u1", OperationType.GSC, 1, ddb, now=DAY2)
    assert record.gsc_requests_today == 1
    assert record.gsc_requests_this_month == 10


def test_reset_lost_race_rereads_winner(ddb):
    crud.add_usage("u1", OperationType.GSC, 4, ddb, now=DAY1)
    stale = _raw(ddb, "u1")
    # another reader already moved the day forward
    crud.load_or_create("u1", ddb, now=DAY2)
    crud.add_usage("u1", OperationType.GSC, 2, ddb, now=DAY2)

    item = crud._reset_if_stale(ddb.Table("Usage-test"), stale, "last_reset_date",
                                ("gsc_requests_today",), DAY2, lambda a, b: False)
    # the stale stamp no longer matches, so the fresh counters survive
    assert int(item["gsc_requests_today"]) == 2


def test_try_reserve_within_limit(ddb):
    crud.add_usage("u1", OperationType.GSC, 8, ddb, now=DAY1)
    record = crud.try_reserve("u1", OperationType.BULK_GSC, 2, 10, ddb, now=DAY1)
    assert record.gsc_requests_today == 10
    assert record.total_urls_indexed == 10


def test_try_reserve_refuses_to_exceed(ddb):
    crud.add_usage("u1", OperationType.GSC, 9, ddb, now=DAY1)
    assert crud.try_reserve("u1", OperationType.GSC, 2, 10, ddb, now=DAY1) is None
    assert crud.load_or_create("u1", ddb, now=DAY1).gsc_requests_today == 9


def test_try_reserve_count_larger_than_limit(ddb):
    assert crud.try_reserve("u1", OperationType.GSC, 11, 10, ddb, now=DAY1) is None


def test_release_returns_capacity(ddb):
    crud.try_reserve("u1", OperationType.INDEXNOW, 5, 50, ddb, now=DAY1)
    assert crud.release("u1", OperationType.BULK_INDEXNOW, 3, "2025-03-14", ddb) is True
    record = crud.load_or_create("u1", ddb, now=DAY1)
    assert record.index_now_requests_today == 2
    assert record.total_urls_indexed == 2


def test_release_after_rollover_is_noop(ddb):
    crud.try_reserve("u1", OperationType.GSC, 5, 10, ddb, now=DAY1)
    crud.load_or_create("u1", ddb, now=DAY2)
    assert crud.release("u1", OperationType.GSC, 5, "2025-03-14", ddb) is False
    assert crud.load_or_create("u1", ddb, now=DAY2).total_gsc_requests == 5


def test_release_leaves_next_days_usage_alone(ddb):
    crud.try_reserve("u1", OperationType.GSC, 5, 10, ddb, now=DAY1_LATE)
    # new day traffic lands before the release
    crud.add_usage("u1", OperationType.GSC, 6, ddb, now=DAY2)

    assert crud.release("u1", OperationType.GSC, 5, "2025-03-14", ddb) is False
    record = crud.load_or_create("u1", ddb, now=DAY2)
    assert record.gsc_requests_today == 6
    assert record.total_gsc_requests == 11


def test_store_errors_propagate():
    table = MagicMock()
    table.get_item.side_effect = ClientError(
        {"Error": {"Code": "ResourceNotFoundException"}}, "GetItem"
    )
    resource = MagicMock()
    resource.Table.return_value = table
    with pytest.raises(ClientError):
        crud.load_or_create("u1", resource, now=DAY1)


def test_usage_record_parses_stored_item():
    record = UsageRecord.from_dynamodb({
        "user_id": "u1",
        "gsc_requests_today": 3,
        "last_reset_date": "2025-03-14T09:00:00.000000Z",
        "last_monthly_reset": "2025-03-01T00:00:00.000000Z",
    })
    assert record.gsc_requests_today == 3
    assert record.last_monthly_reset == datetime(2025, 3, 1, tzinfo=timezone.utc)
