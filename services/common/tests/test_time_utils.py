import re
from datetime import datetime, timezone, timedelta

import pytest

from services.common import time_utils


def test_now_utc_returns_aware_datetime():
    result = time_utils.now_utc()
    assert isinstance(result, datetime)
    assert result.tzinfo == timezone.utc


def test_iso_utc_now_format():
    result = time_utils.iso_utc_now()
    assert re.match(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z$", result)


def test_to_iso_z_roundtrip_keeps_microseconds():
    now = datetime(2025, 9, 25, 12, 0, 0, 123456, tzinfo=timezone.utc)
    iso_str = time_utils.to_iso_z(now, timespec="microseconds")
    assert iso_str == "2025-09-25T12:00:00.123456Z"
    assert time_utils.parse_iso(iso_str) == now


def test_to_iso_z_treats_naive_as_utc():
    assert time_utils.to_iso_z(datetime(2025, 1, 2, 3, 4, 5)) == "2025-01-02T03:04:05Z"


def test_to_iso_z_converts_offsets_to_utc():
    dt = datetime(2025, 1, 1, 1, 0, tzinfo=timezone(timedelta(hours=2)))
    assert time_utils.to_iso_z(dt) == "2024-12-31T23:00:00Z"


def test_parse_iso_invalid_raises():
    with pytest.raises(ValueError):
        time_utils.parse_iso("not-a-timestamp")


def test_from_epoch():
    assert time_utils.from_epoch(None) is None
    assert time_utils.from_epoch(0) == datetime(1970, 1, 1, tzinfo=timezone.utc)


def test_same_utc_day_uses_utc_calendar():
    # 23:30 at UTC-5 is already the next day in UTC
    late_local = datetime(2025, 3, 1, 23, 30, tzinfo=timezone(timedelta(hours=-5)))
    assert not time_utils.same_utc_day(late_local, datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc))
    assert time_utils.same_utc_day(late_local, datetime(2025, 3, 2, 1, 0, tzinfo=timezone.utc))


def test_same_utc_month_across_years():
    assert not time_utils.same_utc_month(
        datetime(2024, 12, 31, 23, 59, tzinfo=timezone.utc),
        datetime(2025, 12, 1, 0, 0, tzinfo=timezone.utc),
    )
    assert time_utils.same_utc_month(
        datetime(2025, 12, 1, tzinfo=timezone.utc),
        datetime(2025, 12, 31, 23, 59, tzinfo=timezone.utc),
    )


def test_month_key_and_ymd_helpers():
    dt = datetime(2025, 12, 5, tzinfo=timezone.utc)
    assert time_utils.month_key(dt) == "2025-12"
    assert time_utils.ymd(dt) == "2025-12-05"
