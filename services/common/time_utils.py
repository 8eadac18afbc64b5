# services/common/time_utils.py
from __future__ import annotations
from datetime import datetime, timezone

UTC = timezone.utc


def now_utc() -> datetime:
    """Return a timezone-aware UTC datetime."""
    return datetime.now(UTC)


def to_iso_z(dt: datetime, *, timespec: str = "seconds") -> str:
    """Serialize any datetime to ISO-8601 in UTC with trailing 'Z'."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).isoformat(timespec=timespec).replace("+00:00", "Z")


def iso_utc_now(*, timespec: str = "seconds") -> str:
    """Current UTC timestamp as ISO-8601 with 'Z' suffix."""
    return to_iso_z(now_utc(), timespec=timespec)


def parse_iso(s: str) -> datetime:
    """Parse ISO-8601 strings, including 'Z', into aware UTC datetimes."""
    dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def from_epoch(seconds) -> datetime | None:
    """Stripe-style unix seconds -> aware UTC datetime (None passes through)."""
    if seconds is None:
        return None
    return datetime.fromtimestamp(int(seconds), UTC)


# ---- Calendar boundaries (always compared in UTC) ---------------------------
def same_utc_day(a: datetime, b: datetime) -> bool:
    return a.astimezone(UTC).date() == b.astimezone(UTC).date()


def same_utc_month(a: datetime, b: datetime) -> bool:
    a, b = a.astimezone(UTC), b.astimezone(UTC)
    return (a.year, a.month) == (b.year, b.month)


def month_key(dt: datetime | None = None) -> str:
    """'YYYY-MM' in UTC."""
    dt = (dt or now_utc()).astimezone(UTC)
    return f"{dt.year}-{dt.month:02d}"


def ymd(dt: datetime | None = None) -> str:
    """'YYYY-MM-DD' in UTC."""
    dt = (dt or now_utc()).astimezone(UTC)
    return dt.date().isoformat()
