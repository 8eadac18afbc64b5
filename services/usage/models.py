from datetime import datetime
from enum import Enum
from typing import Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, field_serializer

from services.common.ddb_utils import ddb_safe, from_ddb
from services.common.time_utils import now_utc, to_iso_z, parse_iso


class IndexingChannel(str, Enum):
    GSC = "GSC"
    INDEXNOW = "INDEXNOW"
    BULK_GSC = "BULK_GSC"
    BULK_INDEXNOW = "BULK_INDEXNOW"


class OperationType(str, Enum):
    GSC = "gsc"
    INDEXNOW = "indexnow"
    BULK_GSC = "bulk_gsc"
    BULK_INDEXNOW = "bulk_indexnow"

    @property
    def is_bulk(self) -> bool:
        return self in (OperationType.BULK_GSC, OperationType.BULK_INDEXNOW)

    @property
    def base(self) -> "OperationType":
        """Bulk operations meter against their single-URL counterpart."""
        return {
            OperationType.BULK_GSC: OperationType.GSC,
            OperationType.BULK_INDEXNOW: OperationType.INDEXNOW,
        }.get(self, self)

    @property
    def channel(self) -> IndexingChannel:
        return IndexingChannel[self.name]


# daily counter checked against the plan limit, per base operation
DAILY_COUNTER = {
    OperationType.GSC: "gsc_requests_today",
    OperationType.INDEXNOW: "index_now_requests_today",
}

# every counter a committed operation moves, per base operation
COMMIT_COUNTERS = {
    OperationType.GSC: (
        "gsc_requests_today", "gsc_requests_this_month", "total_gsc_requests",
        "urls_indexed_today", "urls_indexed_this_month", "total_urls_indexed",
    ),
    OperationType.INDEXNOW: (
        "index_now_requests_today",
        "urls_indexed_today", "urls_indexed_this_month", "total_urls_indexed",
    ),
}

DAILY_FIELDS = ("gsc_requests_today", "index_now_requests_today", "urls_indexed_today")
MONTHLY_FIELDS = ("gsc_requests_this_month", "urls_indexed_this_month")


class UsageRecord(BaseModel):
    user_id: str

    gsc_requests_today: int = 0
    index_now_requests_today: int = 0
    urls_indexed_today: int = 0

    gsc_requests_this_month: int = 0
    urls_indexed_this_month: int = 0

    total_gsc_requests: int = 0
    total_urls_indexed: int = 0

    last_reset_date: datetime = Field(default_factory=now_utc)
    last_monthly_reset: datetime = Field(default_factory=now_utc)

    @field_validator("last_reset_date", "last_monthly_reset", mode="before")
    @classmethod
    def _parse_ts(cls, v):
        if isinstance(v, str):
            return parse_iso(v)
        return v

    @field_serializer("last_reset_date", "last_monthly_reset")
    def _ser_ts(self, v: datetime) -> str:
        return to_iso_z(v, timespec="microseconds")

    @classmethod
    def from_dynamodb(cls, item: dict) -> "UsageRecord":
        return cls(**from_ddb(item))

    def for_dynamodb(self) -> dict:
        return ddb_safe(self.model_dump(mode="python"))

    def counters(self) -> dict:
        return self.model_dump(exclude={"user_id", "last_reset_date", "last_monthly_reset"})


class IndexingLogEntry(BaseModel):
    log_id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: str
    url: str
    channel: IndexingChannel
    status: Literal["success", "error", "pending"]
    message: Optional[str] = None
    created_at: datetime = Field(default_factory=now_utc)

    @field_validator("created_at", mode="before")
    @classmethod
    def _parse_ts(cls, v):
        if isinstance(v, str):
            return parse_iso(v)
        return v

    @field_serializer("created_at")
    def _ser_ts(self, v: datetime) -> str:
        return to_iso_z(v, timespec="milliseconds")

    @property
    def sort_key(self) -> str:
        # newest-first queries sort on this; log_id breaks same-millisecond ties
        return f"{to_iso_z(self.created_at, timespec='milliseconds')}#{self.log_id}"

    def for_dynamodb(self) -> dict:
        item = ddb_safe(self.model_dump(mode="python"))
        item["log_key"] = self.sort_key
        return item
