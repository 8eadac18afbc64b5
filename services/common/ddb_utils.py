# services/common/ddb_utils.py
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Optional

from botocore.exceptions import ClientError
from services.common.time_utils import to_iso_z


def ddb_safe(value: Any):
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal) or isinstance(value, int) or value is None or isinstance(value, (str, bool)):
        return value
    if isinstance(value, datetime):
        return to_iso_z(value)
    if isinstance(value, Mapping):
        # DynamoDB rejects explicit NULLs on key/index attributes; drop them.
        return {k: ddb_safe(v) for k, v in value.items() if v is not None}
    if isinstance(value, (list, tuple, set)):
        t = [ddb_safe(v) for v in value]
        return t if not isinstance(value, set) else set(t)
    return str(value)


def from_ddb(value: Any):
    """Decimal -> int (or float when fractional), recursively."""
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, Mapping):
        return {k: from_ddb(v) for k, v in value.items()}
    if isinstance(value, list):
        return [from_ddb(v) for v in value]
    return value


def is_conditional_failure(err: ClientError) -> bool:
    return err.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException"


def get_dynamodb(dynamodb: Optional[object] = None):
    if dynamodb is None:
        import boto3
        dynamodb = boto3.resource("dynamodb")
    return dynamodb
