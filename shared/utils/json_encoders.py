# shared/utils/json_encoders.py

import json
from datetime import datetime
from decimal import Decimal
from enum import Enum

from services.common.time_utils import to_iso_z


def _convert(o):
    if isinstance(o, Decimal):
        return int(o) if o == o.to_integral_value() else float(o)
    if isinstance(o, datetime):
        return to_iso_z(o)
    if isinstance(o, Enum):
        return o.value
    raise TypeError(f"Object of type {type(o).__name__} is not JSON serializable")


class DecimalEncoder(json.JSONEncoder):
    def default(self, o):
        try:
            return _convert(o)
        except TypeError:
            return super().default(o)


def json_dumps_safe(obj) -> str:
    return json.dumps(obj, default=_convert)
