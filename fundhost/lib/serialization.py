"""JSON serialization for JSON columns."""

import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum


def _default(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def json_dumps(value) -> str:
    """json.dumps that also accepts datetimes, enums and decimals."""
    return json.dumps(value, default=_default)


__all__ = ["json_dumps"]
