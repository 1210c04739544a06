"""
Data processing utilities for API responses.
Normalizes database values into JSON-safe values.
"""
import base64
import logging
import math
import uuid
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping

from tablescope.common.constants import MAX_SAFE_INTEGER

logger = logging.getLogger(__name__)


def _normalize_int(value: int):
    # Clients parse JSON numbers as doubles; keep big integers exact as strings
    if abs(value) > MAX_SAFE_INTEGER:
        return str(value)
    return value


def _normalize_bytes(value: bytes) -> str:
    try:
        return value.decode('utf-8')
    except UnicodeDecodeError:
        return base64.b64encode(value).decode('ascii')


def normalize_value(value: Any) -> Any:
    """Convert a single database value into something json.dumps accepts."""
    if value is None or isinstance(value, (bool, str)):
        return value

    if isinstance(value, int):
        return _normalize_int(value)

    if isinstance(value, float):
        return value if math.isfinite(value) else None

    if isinstance(value, Decimal):
        if not value.is_finite():
            return None
        if value == value.to_integral_value():
            return _normalize_int(int(value))
        return float(value)

    # datetime is a subclass of date, so it has to be checked first
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (date, time)):
        return value.isoformat()
    if isinstance(value, timedelta):
        return value.total_seconds()

    if isinstance(value, (bytes, bytearray, memoryview)):
        return _normalize_bytes(bytes(value))

    if isinstance(value, uuid.UUID):
        return str(value)

    if isinstance(value, Mapping):
        return {str(key): normalize_value(item) for key, item in value.items()}

    if isinstance(value, (list, tuple, set, frozenset)):
        return [normalize_value(item) for item in value]

    return str(value)


def format_rows(rows: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Format result rows for transport: dates, decimals, big integers, blobs."""
    return [{key: normalize_value(value) for key, value in row.items()} for row in rows]


def to_number(value: Any) -> float:
    """Best-effort numeric coercion for aggregated chart values (None -> 0)."""
    if value is None:
        return 0.0
    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        number = float(value)
        return number if math.isfinite(number) else 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        logger.debug(f"Non-numeric chart value treated as 0: {value!r}")
        return 0.0
    return number if math.isfinite(number) else 0.0
