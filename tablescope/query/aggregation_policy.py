"""
Aggregation policy for chart queries.

Decides how the x-axis is grouped so a chart never receives more than roughly
``MAX_DATA_POINTS`` groups, and which SQL aggregate reduces each y column.
"""
import math
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Optional

from ..common.constants import AGGREGATIONS, MAX_DATA_POINTS, MONTH_BUCKET_THRESHOLD
from ..common.errors import RequestValidationFailed
from .column_types import ColumnKind


class Bucketing(str, Enum):
    RAW = "raw"
    TIME_BUCKET = "time_bucket"
    NUMERIC_BIN = "numeric_bin"
    TOP_CATEGORIES = "top_categories"


@dataclass
class BucketingDecision:
    """How the x-axis of one chart request is grouped."""
    strategy: Bucketing
    distinct_count: int
    granularity: Optional[str] = None  # "day" or "month" for TIME_BUCKET
    bin_start: Optional[float] = None
    bin_width: Optional[float] = None
    bin_count: Optional[int] = None  # highest bin index is bin_count - 1
    integer_bins: bool = False
    top_n: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload['strategy'] = self.strategy.value
        return {key: value for key, value in payload.items() if value is not None}


def decide_bucketing(
    x_kind: ColumnKind,
    distinct_count: int,
    max_points: int = MAX_DATA_POINTS,
    month_threshold: int = MONTH_BUCKET_THRESHOLD
) -> BucketingDecision:
    """
    Pick a bucketing strategy from the x column's kind and distinct count.

    - <= max_points distinct values: group by the raw value
    - temporal: bucket by day, or by month above month_threshold distinct values
    - numeric: equal-width bins (bounds filled in by with_numeric_bins)
    - categorical: top (max_points - 1) categories plus "Other"
    """
    distinct_count = int(distinct_count or 0)

    if distinct_count <= max_points:
        return BucketingDecision(Bucketing.RAW, distinct_count)

    if x_kind is ColumnKind.TEMPORAL:
        granularity = 'month' if distinct_count > month_threshold else 'day'
        return BucketingDecision(Bucketing.TIME_BUCKET, distinct_count, granularity=granularity)

    if x_kind is ColumnKind.NUMERIC:
        return BucketingDecision(Bucketing.NUMERIC_BIN, distinct_count)

    return BucketingDecision(Bucketing.TOP_CATEGORIES, distinct_count, top_n=max_points - 1)


def with_numeric_bins(
    decision: BucketingDecision,
    min_value: Any,
    max_value: Any,
    integer: bool,
    max_points: int = MAX_DATA_POINTS
) -> BucketingDecision:
    """
    Fill in the start, width and count of numeric bins spanning [min_value, max_value].

    Bins are half-open except the last, which also holds max_value.
    """
    if min_value is None or max_value is None:
        low, high = 0.0, 0.0
    else:
        low, high = float(min_value), float(max_value)
    span = high - low

    if integer:
        start = float(math.floor(low))
        width = float(max(1, math.ceil((high - start) / max_points)))
        count = min(max_points, int((high - start) // width) + 1)
    else:
        start = low
        width = span / max_points if span > 0 else 1.0
        count = max_points if span > 0 else 1

    decision.bin_start = start
    decision.bin_width = width
    decision.bin_count = count
    decision.integer_bins = integer
    return decision


def _format_bound(value: float, integer: bool) -> str:
    if integer:
        return str(int(round(value)))
    text = format(round(value, 4), 'f')
    return text.rstrip('0').rstrip('.') if '.' in text else text


def bin_label(index: int, start: float, width: float, integer: bool = False) -> str:
    """Human readable label for numeric bin ``index``, e.g. ``"100 - 120"``."""
    low = start + index * width
    return f"{_format_bound(low, integer)} - {_format_bound(low + width, integer)}"


def resolve_aggregation(requested: Optional[str], y_kind: ColumnKind, chart_type: str) -> str:
    """
    Resolve the SQL aggregate for one y column.

    ``auto`` averages numeric columns (sums them for pie charts) and counts
    rows for anything else.
    """
    aggregation = (requested or 'auto').lower()
    if aggregation not in AGGREGATIONS:
        raise RequestValidationFailed(
            f"Unsupported aggregation '{requested}'. Expected one of: {', '.join(AGGREGATIONS)}"
        )

    numeric = y_kind is ColumnKind.NUMERIC
    if aggregation == 'auto':
        if not numeric:
            return 'count'
        return 'sum' if chart_type == 'pie' else 'avg'

    if aggregation != 'count' and not numeric:
        raise RequestValidationFailed(f"Aggregation '{aggregation}' requires a numeric y-axis column")

    return aggregation
