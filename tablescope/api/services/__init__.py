"""Service-layer helpers for API orchestration."""
from .chart_service import ChartRequest, build_chart_data
from .data_utils import format_rows, normalize_value

__all__ = ["ChartRequest", "build_chart_data", "format_rows", "normalize_value"]
