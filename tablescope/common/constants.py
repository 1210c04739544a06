"""
Common constants used across the application.
"""

# Chart sizing
MAX_DATA_POINTS = 50
MONTH_BUCKET_THRESHOLD = 365
MAX_PIE_SLICES = 10
MIN_PIE_CATEGORIES = 2
MAX_PIE_CATEGORIES = 50
OTHER_LABEL = "Other"
UNKNOWN_LABEL = "Unknown"

# Supported chart types and aggregation modes
CHART_TYPES = ("bar", "line", "pie", "histogram")
AGGREGATIONS = ("auto", "sum", "avg", "count", "min", "max")

# Table view
DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 1000
DISTINCT_VALUES_LIMIT = 1000
ID_COLUMN_UNIQUENESS_RATIO = 0.95

# Filters
FILTER_COLUMN_PREFIX = "filter_column_"
FILTER_VALUE_PREFIX = "filter_value_"
NULL_FILTER_TOKEN = "__null__"

# Export
CSV_CHUNK_SIZE = 1000

# JavaScript Number.MAX_SAFE_INTEGER
MAX_SAFE_INTEGER = 2 ** 53 - 1

# Identifiers
IDENTIFIER_PATTERN = r"^[a-zA-Z0-9_]+$"
SYSTEM_TABLE_PREFIXES = ['sqlite_', 'pg_', 'information_schema']
