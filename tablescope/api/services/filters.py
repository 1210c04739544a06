"""
Row filter parsing.

Clients send filters as numbered query parameter pairs::

    ?filter_column_0=region&filter_value_0=EU&filter_column_1=region&filter_value_1=US

Values for the same column are OR-ed, different columns are AND-ed.
"""
import re
from typing import Dict, List, Mapping, Optional

from tablescope.common.constants import FILTER_COLUMN_PREFIX, FILTER_VALUE_PREFIX
from tablescope.common.errors import RequestValidationFailed
from tablescope.query.identifiers import validate_identifier

_FILTER_KEY = re.compile(rf"^{FILTER_COLUMN_PREFIX}(\d+)$")


def parse_filters(params: Mapping[str, str]) -> Dict[str, List[Optional[str]]]:
    """Collect ``filter_column_N``/``filter_value_N`` pairs into column -> values."""
    indexed = []
    for key in params.keys():
        match = _FILTER_KEY.match(key)
        if match:
            indexed.append(int(match.group(1)))

    filters: Dict[str, List[Optional[str]]] = {}
    for index in sorted(indexed):
        column = params.get(f"{FILTER_COLUMN_PREFIX}{index}", "").strip()
        if not column:
            continue
        validate_identifier(column, "Invalid filter column format")

        value_key = f"{FILTER_VALUE_PREFIX}{index}"
        if value_key not in params:
            raise RequestValidationFailed(f"Missing {value_key} for filter column '{column}'")

        values = filters.setdefault(column, [])
        value = params[value_key]
        if value not in values:
            values.append(value)

    return filters
