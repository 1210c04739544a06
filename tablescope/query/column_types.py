"""
Column type classification.

Every column involved in a chart is reduced to one of three kinds, which drive
aggregation and bucketing choices.
"""
import re
from enum import Enum
from typing import Any, Union

from sqlalchemy import types as sqltypes


class ColumnKind(str, Enum):
    NUMERIC = "numeric"
    TEMPORAL = "temporal"
    CATEGORICAL = "categorical"


INTEGER_TYPE_NAMES = frozenset(['int', 'integer', 'tinyint', 'smallint', 'mediumint', 'bigint',
                                'serial', 'bigserial', 'smallserial'])
NUMERIC_TYPE_NAMES = INTEGER_TYPE_NAMES | frozenset(['decimal', 'float', 'double', 'numeric', 'real', 'number'])
TEMPORAL_TYPE_NAMES = frozenset(['date', 'time', 'year', 'timestamp', 'datetime', 'timestamptz',
                                 'timetz', 'datetime2', 'smalldatetime', 'datetimeoffset'])

# "double precision", "unsigned int", "timestamp with time zone" etc.
_TYPE_WORD = re.compile(r"[a-z0-9]+")


def _type_words(type_name: str):
    return _TYPE_WORD.findall(type_name.lower().split("(")[0])


def classify_type_name(type_name: str) -> ColumnKind:
    """Classify a declared type name such as ``DECIMAL(10, 2)`` or ``bigint unsigned``."""
    words = _type_words(type_name or "")
    if any(word in NUMERIC_TYPE_NAMES for word in words):
        return ColumnKind.NUMERIC
    if any(word in TEMPORAL_TYPE_NAMES for word in words):
        return ColumnKind.TEMPORAL
    return ColumnKind.CATEGORICAL


def classify_type(column_type: Union[sqltypes.TypeEngine, str, Any]) -> ColumnKind:
    """Classify a reflected SQLAlchemy type, falling back to its name."""
    if isinstance(column_type, sqltypes.TypeEngine):
        if isinstance(column_type, sqltypes.Boolean):
            return ColumnKind.CATEGORICAL
        if isinstance(column_type, (sqltypes.Integer, sqltypes.Numeric, sqltypes.Float)):
            return ColumnKind.NUMERIC
        if isinstance(column_type, (sqltypes.Date, sqltypes.DateTime, sqltypes.Time)):
            return ColumnKind.TEMPORAL
        # Dialect-specific types (MySQL YEAR, NullType, ...) go by name
        try:
            type_name = column_type.compile()
        except Exception:
            type_name = type(column_type).__name__
        return classify_type_name(type_name)

    return classify_type_name(str(column_type or ""))


def is_integer_type(column_type: Any) -> bool:
    """True for exact whole-number types (used to pick integer bin widths)."""
    if isinstance(column_type, sqltypes.Integer):
        return True
    if isinstance(column_type, sqltypes.TypeEngine):
        if isinstance(column_type, sqltypes.Numeric) and not isinstance(column_type, sqltypes.Float):
            return column_type.scale == 0
        return False
    return any(word in INTEGER_TYPE_NAMES for word in _type_words(str(column_type or "")))
