"""Schema introspection, aggregation policy and query building."""
from .column_types import ColumnKind, classify_type, classify_type_name
from .schema_inspector import ColumnInfo, SchemaInspector

__all__ = ['ColumnKind', 'classify_type', 'classify_type_name', 'ColumnInfo', 'SchemaInspector']
