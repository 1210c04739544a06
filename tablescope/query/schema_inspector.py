"""
Dialect-agnostic schema introspection through SQLAlchemy reflection.
Lists tables, columns and column types for any supported database.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy import inspect
from sqlalchemy.engine import Engine
from sqlalchemy.types import TypeEngine

from ..common.constants import SYSTEM_TABLE_PREFIXES
from ..common.errors import UnknownColumnError, UnknownTableError
from .column_types import ColumnKind, classify_type
from .identifiers import validate_identifier, validate_identifiers

logger = logging.getLogger(__name__)


@dataclass
class ColumnInfo:
    """Reflected column metadata."""
    name: str
    type: TypeEngine = field(repr=False)
    type_name: str
    kind: ColumnKind
    nullable: bool = True
    primary_key: bool = False
    default: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'type': self.type_name,
            'kind': self.kind.value,
            'nullable': self.nullable,
            'primary_key': self.primary_key,
            'default': self.default,
        }


def _type_name(column_type: TypeEngine, engine: Engine) -> str:
    try:
        return column_type.compile(dialect=engine.dialect).lower()
    except Exception:
        return type(column_type).__name__.lower()


class SchemaInspector:
    """
    Schema inspector bound to one engine.

    A fresh SQLAlchemy Inspector is created per call so schema changes made
    while the server runs are picked up.
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    def list_tables(self) -> List[str]:
        """List user tables and views, sorted by name."""
        inspector = inspect(self.engine)
        names = set(inspector.get_table_names())
        names.update(inspector.get_view_names())
        tables = sorted(
            name for name in names
            if not any(name.lower().startswith(prefix) for prefix in SYSTEM_TABLE_PREFIXES)
        )
        logger.debug(f"Found {len(tables)} tables")
        return tables

    def require_table(self, table: str) -> str:
        validate_identifier(table)
        if table not in self.list_tables():
            raise UnknownTableError(table)
        return table

    def list_columns(self, table: str) -> List[ColumnInfo]:
        """Reflect the columns of a table in declaration order."""
        self.require_table(table)
        inspector = inspect(self.engine)
        pk_columns = set(inspector.get_pk_constraint(table).get('constrained_columns') or [])

        columns = []
        for col in inspector.get_columns(table):
            default = col.get('default')
            columns.append(ColumnInfo(
                name=col['name'],
                type=col['type'],
                type_name=_type_name(col['type'], self.engine),
                kind=classify_type(col['type']),
                nullable=bool(col.get('nullable', True)),
                primary_key=col['name'] in pk_columns,
                default=str(default) if default is not None else None,
            ))
        return columns

    def get_columns_by_name(self, table: str) -> Dict[str, ColumnInfo]:
        return {col.name: col for col in self.list_columns(table)}

    def require_columns(self, table: str, columns: List[str],
                        available: Optional[Dict[str, ColumnInfo]] = None) -> Dict[str, ColumnInfo]:
        """
        Return metadata for the requested columns, raising if any is missing.

        Pass ``available`` (from get_columns_by_name) to reuse an earlier reflection.
        """
        validate_identifiers(columns)
        if available is None:
            available = self.get_columns_by_name(table)
        for name in columns:
            if name not in available:
                raise UnknownColumnError(table, name)
        return {name: available[name] for name in columns}

    def get_column_type(self, table: str, column: str) -> str:
        """Lowercase declared type name, or "" when the column is unknown."""
        info = self.get_columns_by_name(table).get(column)
        return info.type_name if info else ""

    def get_column_kind(self, table: str, column: str) -> ColumnKind:
        return self.require_columns(table, [column])[column].kind
