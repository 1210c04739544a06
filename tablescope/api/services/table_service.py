"""
Table browsing service: schema listing, paginated rows and distinct values.
"""
import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy.engine import Engine

from tablescope.common.config import config
from tablescope.common.errors import RequestValidationFailed
from tablescope.query.identifiers import validate_identifier, validate_identifiers
from tablescope.query.query_builder import Filters, QueryBuilder
from tablescope.query.schema_inspector import SchemaInspector

from .data_utils import format_rows

logger = logging.getLogger(__name__)


@dataclass
class PageRequest:
    """Paginated table view request."""
    table: str
    columns: List[str]
    page: int = 1
    page_size: Optional[int] = None
    sort_by: Optional[str] = None
    sort_order: str = 'asc'
    filters: Optional[Filters] = None


@dataclass
class PageResult:
    rows: List[Dict[str, Any]]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'rows': self.rows,
            'pagination': {
                'total': self.total,
                'page': self.page,
                'limit': self.limit,
                'totalPages': self.total_pages,
            }
        }


def list_tables(engine: Engine) -> List[str]:
    return SchemaInspector(engine).list_tables()


def list_columns(engine: Engine, table: str) -> Dict[str, Any]:
    validate_identifier(table, 'Invalid table name format')
    details = SchemaInspector(engine).list_columns(table)
    names = [col.name for col in details]
    logger.info(f"Found columns for table {table}: {names}")
    return {
        'columns': names,
        'details': [col.to_dict() for col in details],
        'count': len(names),
    }


def _builder_for(engine: Engine, table: str, referenced: List[str], filters: Optional[Filters]) -> QueryBuilder:
    """Check every referenced column against the schema and return a builder."""
    inspector = SchemaInspector(engine)
    available = inspector.get_columns_by_name(table)
    inspector.require_columns(table, [*referenced, *(filters or {}).keys()], available)
    return QueryBuilder(engine.dialect, table, list(available), filters)


def _resolve_page_size(page_size: Optional[int]) -> int:
    settings = config.dashboard
    if page_size is None:
        return settings.default_page_size
    if page_size < 1:
        raise RequestValidationFailed('Page size must be a positive integer')
    return min(page_size, settings.max_page_size)


def fetch_page(engine: Engine, request: PageRequest) -> PageResult:
    """Fetch one page of rows plus the filtered total for pagination."""
    if not request.table or not request.columns:
        raise RequestValidationFailed('Table and columns are required')
    validate_identifiers([request.table, *request.columns], 'Invalid table or column name format')
    if request.page < 1:
        raise RequestValidationFailed('Page must be a positive integer')

    sort_order = (request.sort_order or 'asc').lower()
    if sort_order not in ('asc', 'desc'):
        raise RequestValidationFailed("sortOrder must be 'asc' or 'desc'")

    referenced = list(request.columns)
    if request.sort_by:
        validate_identifier(request.sort_by, 'Invalid sort column format')
        referenced.append(request.sort_by)

    limit = _resolve_page_size(request.page_size)
    builder = _builder_for(engine, request.table, referenced, request.filters)

    with engine.connect() as conn:
        total = conn.execute(builder.count_query()).scalar() or 0
        result = conn.execute(builder.rows_query(
            request.columns,
            sort_by=request.sort_by,
            sort_order=sort_order,
            limit=limit,
            offset=(request.page - 1) * limit
        ))
        rows = format_rows(result.mappings().all())

    return PageResult(rows=rows, total=int(total), page=request.page, limit=limit)


def fetch_distinct_values(engine: Engine, table: str, column: str,
                          filters: Optional[Filters] = None) -> Dict[str, Any]:
    """
    Distinct values of a column with their frequencies.

    Columns where more than 95% of the values are unique are reported as
    ID-like instead, since they are useless for filtering or grouping.
    """
    if not table or not column:
        raise RequestValidationFailed('Table and column are required')
    validate_identifiers([table, column], 'Invalid table or column name format')

    settings = config.dashboard
    builder = _builder_for(engine, table, [column], filters)

    with engine.connect() as conn:
        counts = conn.execute(builder.uniqueness_query(column)).mappings().one()
        total_count = int(counts['total_count'] or 0)
        distinct_count = int(counts['distinct_count'] or 0)

        uniqueness_ratio = distinct_count / total_count if total_count else 0.0
        logger.debug(f"{table}.{column}: {distinct_count}/{total_count} distinct (ratio {uniqueness_ratio:.3f})")

        if uniqueness_ratio > settings.id_uniqueness_ratio:
            logger.info(f"Column {table}.{column} identified as ID-like column")
            return {
                'isIdColumn': True,
                'uniquenessRatio': uniqueness_ratio,
                'message': 'Column contains mostly unique values',
            }

        rows = conn.execute(
            builder.distinct_values_query(column, settings.distinct_values_limit)
        ).mappings().all()

    values = format_rows(rows)
    logger.info(f"Found {len(values)} distinct values for {table}.{column}")
    return {
        'isIdColumn': False,
        'values': values,
        'total': distinct_count,
    }
