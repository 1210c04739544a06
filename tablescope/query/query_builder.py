"""
Read-only query construction for table views and chart data.

Queries are SQLAlchemy Core statements: identifiers are validated against the
reflected schema before they reach this module and every user supplied value
is sent as a bound parameter.
"""
import logging
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy import Integer, String, and_, case, cast, column, func, literal_column, or_, select, table
from sqlalchemy.engine import Dialect
from sqlalchemy.sql import ColumnElement, Select

from ..common.constants import NULL_FILTER_TOKEN
from ..common.errors import RequestValidationFailed
from .aggregation_policy import Bucketing, BucketingDecision
from .identifiers import validate_identifier

logger = logging.getLogger(__name__)

TIME_BUCKET_FORMATS = {
    # granularity -> (strftime / DATE_FORMAT pattern, to_char pattern, prefix length)
    'day': ('%Y-%m-%d', 'YYYY-MM-DD', 10),
    'month': ('%Y-%m', 'YYYY-MM', 7),
}

# Column filters: column name -> accepted values (OR-ed); columns are AND-ed
Filters = Dict[str, List[Optional[str]]]


class QueryBuilder:
    """Builds statements against a single table for one SQL dialect."""

    def __init__(self, dialect: Dialect, table_name: str, column_names: Iterable[str],
                 filters: Optional[Filters] = None):
        self.dialect = dialect
        self.table_name = validate_identifier(table_name)
        self.table = table(self.table_name, *(column(validate_identifier(name)) for name in column_names))
        self.filters = filters or {}
        for name in self.filters:
            self.col(name)

    # ------------------------------------------------------------------
    # Expression helpers
    # ------------------------------------------------------------------

    def col(self, name: str) -> ColumnElement:
        try:
            return self.table.c[name]
        except KeyError:
            raise RequestValidationFailed(f"Unknown column: {name}") from None

    def where_clause(self) -> Optional[ColumnElement]:
        """AND of one OR-group per filtered column."""
        clauses = []
        for name, values in self.filters.items():
            target = self.col(name)
            concrete = [value for value in values if value is not None and value != NULL_FILTER_TOKEN]
            wants_null = len(concrete) != len(values)

            options = []
            if concrete:
                options.append(target.in_(concrete))
            if wants_null:
                options.append(target.is_(None))
            if options:
                clauses.append(or_(*options) if len(options) > 1 else options[0])

        if not clauses:
            return None
        return and_(*clauses)

    def _filtered(self, stmt: Select) -> Select:
        clause = self.where_clause()
        return stmt.where(clause) if clause is not None else stmt

    def aggregate(self, y_column: Optional[str], aggregation: str) -> ColumnElement:
        if aggregation == 'count' or y_column is None:
            return func.count()
        functions = {'sum': func.sum, 'avg': func.avg, 'min': func.min, 'max': func.max}
        if aggregation not in functions:
            raise RequestValidationFailed(f"Unsupported aggregation '{aggregation}'")
        return functions[aggregation](self.col(y_column))

    def floor(self, expr: ColumnElement) -> ColumnElement:
        # Only applied to non-negative values, where truncation equals floor.
        # SQLite builds without math functions have no FLOOR().
        if self.dialect.name == 'sqlite':
            return cast(expr, Integer)
        return func.floor(expr)

    def time_bucket(self, expr: ColumnElement, granularity: str) -> ColumnElement:
        """Truncate a temporal expression to a sortable day/month string."""
        strftime_pattern, to_char_pattern, prefix = TIME_BUCKET_FORMATS[granularity]
        name = self.dialect.name
        if name in ('mysql', 'mariadb'):
            return func.date_format(expr, strftime_pattern)
        if name == 'postgresql':
            return func.to_char(expr, to_char_pattern)
        if name == 'sqlite':
            return func.strftime(strftime_pattern, expr)
        return func.substr(cast(expr, String), 1, prefix)

    # ------------------------------------------------------------------
    # Chart queries
    # ------------------------------------------------------------------

    def distinct_count_query(self, x_column: str) -> Select:
        return self._filtered(select(func.count(self.col(x_column).distinct()).label('count')))

    def range_query(self, x_column: str) -> Select:
        target = self.col(x_column)
        return self._filtered(select(func.min(target).label('min_value'), func.max(target).label('max_value')))

    def series_query(self, x_column: str, y_column: Optional[str], aggregation: str,
                     decision: BucketingDecision) -> Select:
        """
        One (x, y) row per group for a single series.

        For NUMERIC_BIN the x column holds the bin index; callers turn it into
        a label with aggregation_policy.bin_label. Except for TOP_CATEGORIES,
        rows with a NULL x are skipped, matching the distinct count behind
        the decision.
        """
        x = self.col(x_column)
        y = self.aggregate(y_column, aggregation).label('y')

        if decision.strategy is Bucketing.RAW:
            stmt = select(x.label('x'), y).where(x.is_not(None)).group_by(x).order_by(x)
            return self._filtered(stmt)

        if decision.strategy is Bucketing.TIME_BUCKET:
            bucket = self.time_bucket(x, decision.granularity)
            stmt = select(bucket.label('x'), y).where(x.is_not(None)).group_by(bucket).order_by(bucket)
            return self._filtered(stmt)

        if decision.strategy is Bucketing.NUMERIC_BIN:
            if None in (decision.bin_start, decision.bin_width, decision.bin_count):
                raise ValueError("Numeric bins require bin_start, bin_width and bin_count")
            # Bounds are inlined so SELECT and GROUP BY render the same expression
            start = literal_column(repr(float(decision.bin_start)))
            width = literal_column(repr(float(decision.bin_width)))
            last = literal_column(str(int(decision.bin_count) - 1))
            raw_index = self.floor((x - start) / width)
            # The maximum falls on the upper edge of the last bin
            index = case((raw_index > last, last), else_=raw_index)
            stmt = select(index.label('x'), y).where(x.is_not(None)).group_by(index).order_by(index)
            return self._filtered(stmt)

        if decision.strategy is Bucketing.TOP_CATEGORIES:
            group_size = func.count().label('group_size')
            ranked = self._filtered(
                select(x.label('x'), y, group_size)
                .group_by(x)
                .order_by(group_size.desc(), x)
                .limit(decision.top_n)
            ).subquery('ranked')
            return select(ranked.c.x, ranked.c.y).order_by(ranked.c.x)

        raise ValueError(f"Unknown bucketing strategy: {decision.strategy}")

    def other_bucket_query(self, x_column: str, y_column: Optional[str], aggregation: str,
                           kept_values: Sequence) -> Select:
        """Single aggregated row over every x value not in ``kept_values``."""
        x = self.col(x_column)
        concrete = [value for value in kept_values if value is not None]

        conditions = []
        if concrete:
            conditions.append(x.not_in(concrete))
        else:
            conditions.append(x.is_not(None))
        if len(concrete) == len(kept_values):
            conditions.append(x.is_(None))

        stmt = select(
            self.aggregate(y_column, aggregation).label('y'),
            func.count().label('group_size')
        ).select_from(self.table).where(or_(*conditions))
        return self._filtered(stmt)

    def pie_query(self, x_column: str, y_column: str, aggregation: str) -> Select:
        x = self.col(x_column)
        y = self.aggregate(y_column, aggregation)
        stmt = (
            select(x.label('x'), y.label('y'))
            .where(x.is_not(None))
            .group_by(x)
            .order_by(y.desc())
        )
        return self._filtered(stmt)

    # ------------------------------------------------------------------
    # Table view queries
    # ------------------------------------------------------------------

    def count_query(self) -> Select:
        return self._filtered(select(func.count().label('total')).select_from(self.table))

    def rows_query(self, columns: Sequence[str], sort_by: Optional[str] = None, sort_order: str = 'asc',
                   limit: Optional[int] = None, offset: int = 0) -> Select:
        stmt = self._filtered(select(*(self.col(name) for name in columns)))
        if sort_by:
            key = self.col(sort_by)
            stmt = stmt.order_by(key.desc() if sort_order == 'desc' else key.asc())
        if limit is not None:
            stmt = stmt.limit(limit).offset(offset)
        return stmt

    def uniqueness_query(self, column_name: str) -> Select:
        target = self.col(column_name)
        return self._filtered(select(
            func.count().label('total_count'),
            func.count(target.distinct()).label('distinct_count')
        ).select_from(self.table))

    def distinct_values_query(self, column_name: str, limit: int) -> Select:
        target = self.col(column_name)
        frequency = func.count().label('count')
        stmt = (
            select(target.label('value'), frequency)
            .where(target.is_not(None))
            .group_by(target)
            .order_by(frequency.desc(), target.asc())
            .limit(limit)
        )
        return self._filtered(stmt)

    def export_query(self, columns: Sequence[str], text_columns: Iterable[str] = ()) -> Select:
        """Select ``columns``; exact numeric ones are cast to text for lossless CSV."""
        as_text = set(text_columns)
        selected = [
            cast(self.col(name), String).label(name) if name in as_text else self.col(name)
            for name in columns
        ]
        return self._filtered(select(*selected))
