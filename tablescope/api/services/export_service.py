"""
CSV export service.

Streams the selected columns of a table as CSV. Exact numeric columns are cast
to text in SQL so large identifiers (phone numbers, bigint keys) are written
verbatim instead of in scientific notation.
"""
import logging
from dataclasses import dataclass
from io import StringIO
from typing import Iterator, List, Optional

from sqlalchemy import types as sqltypes
from sqlalchemy.engine import Engine

from tablescope.common.config import config
from tablescope.common.errors import RequestValidationFailed
from tablescope.query.column_types import ColumnKind
from tablescope.query.identifiers import validate_identifiers
from tablescope.query.query_builder import Filters, QueryBuilder
from tablescope.query.schema_inspector import ColumnInfo, SchemaInspector

logger = logging.getLogger(__name__)


@dataclass
class ExportPlan:
    """A validated export: the statement to run and the download name."""
    builder: QueryBuilder
    columns: List[str]
    text_columns: List[str]
    filename: str


def _is_exact_numeric(info: ColumnInfo) -> bool:
    if info.kind is not ColumnKind.NUMERIC:
        return False
    return not isinstance(info.type, sqltypes.Float) and 'float' not in info.type_name \
        and 'double' not in info.type_name and 'real' not in info.type_name


def plan_export(engine: Engine, table: str, columns: List[str],
                filters: Optional[Filters] = None) -> ExportPlan:
    """Validate an export request before any response is started."""
    if not table or not columns:
        raise RequestValidationFailed('Table and columns are required')
    validate_identifiers([table, *columns], 'Invalid table or column name format')

    inspector = SchemaInspector(engine)
    available = inspector.get_columns_by_name(table)
    selected = inspector.require_columns(table, [*columns, *(filters or {}).keys()], available)

    text_columns = [name for name in columns if _is_exact_numeric(selected[name])]
    builder = QueryBuilder(engine.dialect, table, list(available), filters)
    return ExportPlan(
        builder=builder,
        columns=list(columns),
        text_columns=text_columns,
        filename=f"{table}_export.csv"
    )


def generate_csv(engine: Engine, plan: ExportPlan, chunk_size: Optional[int] = None) -> Iterator[str]:
    """Yield the CSV document chunk by chunk, header first."""
    import pandas as pd  # Lazy import - only needed for CSV export

    chunk_size = chunk_size or config.dashboard.csv_chunk_size
    statement = plan.builder.export_query(plan.columns, plan.text_columns)

    with engine.connect() as conn:
        first_chunk = True
        rows_written = 0
        for chunk_df in pd.read_sql(statement, conn, chunksize=chunk_size, coerce_float=False):
            csv_buffer = StringIO()
            chunk_df.to_csv(csv_buffer, index=False, header=first_chunk, columns=plan.columns, lineterminator='\n')
            rows_written += len(chunk_df)
            first_chunk = False
            yield csv_buffer.getvalue()

        if first_chunk:
            # No rows: still emit the header line
            yield ','.join(plan.columns) + '\n'

    logger.info(f"Exported {rows_written} rows from {plan.builder.table_name}")
