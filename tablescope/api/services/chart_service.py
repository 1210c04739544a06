"""
Chart data service.

Turns a (table, x-axis, y-axes, chart type, aggregation) request into series
data that is bounded in size and ready for the chart renderer.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.engine import Connection, Engine

from tablescope.common.config import config
from tablescope.common.constants import (
    CHART_TYPES,
    MAX_PIE_CATEGORIES,
    MIN_PIE_CATEGORIES,
    OTHER_LABEL,
    UNKNOWN_LABEL,
)
from tablescope.common.errors import RequestValidationFailed
from tablescope.query.aggregation_policy import (
    Bucketing,
    BucketingDecision,
    bin_label,
    decide_bucketing,
    resolve_aggregation,
    with_numeric_bins,
)
from tablescope.query.column_types import is_integer_type
from tablescope.query.identifiers import is_valid_identifier
from tablescope.query.query_builder import Filters, QueryBuilder
from tablescope.query.schema_inspector import ColumnInfo, SchemaInspector

from .data_utils import format_rows, normalize_value, to_number

logger = logging.getLogger(__name__)


@dataclass
class ChartRequest:
    """A chart request as received from the client."""
    table: str
    x_axis: str
    y_axes: List[str]
    chart_type: str = 'bar'
    aggregation: str = 'auto'
    filters: Filters = field(default_factory=dict)


@dataclass
class ChartData:
    """Shaped series data for one chart."""
    series: List[Dict[str, Any]]
    chart_type: str
    x_axis: str
    y_axes: List[str]
    aggregations: Dict[str, str]
    bucketing: Optional[BucketingDecision] = None
    series_format: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            'data': self.series,
            'chartType': self.chart_type,
            'xAxis': self.x_axis,
            'yAxes': self.y_axes,
            'isAggregated': True,
            'seriesFormat': self.series_format,
            'aggregation': self.aggregations,
            'bucketing': self.bucketing.to_dict() if self.bucketing else None,
        }


def validate_chart_request(request: ChartRequest) -> None:
    """Reject requests that are incomplete or unsafe before touching the database."""
    needs_y = request.chart_type != 'histogram'
    if not request.table or not request.x_axis or (needs_y and not request.y_axes):
        raise RequestValidationFailed('Missing required parameters: table, xAxis, yAxis')

    names = [request.table, request.x_axis, *request.y_axes]
    if not all(is_valid_identifier(name) for name in names):
        raise RequestValidationFailed('Invalid parameter format')

    if request.chart_type not in CHART_TYPES:
        raise RequestValidationFailed(
            f"Unsupported chart type '{request.chart_type}'. Expected one of: {', '.join(CHART_TYPES)}"
        )

    if request.chart_type == 'pie' and len(request.y_axes) > 1:
        raise RequestValidationFailed('Pie charts only support a single y-axis')


def transform_pie_chart_data(rows: List[Mapping[str, Any]], max_slices: int = None) -> List[Dict[str, Any]]:
    """
    Merge rows by label, sort by value descending and collapse the tail.

    With more than ``max_slices`` labels, the top ``max_slices - 1`` are kept
    and the remainder is summed into a single "Other" slice. Every slice gets a
    ``percentage`` of the total.
    """
    max_slices = max_slices or config.dashboard.max_pie_slices

    aggregated: Dict[str, float] = {}
    for row in rows:
        raw_label = normalize_value(row.get('x'))
        label = str(raw_label) if raw_label not in (None, '') else UNKNOWN_LABEL
        aggregated[label] = aggregated.get(label, 0.0) + to_number(row.get('y'))

    entries = sorted(aggregated.items(), key=lambda item: item[1], reverse=True)

    if len(entries) > max_slices:
        kept = entries[:max_slices - 1]
        other_total = sum(value for _, value in entries[max_slices - 1:])
        entries = kept + [(OTHER_LABEL, other_total)]

    total = sum(value for _, value in entries)
    return [
        {
            'label': label,
            'value': value,
            'percentage': (value / total * 100) if total else 0.0,
        }
        for label, value in entries
    ]


def is_valid_categorical_data(values: List[Any]) -> bool:
    """A pie chart needs between 2 and 50 distinct categories."""
    unique_values = {str(normalize_value(value)) for value in values}
    return MIN_PIE_CATEGORIES <= len(unique_values) <= MAX_PIE_CATEGORIES


class ChartDataBuilder:
    """Runs the queries for one chart request on a single connection."""

    def __init__(self, engine: Engine, request: ChartRequest):
        self.engine = engine
        self.request = request
        self.settings = config.dashboard

        inspector = SchemaInspector(engine)
        available = inspector.get_columns_by_name(request.table)
        involved = [request.x_axis, *request.y_axes, *request.filters.keys()]
        self.columns: Dict[str, ColumnInfo] = inspector.require_columns(request.table, involved, available)
        self.builder = QueryBuilder(
            engine.dialect,
            request.table,
            list(available),
            request.filters
        )

    def build(self) -> ChartData:
        with self.engine.connect() as conn:
            if self.request.chart_type == 'pie':
                return self._pie_chart(conn)
            if self.request.chart_type == 'histogram':
                return self._histogram(conn)
            return self._series_chart(conn)

    # ------------------------------------------------------------------

    def _decide(self, conn: Connection) -> BucketingDecision:
        x_info = self.columns[self.request.x_axis]
        distinct_count = conn.execute(self.builder.distinct_count_query(x_info.name)).scalar() or 0
        decision = decide_bucketing(
            x_info.kind,
            distinct_count,
            max_points=self.settings.max_data_points,
            month_threshold=self.settings.month_bucket_threshold
        )

        if decision.strategy is Bucketing.NUMERIC_BIN:
            bounds = conn.execute(self.builder.range_query(x_info.name)).mappings().one()
            with_numeric_bins(
                decision,
                bounds['min_value'],
                bounds['max_value'],
                integer=is_integer_type(x_info.type),
                max_points=self.settings.max_data_points
            )

        logger.info(
            f"Chart {self.request.table}.{x_info.name}: {distinct_count} distinct x values "
            f"-> {decision.strategy.value}"
        )
        return decision

    def _series_points(self, conn: Connection, y_column: Optional[str], aggregation: str,
                       decision: BucketingDecision) -> List[Dict[str, Any]]:
        x_column = self.request.x_axis
        rows = conn.execute(
            self.builder.series_query(x_column, y_column, aggregation, decision)
        ).mappings().all()

        if decision.strategy is Bucketing.NUMERIC_BIN:
            points = [
                {
                    'x': bin_label(int(row['x']), decision.bin_start, decision.bin_width, decision.integer_bins),
                    'y': row['y'],
                }
                for row in rows
            ]
        else:
            points = [{'x': row['x'], 'y': row['y']} for row in rows]

        if decision.strategy is Bucketing.TOP_CATEGORIES:
            kept = [row['x'] for row in rows]
            other = conn.execute(
                self.builder.other_bucket_query(x_column, y_column, aggregation, kept)
            ).mappings().one()
            if other['group_size']:
                points.append({'x': OTHER_LABEL, 'y': other['y']})

        return format_rows(points)

    def _series_chart(self, conn: Connection) -> ChartData:
        aggregations = {
            y: resolve_aggregation(self.request.aggregation, self.columns[y].kind, self.request.chart_type)
            for y in self.request.y_axes
        }
        decision = self._decide(conn)

        series = [
            {'name': y, 'data': self._series_points(conn, y, aggregations[y], decision)}
            for y in self.request.y_axes
        ]
        return ChartData(
            series=series,
            chart_type=self.request.chart_type,
            x_axis=self.request.x_axis,
            y_axes=list(self.request.y_axes),
            aggregations=aggregations,
            bucketing=decision
        )

    def _histogram(self, conn: Connection) -> ChartData:
        decision = self._decide(conn)
        series = [{
            'name': self.request.x_axis,
            'data': self._series_points(conn, None, 'count', decision),
        }]
        return ChartData(
            series=series,
            chart_type='histogram',
            x_axis=self.request.x_axis,
            y_axes=list(self.request.y_axes),
            aggregations={self.request.x_axis: 'count'},
            bucketing=decision
        )

    def _pie_chart(self, conn: Connection) -> ChartData:
        y_column = self.request.y_axes[0]
        aggregation = resolve_aggregation(self.request.aggregation, self.columns[y_column].kind, 'pie')

        rows = conn.execute(
            self.builder.pie_query(self.request.x_axis, y_column, aggregation)
        ).mappings().all()

        if not is_valid_categorical_data([row['x'] for row in rows]):
            raise RequestValidationFailed(
                f"Pie chart requires categorical data with {MIN_PIE_CATEGORIES}-{MAX_PIE_CATEGORIES} unique categories"
            )

        return ChartData(
            series=[{'name': y_column, 'data': transform_pie_chart_data(rows, self.settings.max_pie_slices)}],
            chart_type='pie',
            x_axis=self.request.x_axis,
            y_axes=[y_column],
            aggregations={y_column: aggregation},
            series_format=False
        )


def build_chart_data(request: ChartRequest, engine: Engine) -> ChartData:
    """
    Build chart data for a request.

    Raises DashboardError subclasses for invalid requests; database errors
    propagate to the caller.
    """
    validate_chart_request(request)
    return ChartDataBuilder(engine, request).build()
