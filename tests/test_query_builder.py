"""Statement construction across dialects and filter parsing."""
import pytest
from sqlalchemy.dialects import mysql, postgresql, sqlite

from tablescope.api.services.filters import parse_filters
from tablescope.common.errors import InvalidIdentifierError, RequestValidationFailed
from tablescope.query.aggregation_policy import Bucketing, BucketingDecision
from tablescope.query.identifiers import is_valid_identifier, split_names
from tablescope.query.query_builder import QueryBuilder

COLUMNS = ['id', 'region', 'amount', 'created_at']


def _builder(dialect, filters=None):
    return QueryBuilder(dialect, 'orders', COLUMNS, filters)


def _sql(statement, dialect):
    return str(statement.compile(dialect=dialect)).lower()


def test_identifier_rules():
    assert is_valid_identifier('order_items2')
    assert not is_valid_identifier('orders; drop table x')
    assert not is_valid_identifier('`orders`')
    assert not is_valid_identifier('')
    assert split_names('a, b,,c ') == ['a', 'b', 'c']
    assert split_names(None) == []


def test_invalid_table_name_is_rejected():
    with pytest.raises(InvalidIdentifierError):
        QueryBuilder(sqlite.dialect(), 'orders--', COLUMNS)


def test_unknown_filter_column_is_rejected():
    with pytest.raises(RequestValidationFailed):
        _builder(sqlite.dialect(), {'missing': ['x']})


@pytest.mark.parametrize("dialect, fragment", [
    (mysql.dialect(), 'date_format(orders.created_at'),
    (postgresql.dialect(), 'to_char(orders.created_at'),
    (sqlite.dialect(), 'strftime('),
])
def test_time_buckets_are_dialect_specific(dialect, fragment):
    decision = BucketingDecision(Bucketing.TIME_BUCKET, 400, granularity='month')
    sql = _sql(_builder(dialect).series_query('created_at', 'amount', 'avg', decision), dialect)
    assert fragment in sql
    assert 'group by' in sql


def test_numeric_bins_floor_per_dialect():
    decision = BucketingDecision(Bucketing.NUMERIC_BIN, 500, bin_start=0.0, bin_width=20.0, bin_count=50)

    sqlite_sql = _sql(_builder(sqlite.dialect()).series_query('amount', None, 'count', decision), sqlite.dialect())
    assert 'cast(' in sqlite_sql and 'as integer' in sqlite_sql

    pg = postgresql.dialect()
    pg_sql = _sql(_builder(pg).series_query('amount', None, 'count', decision), pg)
    assert 'floor(' in pg_sql
    assert '20.0' in pg_sql


def test_top_categories_limit_and_other_bucket():
    dialect = sqlite.dialect()
    builder = _builder(dialect)
    decision = BucketingDecision(Bucketing.TOP_CATEGORIES, 80, top_n=49)

    top = builder.series_query('region', 'amount', 'sum', decision).compile(dialect=dialect)
    assert 'limit' in str(top).lower()
    assert 49 in top.params.values()

    other = builder.other_bucket_query('region', 'amount', 'sum', ['EU', 'US'])
    other_sql = _sql(other, dialect)
    assert 'not in' in other_sql
    assert 'is null' in other_sql


def test_filters_are_bound_parameters():
    dialect = mysql.dialect()
    builder = _builder(dialect, {'region': ["EU'; drop table orders; --", '__null__']})
    compiled = builder.rows_query(['id', 'region']).compile(dialect=dialect)

    assert 'drop table' not in str(compiled).lower()
    assert 'is null' in str(compiled).lower()
    assert any("EU'; drop table orders; --" in str(value) for value in compiled.params.values())


def test_rows_query_sorting_and_paging():
    dialect = sqlite.dialect()
    compiled = _builder(dialect).rows_query(['id'], sort_by='amount', sort_order='desc',
                                            limit=20, offset=40).compile(dialect=dialect)
    sql = str(compiled).lower()
    assert 'order by orders.amount desc' in sql
    assert 20 in compiled.params.values()
    assert 40 in compiled.params.values()


def test_export_casts_selected_columns_to_text():
    dialect = mysql.dialect()
    sql = _sql(_builder(dialect).export_query(['id', 'region'], text_columns=['id']), dialect)
    assert 'cast(orders.id as char)' in sql


def test_parse_filters_groups_values_by_column():
    params = {
        'filter_column_0': 'region', 'filter_value_0': 'EU',
        'filter_column_1': 'status', 'filter_value_1': 'open',
        'filter_column_2': 'region', 'filter_value_2': 'US',
        'filter_column_3': 'region', 'filter_value_3': 'EU',
        'table': 'orders',
    }
    assert parse_filters(params) == {'region': ['EU', 'US'], 'status': ['open']}


def test_parse_filters_validation():
    with pytest.raises(InvalidIdentifierError):
        parse_filters({'filter_column_0': 'a b', 'filter_value_0': 'x'})
    with pytest.raises(RequestValidationFailed):
        parse_filters({'filter_column_0': 'region'})
    assert parse_filters({'filter_column_0': '', 'filter_value_0': 'x'}) == {}


def test_numeric_bin_index_is_clamped_to_last_bin():
    dialect = postgresql.dialect()
    decision = BucketingDecision(Bucketing.NUMERIC_BIN, 500, bin_start=0.0, bin_width=2.0, bin_count=50)
    sql = _sql(_builder(dialect).series_query('amount', None, 'count', decision), dialect)

    assert 'case when' in sql
    assert 'then 49 else' in sql
    # GROUP BY repeats the clamped expression
    assert sql.count('case when') >= 2


def test_numeric_bins_require_a_bin_count():
    decision = BucketingDecision(Bucketing.NUMERIC_BIN, 500, bin_start=0.0, bin_width=2.0)
    with pytest.raises(ValueError):
        _builder(sqlite.dialect()).series_query('amount', None, 'count', decision)


@pytest.mark.parametrize("strategy, extra", [
    (Bucketing.RAW, {}),
    (Bucketing.TIME_BUCKET, {'granularity': 'day'}),
])
def test_series_skip_null_x(strategy, extra):
    dialect = sqlite.dialect()
    decision = BucketingDecision(strategy, 10, **extra)
    sql = _sql(_builder(dialect).series_query('created_at', 'amount', 'sum', decision), dialect)
    assert 'orders.created_at is not null' in sql
