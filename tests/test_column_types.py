"""Column type classification."""
import pytest
from sqlalchemy import BigInteger, Boolean, Date, DateTime, Float, Integer, Numeric, String, Text, Time

from tablescope.query.column_types import (
    ColumnKind,
    classify_type,
    classify_type_name,
    is_integer_type,
)


@pytest.mark.parametrize("type_name, expected", [
    ("int", ColumnKind.NUMERIC),
    ("bigint unsigned", ColumnKind.NUMERIC),
    ("DECIMAL(10, 2)", ColumnKind.NUMERIC),
    ("double precision", ColumnKind.NUMERIC),
    ("numeric", ColumnKind.NUMERIC),
    ("date", ColumnKind.TEMPORAL),
    ("datetime", ColumnKind.TEMPORAL),
    ("timestamp with time zone", ColumnKind.TEMPORAL),
    ("year(4)", ColumnKind.TEMPORAL),
    ("varchar(255)", ColumnKind.CATEGORICAL),
    ("text", ColumnKind.CATEGORICAL),
    ("interval", ColumnKind.CATEGORICAL),
    ("point", ColumnKind.CATEGORICAL),
    ("", ColumnKind.CATEGORICAL),
])
def test_classify_type_name(type_name, expected):
    assert classify_type_name(type_name) is expected


@pytest.mark.parametrize("column_type, expected", [
    (Integer(), ColumnKind.NUMERIC),
    (BigInteger(), ColumnKind.NUMERIC),
    (Numeric(10, 2), ColumnKind.NUMERIC),
    (Float(), ColumnKind.NUMERIC),
    (Date(), ColumnKind.TEMPORAL),
    (DateTime(), ColumnKind.TEMPORAL),
    (Time(), ColumnKind.TEMPORAL),
    (String(20), ColumnKind.CATEGORICAL),
    (Text(), ColumnKind.CATEGORICAL),
    (Boolean(), ColumnKind.CATEGORICAL),
])
def test_classify_reflected_type(column_type, expected):
    assert classify_type(column_type) is expected


def test_classify_plain_string_falls_back_to_name():
    assert classify_type("BIGINT") is ColumnKind.NUMERIC
    assert classify_type(None) is ColumnKind.CATEGORICAL


def test_is_integer_type():
    assert is_integer_type(Integer())
    assert is_integer_type(Numeric(12, 0))
    assert not is_integer_type(Numeric(10, 2))
    assert not is_integer_type(Float())
    assert is_integer_type("bigint")
    assert not is_integer_type("point")
