"""JSON normalization of database values."""
import base64
import json
import uuid
from datetime import date, datetime, time, timedelta
from decimal import Decimal

from tablescope.api.services.data_utils import format_rows, normalize_value, to_number


def test_temporal_values_become_iso_strings():
    assert normalize_value(datetime(2024, 5, 1, 13, 30)) == '2024-05-01T13:30:00'
    assert normalize_value(date(2024, 5, 1)) == '2024-05-01'
    assert normalize_value(time(8, 15)) == '08:15:00'
    assert normalize_value(timedelta(minutes=2)) == 120.0


def test_decimals():
    assert normalize_value(Decimal('2.50')) == 2.5
    assert normalize_value(Decimal('3')) == 3
    assert isinstance(normalize_value(Decimal('3')), int)
    assert normalize_value(Decimal('NaN')) is None


def test_large_integers_keep_their_digits():
    assert normalize_value(9007199254740991) == 9007199254740991
    assert normalize_value(9007199254740993) == '9007199254740993'
    assert normalize_value(Decimal('12345678901234567890')) == '12345678901234567890'


def test_floats_and_booleans():
    assert normalize_value(float('nan')) is None
    assert normalize_value(float('inf')) is None
    assert normalize_value(1.25) == 1.25
    assert normalize_value(True) is True


def test_binary_values():
    assert normalize_value(b'hello') == 'hello'
    blob = bytes([0xff, 0x00, 0xfe])
    assert normalize_value(blob) == base64.b64encode(blob).decode('ascii')
    assert normalize_value(memoryview(b'abc')) == 'abc'


def test_objects_and_containers():
    value = uuid.UUID('12345678-1234-5678-1234-567812345678')
    assert normalize_value(value) == '12345678-1234-5678-1234-567812345678'
    assert normalize_value({'a': Decimal('1.5'), 2: [date(2020, 1, 1)]}) == {'a': 1.5, '2': ['2020-01-01']}


def test_format_rows_is_json_serializable():
    rows = [{'id': 1, 'when': datetime(2020, 1, 1), 'amount': Decimal('9.99'), 'raw': b'\x00\xff'}]
    formatted = format_rows(rows)
    json.dumps(formatted)
    assert formatted[0]['amount'] == 9.99


def test_to_number():
    assert to_number(None) == 0.0
    assert to_number(Decimal('2.5')) == 2.5
    assert to_number('3') == 3.0
    assert to_number('n/a') == 0.0
