from datetime import date, datetime

import pytest

from buildtrack.services.date_utils import current_year, parse_datetime, parse_receipt_date


def test_parse_plain_date():
    assert parse_datetime('2024-03-01') == datetime(2024, 3, 1)


def test_parse_utc_suffix_is_stored_naive():
    assert parse_datetime('2025-08-01T13:00:00.000Z') == datetime(2025, 8, 1, 13, 0)


def test_parse_offset_is_converted_to_utc():
    assert parse_datetime('2025-08-01T06:00:00-07:00') == datetime(2025, 8, 1, 13, 0)


def test_parse_date_object():
    assert parse_datetime(date(2024, 1, 31)) == datetime(2024, 1, 31)


@pytest.mark.parametrize('value', [None, ''])
def test_empty_values(value):
    assert parse_datetime(value) is None


def test_invalid_value_raises():
    with pytest.raises(ValueError):
        parse_datetime('03/01/2024')
    with pytest.raises(ValueError):
        parse_datetime(20240301)


def test_receipt_date_ignores_time_and_garbage():
    assert parse_receipt_date('2024-03-01T10:15:00') == datetime(2024, 3, 1)
    assert parse_receipt_date('March 1st') is None
    assert parse_receipt_date(None) is None


def test_current_year_with_unknown_timezone():
    assert current_year('Not/AZone') == datetime.utcnow().year
