import datetime as dt

import pytest

from logiops.tools.formatting import (
    extract_numbers,
    format_account_number,
    format_business_number,
    format_currency,
    format_number,
    format_phone_number,
    parse_amount,
    parse_date,
    validate_phone,
)


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("01012345678", "010-1234-5678"),
        ("010 1234 5678", "010-1234-5678"),
        ("0212345678", "02-1234-5678"),
        ("0311234567", "031-123-4567"),
        ("12345", "12345"),
        (None, ""),
    ],
)
def test_format_phone_number(raw, expected):
    assert format_phone_number(raw) == expected


def test_extract_numbers_keeps_digits_only():
    assert extract_numbers("010-1234-5678") == "01012345678"
    assert extract_numbers("") == ""


def test_business_and_account_numbers():
    assert format_business_number("1234567890") == "123-45-67890"
    assert format_business_number("123") == "123"
    assert format_account_number("12345678901234") == "123456-78-901234"
    assert format_account_number("1234") == "1234"


def test_format_currency_and_number():
    assert format_currency(120000) == "120,000원"
    assert format_currency(None) == "0원"
    assert format_number("1234567") == "1,234,567"
    assert format_number("abc", fallback="-") == "-"


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("1,200,000", 1200000),
        ("450000원", 450000),
        (" 3 500 ", 3500),
        (1234.5, 1235),
        ("", None),
        ("abc", None),
        (None, None),
    ],
)
def test_parse_amount(raw, expected):
    assert parse_amount(raw) == expected


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("2025-03-01", dt.date(2025, 3, 1)),
        ("2025/03/01", dt.date(2025, 3, 1)),
        ("2025.03.01", dt.date(2025, 3, 1)),
        ("2025-03-01T09:30:00Z", dt.date(2025, 3, 1)),
        ("", None),
        ("not a date", None),
    ],
)
def test_parse_date(raw, expected):
    assert parse_date(raw) == expected


def test_validate_phone():
    assert validate_phone("010-1234-5678") == (True, None)
    ok, message = validate_phone("12")
    assert ok is False
    assert message
    assert validate_phone("")[0] is False
