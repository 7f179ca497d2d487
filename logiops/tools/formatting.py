"""
Formatting and parsing helpers for Korean back-office data.

Phone, business and account numbers are stored digits-only and formatted
with hyphens for display. Amounts are whole won.
"""

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

_NON_DIGITS = re.compile(r"[^\d]")

Number = Union[int, float, Decimal, str, None]


def extract_numbers(value: Optional[str]) -> str:
    """Return only the digits of ``value`` ("" for None/empty)."""
    if not value:
        return ""
    return _NON_DIGITS.sub("", str(value))


def format_phone_number(phone: Optional[str]) -> str:
    """
    Format a phone number for display.

    11 digits -> 010-1234-5678, Seoul 10 digits -> 02-1234-5678,
    other 10 digits -> 031-123-4567. Anything else is returned as digits.
    """
    digits = extract_numbers(phone)
    if len(digits) == 11:
        return f"{digits[:3]}-{digits[3:7]}-{digits[7:]}"
    if len(digits) == 10 and digits.startswith("02"):
        return f"{digits[:2]}-{digits[2:6]}-{digits[6:]}"
    if len(digits) == 10:
        return f"{digits[:3]}-{digits[3:6]}-{digits[6:]}"
    return digits


def format_business_number(value: Optional[str]) -> str:
    """Format a 10 digit business registration number as 123-45-67890."""
    digits = extract_numbers(value)
    if len(digits) == 10:
        return f"{digits[:3]}-{digits[3:5]}-{digits[5:]}"
    return digits


def format_account_number(value: Optional[str]) -> str:
    """Format an 11 to 14 digit account number as 6-2-rest."""
    digits = extract_numbers(value)
    if 11 <= len(digits) <= 14:
        return f"{digits[:6]}-{digits[6:8]}-{digits[8:]}"
    return digits


def format_number(value: Number, fallback: str = "0") -> str:
    """
    Format a number with thousands separators.

    Args:
        value: Number or numeric string
        fallback: Returned when the value is None or not numeric

    Returns:
        Formatted string, e.g. "1,234,567"
    """
    if value is None:
        return fallback
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return fallback
    if not number.is_finite():
        return fallback
    if number == number.to_integral_value():
        return f"{int(number):,}"
    return f"{number.normalize():,f}"


def format_currency(amount: Number) -> str:
    """Format an amount in won, e.g. "120,000원"."""
    return f"{format_number(amount, '0')}원"


def sanitize_phone(phone: Optional[str]) -> str:
    return extract_numbers(phone)


def validate_phone(phone: Optional[str]) -> tuple[bool, Optional[str]]:
    """
    Validate a phone number.

    Returns:
        (is_valid, error message or None)
    """
    if not phone:
        return False, "Phone number is required"

    digits = sanitize_phone(phone)
    if len(digits) == 11 and digits.startswith("010"):
        return True, None
    if 9 <= len(digits) <= 11:
        return True, None
    return False, "Invalid phone number format (expected 010-0000-0000)"


def sanitize_account_number(value: Optional[str]) -> str:
    return extract_numbers(value)


def parse_amount(text: Union[str, int, float, None]) -> Optional[int]:
    """
    Parse a won amount from spreadsheet text such as "1,200,000".

    Returns None for blank or non-numeric input. Fractions are rounded half-up.
    """
    if text is None:
        return None
    if isinstance(text, (int, float)) and not isinstance(text, bool):
        return int(Decimal(str(text)).quantize(Decimal("1"), rounding="ROUND_HALF_UP"))

    cleaned = re.sub(r"[,\s원]", "", str(text))
    if not cleaned:
        return None
    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    return int(value.quantize(Decimal("1"), rounding="ROUND_HALF_UP"))


def parse_date(text: Union[str, date, datetime, None]) -> Optional[date]:
    """
    Parse YYYY-MM-DD, YYYY/MM/DD, YYYY.MM.DD or an ISO timestamp.

    Returns None for blank or invalid input.
    """
    if text is None:
        return None
    if isinstance(text, datetime):
        return text.date()
    if isinstance(text, date):
        return text

    raw = str(text).strip()
    if not raw:
        return None

    for fmt in ("%Y-%m-%d", "%Y/%m/%d", "%Y.%m.%d"):
        try:
            return datetime.strptime(raw, fmt).date()
        except ValueError:
            continue

    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00")).date()
    except ValueError:
        return None
