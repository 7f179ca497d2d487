"""
Stateless helpers shared by the services.

This module provides:
- formatting: phone/business/account number and currency formatting
- vehicle_types: vehicle type normalization and tonnage bands
- spreadsheets: CSV/Excel parsing and export
"""

from .formatting import (
    extract_numbers,
    format_account_number,
    format_business_number,
    format_currency,
    format_number,
    format_phone_number,
    parse_amount,
    parse_date,
    sanitize_account_number,
    sanitize_phone,
    validate_phone,
)
from .spreadsheets import (
    ParsedSheet,
    generate_csv,
    generate_xlsx,
    parse_import_file,
    validate_file,
    validate_headers,
)
from .vehicle_types import VEHICLE_TYPES, normalize_vehicle_type, vehicle_type_for_tonnage

__all__ = [
    "extract_numbers",
    "format_phone_number",
    "format_business_number",
    "format_account_number",
    "format_number",
    "format_currency",
    "sanitize_phone",
    "validate_phone",
    "sanitize_account_number",
    "parse_amount",
    "parse_date",
    "ParsedSheet",
    "parse_import_file",
    "validate_file",
    "validate_headers",
    "generate_csv",
    "generate_xlsx",
    "VEHICLE_TYPES",
    "normalize_vehicle_type",
    "vehicle_type_for_tonnage",
]
