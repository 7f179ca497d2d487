"""
Shared steps of the two-phase (simulate / commit) import pipeline.

Whole-file problems raise ImportFileError; row problems are collected by the
calling service so one bad row never aborts the rest of the file.
"""

from typing import Any, Optional, Sequence, Union

from pydantic import ValidationError

from logiops.core.config import ImportLimits
from logiops.core.errors import ImportFileError
from logiops.data.models.common import ImportMode, ImportResult, ImportRowError
from logiops.tools.spreadsheets import ParsedSheet, parse_import_file, validate_file, validate_headers


def resolve_mode(mode: Union[str, ImportMode, None]) -> ImportMode:
    """Parse the mode parameter (defaults to simulate)."""
    if mode is None or mode == "":
        return ImportMode.SIMULATE
    try:
        return ImportMode(mode)
    except ValueError:
        raise ImportFileError(
            f"Unknown import mode: {mode} (use 'simulate' or 'commit')", code="INVALID_MODE"
        ) from None


def read_import_sheet(
    filename: str,
    content: bytes,
    required_headers: Sequence[str],
    template_headers: Sequence[str],
    limits: ImportLimits,
) -> ParsedSheet:
    """
    Validate and parse an uploaded file.

    Raises:
        ImportFileError: NO_FILE, INVALID_FILE_TYPE, FILE_TOO_LARGE,
            FILE_PARSE_ERROR, EMPTY_FILE or INVALID_HEADERS
    """
    validate_file(filename, len(content), limits)

    sheet = parse_import_file(filename, content)
    if sheet.errors:
        raise ImportFileError("Could not parse the file", code="FILE_PARSE_ERROR", details=sheet.errors)

    if not sheet.rows:
        raise ImportFileError("The file has no data rows", code="EMPTY_FILE")

    header_errors = validate_headers(sheet.headers, required_headers)
    if header_errors:
        raise ImportFileError(
            header_errors[0],
            code="INVALID_HEADERS",
            details={
                "required": list(required_headers),
                "found": sheet.headers,
                "template": list(template_headers),
            },
        )
    return sheet


def excel_row_number(index: int) -> int:
    """Spreadsheet row number of the data row at ``index`` (row 1 is the header)."""
    return index + 2


def add_row_error(result: ImportResult, row: int, error: str, data: Optional[dict[str, Any]] = None) -> None:
    result.errors.append(ImportRowError(row=row, error=error, data=data))


def require_valid_rows(result: ImportResult) -> None:
    if result.valid == 0:
        raise ImportFileError(
            "No valid rows to import",
            code="NO_VALID_DATA",
            details={"errors": [e.model_dump() for e in result.errors]},
        )


def validation_message(exc: ValidationError) -> str:
    """One-line summary of a pydantic validation error for row reports."""
    parts = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ()))
        message = error.get("msg", "invalid value")
        parts.append(f"{field}: {message}" if field else message)
    return "; ".join(parts)
