"""
CSV and Excel import/export.

Imports accept ``.csv`` (UTF-8 with or without BOM, CP949 as a fallback for
files saved by Korean Excel) and ``.xlsx`` (first worksheet). Exports write
CSV with a BOM so Excel detects UTF-8, or an ``.xlsx`` workbook.
"""

import csv
import io
import re
from pathlib import PurePath
from typing import Any, Iterable, Optional, Sequence

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font
from pydantic import BaseModel, Field

from logiops.core.config import ImportLimits
from logiops.core.errors import ImportFileError

UTF8_BOM = "\ufeff"

# Alternative spellings accepted for each standard header
HEADER_ALIASES: dict[str, list[str]] = {
    "성함": ["이름", "기사명", "성명", "name"],
    "연락처": ["전화번호", "핸드폰", "휴대폰", "phone"],
    "차량번호": ["차번호", "번호판", "vehicle", "plate"],
    "사업상호": ["회사명", "업체명", "상호명", "company"],
    "대표자": ["대표", "대표자명", "representative"],
    "사업번호": ["사업자번호", "사업자등록번호", "business"],
    "계좌은행": ["은행명", "은행", "bank"],
    "계좌번호": ["계좌", "통장번호", "account"],
    "특이사항": ["비고", "메모", "remarks", "note"],
    "센터명": ["센터", "물류센터", "창고명", "center"],
    "노선명": ["노선", "코스명", "라인명", "route"],
    "운행요일": ["요일패턴", "요일", "운행일", "weekday"],
    "센터계약": ["계약형태", "센터계약형태", "contract"],
    "비고": ["특이사항", "메모", "참고사항", "remarks", "note"],
    "차량톤수": ["차량종류", "차종", "톤수", "vehicle_type"],
    "지역": ["도착지", "region"],
    "요율종류": ["요금종류", "fare_type"],
    "운행일자": ["날짜", "일자", "요청일", "date"],
    "기사운임": ["기사료", "driver_fare"],
    "추가운임": ["추가금", "extra_fare"],
    "협의운임": ["협의금액", "negotiated_fare"],
}

_FORMULA_PREFIX = re.compile(r"^[=+\-@]")


class ParsedSheet(BaseModel):
    """Rows of an uploaded file keyed by (stripped) header."""

    rows: list[dict[str, str]] = Field(default_factory=list)
    headers: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


def file_extension(filename: str) -> str:
    return PurePath(filename or "").suffix.lower()


def validate_file(filename: Optional[str], size: int, limits: ImportLimits) -> None:
    """
    Reject uploads with an unsupported extension or over the size limit.

    Raises:
        ImportFileError: NO_FILE, INVALID_FILE_TYPE or FILE_TOO_LARGE
    """
    if not filename:
        raise ImportFileError("Select a CSV or Excel file to upload", code="NO_FILE")

    if file_extension(filename) not in limits.allowed_extensions:
        raise ImportFileError(
            f"Only {', '.join(limits.allowed_extensions)} files can be uploaded",
            code="INVALID_FILE_TYPE",
        )

    if size > limits.max_file_size_bytes:
        raise ImportFileError(
            f"File size must be {limits.max_file_size_mb}MB or less",
            code="FILE_TOO_LARGE",
        )


def _decode(content: bytes) -> str:
    try:
        text = content.decode("utf-8")
    except UnicodeDecodeError:
        text = content.decode("cp949")
    return text.lstrip(UTF8_BOM)


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if hasattr(value, "date") and hasattr(value, "hour"):
        # datetime cells from Excel date columns
        return value.date().isoformat()
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value).strip()


def _parse_csv(content: bytes) -> ParsedSheet:
    try:
        text = _decode(content)
    except UnicodeDecodeError as e:
        return ParsedSheet(errors=[f"Could not decode CSV file: {e}"])

    reader = csv.reader(io.StringIO(text))
    try:
        table = list(reader)
    except csv.Error as e:
        return ParsedSheet(errors=[f"Could not parse CSV file: {e}"])
    return _rows_from_table(table)


def _parse_xlsx(content: bytes) -> ParsedSheet:
    try:
        workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except Exception as e:  # corrupt workbooks raise assorted error types
        return ParsedSheet(errors=[f"Could not read Excel file: {e}"])

    try:
        if not workbook.worksheets:
            return ParsedSheet(errors=["Excel file has no worksheet"])
        sheet = workbook.worksheets[0]
        table = [[_cell_text(value) for value in row] for row in sheet.iter_rows(values_only=True)]
    finally:
        workbook.close()
    return _rows_from_table(table)


def _rows_from_table(table: list[list[str]]) -> ParsedSheet:
    if not table:
        return ParsedSheet()

    headers = [str(h).strip() for h in table[0]]
    rows: list[dict[str, str]] = []
    for raw in table[1:]:
        row = {}
        for index, header in enumerate(headers):
            if not header:
                continue
            value = raw[index] if index < len(raw) else ""
            row[header] = str(value).strip() if value is not None else ""
        # drop blank rows
        if any(v != "" for v in row.values()):
            rows.append(row)

    return ParsedSheet(rows=rows, headers=[h for h in headers if h])


def parse_import_file(filename: str, content: bytes) -> ParsedSheet:
    """
    Parse an uploaded CSV or Excel file.

    Args:
        filename: Original file name (extension selects the parser)
        content: Raw file bytes

    Returns:
        ParsedSheet; ``errors`` is non-empty when the file could not be read
    """
    ext = file_extension(filename)
    if ext == ".csv":
        return _parse_csv(content)
    if ext == ".xlsx":
        return _parse_xlsx(content)
    return ParsedSheet(errors=[f"Unsupported file type: {ext or filename}"])


def _normalize_header(value: str) -> str:
    return re.sub(r"[^a-z0-9가-힣]", "", value.lower())


def find_header(target: str, headers: Sequence[str]) -> Optional[str]:
    """Find the header in ``headers`` that matches ``target`` or one of its aliases."""
    normalized = {_normalize_header(h): h for h in headers}
    for candidate in [target, *HEADER_ALIASES.get(target, [])]:
        match = normalized.get(_normalize_header(candidate))
        if match is not None:
            return match
    return None


def validate_headers(headers: Sequence[str], required: Iterable[str]) -> list[str]:
    """
    Check that every required header (or an alias) is present.

    Returns:
        List of error messages (empty when all headers are found)
    """
    missing = [name for name in required if find_header(name, headers) is None]
    if missing:
        return [f"Missing required headers: {', '.join(missing)}. Found: {', '.join(headers) or 'none'}"]
    return []


def map_row_headers(row: dict[str, str], standard_headers: Iterable[str]) -> dict[str, str]:
    """Re-key a parsed row by standard header names."""
    headers = list(row.keys())
    mapped: dict[str, str] = {}
    for standard in standard_headers:
        match = find_header(standard, headers)
        if match is not None:
            mapped[standard] = row[match]
    return mapped


def _csv_safe(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    text = str(value)
    # neutralize spreadsheet formulas
    if _FORMULA_PREFIX.match(text):
        return f"'{text}"
    return text


def generate_csv(headers: Sequence[str], rows: Iterable[Sequence[Any]]) -> str:
    """
    Render rows as CSV text with a UTF-8 BOM so Excel opens it correctly.

    Args:
        headers: Header row
        rows: Data rows (sequences aligned with ``headers``)
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\r\n")
    writer.writerow(headers)
    for row in rows:
        writer.writerow([_csv_safe(value) for value in row])
    return UTF8_BOM + buffer.getvalue()


def generate_xlsx(headers: Sequence[str], rows: Iterable[Sequence[Any]], sheet_title: str = "Sheet1") -> bytes:
    """Render rows as an ``.xlsx`` workbook with a bold header row."""
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = sheet_title[:31]

    sheet.append(list(headers))
    for cell in sheet[1]:
        cell.font = Font(bold=True)

    for row in rows:
        sheet.append([value if value is not None else "" for value in row])

    for index, header in enumerate(headers, start=1):
        width = max(len(str(header)) * 2, 10)
        sheet.column_dimensions[sheet.cell(row=1, column=index).column_letter].width = width

    output = io.BytesIO()
    workbook.save(output)
    return output.getvalue()


XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
CSV_MEDIA_TYPE = "text/csv; charset=utf-8"


class ExportFile(BaseModel):
    """A generated download."""

    filename: str
    content: bytes
    media_type: str


def build_export(
    headers: Sequence[str],
    rows: Iterable[Sequence[Any]],
    basename: str,
    fmt: str = "xlsx",
    sheet_title: str = "Sheet1",
) -> ExportFile:
    """
    Render an export in the requested format.

    Args:
        headers: Header row
        rows: Data rows
        basename: File name without extension
        fmt: "xlsx" or "csv"
        sheet_title: Worksheet title for xlsx
    """
    if fmt == "csv":
        return ExportFile(
            filename=f"{basename}.csv",
            content=generate_csv(headers, rows).encode("utf-8"),
            media_type=CSV_MEDIA_TYPE,
        )
    return ExportFile(
        filename=f"{basename}.xlsx",
        content=generate_xlsx(headers, rows, sheet_title),
        media_type=XLSX_MEDIA_TYPE,
    )
