"""
Spreadsheet readers for uploaded files.

Both readers yield ``(row_number, row_dict)`` with header names normalized
(lower case, spaces to underscores) and cell values stripped. Row numbers are
1-based spreadsheet rows, so the header is row 1 and data starts at row 2.
Blank rows are skipped without being counted as errors.
"""
import csv
import io
import math
from pathlib import PurePosixPath
from typing import Any, Dict, Iterator, List, Optional, Tuple

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException

from inventory_app.core.errors import ParseError

Row = Tuple[int, Dict[str, Any]]

# Marker key for values beyond the header width
EXTRA_COLUMNS = "__extra__"


def normalize_header(value: Any) -> str:
    if value is None:
        return ""
    return "_".join(str(value).strip().lower().split())


def _clean(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, float) and math.isfinite(value) and value == int(value):
        return int(value)
    if isinstance(value, str):
        return value.strip()
    return value


def _is_blank(values) -> bool:
    return all(v is None or (isinstance(v, str) and not v.strip()) for v in values)


def read_csv_rows(data: bytes) -> Iterator[Row]:
    try:
        text = data.decode("utf-8-sig")  # Strip BOM if present
    except UnicodeDecodeError as exc:
        raise ParseError(f"File is not valid UTF-8: {exc}") from exc

    reader = csv.reader(io.StringIO(text, newline=""))
    header: Optional[List[str]] = None
    try:
        for values in reader:
            if _is_blank(values):
                continue
            if header is None:
                header = [normalize_header(v) for v in values]
                continue
            row = {name: _clean(value) for name, value in zip(header, values) if name}
            if len(values) > len(header) and not _is_blank(values[len(header):]):
                row[EXTRA_COLUMNS] = values[len(header):]
            yield reader.line_num, row
    except csv.Error as exc:
        raise ParseError(f"CSV is malformed near line {reader.line_num}: {exc}") from exc

    if header is None:
        raise ParseError("File is empty: no header row found")


def read_xlsx_rows(data: bytes) -> Iterator[Row]:
    try:
        workbook = openpyxl.load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except (InvalidFileException, KeyError, OSError, ValueError) as exc:
        raise ParseError(f"File is not a readable .xlsx workbook: {exc}") from exc

    try:
        sheet = workbook.active
        header: Optional[List[str]] = None
        for row_number, values in enumerate(sheet.iter_rows(values_only=True), start=1):
            if _is_blank(values):
                continue
            if header is None:
                header = [normalize_header(v) for v in values]
                continue
            row = {name: _clean(value) for name, value in zip(header, values) if name}
            if len(values) > len(header) and not _is_blank(values[len(header):]):
                row[EXTRA_COLUMNS] = list(values[len(header):])
            yield row_number, row
        if header is None:
            raise ParseError("Workbook is empty: no header row found")
    finally:
        workbook.close()


def read_rows(data: bytes, key: str) -> Iterator[Row]:
    """Chooses the reader from the object key's extension."""
    extension = PurePosixPath(key).suffix.lower()
    if extension == ".csv":
        return read_csv_rows(data)
    if extension == ".xlsx":
        return read_xlsx_rows(data)
    raise ParseError(f"Unsupported file type '{extension or key}'")


def require(row: Dict[str, Any], field: str) -> str:
    value = row.get(field)
    if value is None or str(value).strip() == "":
        raise ParseError(f"Missing required column '{field}'")
    return str(value).strip()


def optional_text(row: Dict[str, Any], field: str) -> Optional[str]:
    value = row.get(field)
    if value is None or str(value).strip() == "":
        return None
    return str(value).strip()


def parse_int(row: Dict[str, Any], field: str, *, default: Optional[int] = None,
              minimum: Optional[int] = None) -> int:
    value = row.get(field)
    if value is None or str(value).strip() == "":
        if default is None:
            raise ParseError(f"Missing required column '{field}'")
        return default
    try:
        number = float(str(value).strip())
    except ValueError:
        raise ParseError(f"Invalid {field} '{value}'")
    if not math.isfinite(number):
        raise ParseError(f"{field} must be a finite number, got '{value}'")
    if number != int(number):
        raise ParseError(f"{field} must be a whole number, got '{value}'")
    number = int(number)
    if minimum is not None and number < minimum:
        raise ParseError(f"{field} must be at least {minimum}, got {number}")
    return number
