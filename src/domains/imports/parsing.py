# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Spreadsheet parsing for uploaded import files.

CSV files are read with the csv module so quoted fields may contain commas
and newlines. Excel workbooks (.xlsx through openpyxl, .xls through xlrd)
are read with pandas; only the first sheet is used.

The first non-blank row is the header. Every other non-blank row becomes a
SourceRow whose row_number is its 1-based position in the sheet, so the
header of a file without leading blank rows is row 1 and the first data
row is row 2.

Example:
    >>> table = parse_table(content, "courses.csv")
    >>> table.headers
    ['course_id', 'course_title']
    >>> table.rows[0].row_number
    2
"""

import asyncio
import csv
import io
import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import PurePosixPath
from typing import Any

import pandas as pd

logger = logging.getLogger(__name__)

CSV_CONTENT_TYPES = frozenset(
    {
        "text/csv",
        "application/csv",
        "text/plain",
        "application/vnd.ms-excel",
    }
)
EXCEL_CONTENT_TYPES = frozenset(
    {
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "application/vnd.ms-excel",
    }
)
ALLOWED_CONTENT_TYPES = CSV_CONTENT_TYPES | EXCEL_CONTENT_TYPES
ALLOWED_EXTENSIONS = frozenset({".csv", ".xls", ".xlsx"})

_CSV_ENCODINGS = ("utf-8-sig", "cp1252", "latin-1")


class FileParseError(Exception):
    """Raised when an uploaded file cannot be read as a table."""

    pass


@dataclass(frozen=True)
class SourceRow:
    """One data row of the source file keyed by header."""

    row_number: int
    values: dict[str, Any]


@dataclass
class ParsedTable:
    """Header and data rows of a parsed file."""

    headers: list[str]
    rows: list[SourceRow] = field(default_factory=list)


def file_extension(filename: str | None) -> str:
    """Lower-cased extension of a file name, including the dot."""
    if not filename:
        return ""
    return PurePosixPath(filename.replace("\\", "/")).suffix.lower()


def is_allowed_file(filename: str | None, content_type: str | None) -> bool:
    """Check a file against the upload allow-list.

    Browsers report spreadsheet MIME types inconsistently, so a file is
    accepted when either its content type or its extension is allowed.
    """
    if content_type and content_type.split(";")[0].strip().lower() in ALLOWED_CONTENT_TYPES:
        return True
    return file_extension(filename) in ALLOWED_EXTENSIONS


def detect_format(filename: str | None, content_type: str | None = None) -> str:
    """Decide how to read a file.

    Returns:
        "csv", "xlsx" or "xls".
    """
    extension = file_extension(filename)
    if extension in (".xlsx", ".xls"):
        return extension[1:]
    if extension == ".csv":
        return "csv"

    mime = (content_type or "").split(";")[0].strip().lower()
    if mime == "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet":
        return "xlsx"
    if mime == "application/vnd.ms-excel":
        return "xls"
    return "csv"


def parse_table(content: bytes, filename: str | None, content_type: str | None = None) -> ParsedTable:
    """Parse file contents into a header and data rows.

    Args:
        content: Raw file bytes.
        filename: Original file name, used to pick the reader.
        content_type: Reported MIME type.

    Returns:
        The parsed table.

    Raises:
        FileParseError: If the file cannot be read or has no header row.
    """
    fmt = detect_format(filename, content_type)
    if fmt == "csv":
        records = _read_csv_records(content)
    else:
        records = _read_excel_records(content, fmt)

    table = _build_table(records)
    logger.debug(
        "Parsed %s file: columns=%d, rows=%d", fmt, len(table.headers), len(table.rows)
    )
    return table


async def parse_table_async(
    content: bytes, filename: str | None, content_type: str | None = None
) -> ParsedTable:
    """Run parse_table in a worker thread."""
    return await asyncio.to_thread(parse_table, content, filename, content_type)


def _decode(content: bytes) -> str:
    for encoding in _CSV_ENCODINGS:
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise FileParseError("Unable to decode CSV file")


def _read_csv_records(content: bytes) -> list[list[Any]]:
    text = _decode(content)
    try:
        return [list(record) for record in csv.reader(io.StringIO(text, newline=""))]
    except csv.Error as e:
        raise FileParseError(f"Invalid CSV file: {e}") from e


def _read_excel_records(content: bytes, fmt: str) -> list[list[Any]]:
    engine = "openpyxl" if fmt == "xlsx" else "xlrd"
    try:
        frame = pd.read_excel(
            io.BytesIO(content),
            sheet_name=0,
            header=None,
            dtype=object,
            engine=engine,
        )
    except Exception as e:
        logger.warning("Unable to read %s workbook: %s", fmt, e)
        raise FileParseError(f"Invalid {fmt} file: {e}") from e

    return [[_excel_cell(value) for value in row] for row in frame.itertuples(index=False)]


def _excel_cell(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    if value is pd.NaT:
        return None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    return value


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _header_name(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value).strip()


def _build_table(records: list[list[Any]]) -> ParsedTable:
    header_index = next(
        (i for i, record in enumerate(records) if not all(_is_blank(v) for v in record)),
        None,
    )
    if header_index is None:
        raise FileParseError("File appears to be empty")

    names = [_header_name(value) for value in records[header_index]]
    columns = [(i, name) for i, name in enumerate(names) if name]
    if not columns:
        raise FileParseError("Header row has no column names")

    table = ParsedTable(headers=[name for _, name in columns])
    for index in range(header_index + 1, len(records)):
        record = records[index]
        if all(_is_blank(v) for v in record):
            continue
        values = {
            name: (record[i] if i < len(record) else None) for i, name in columns
        }
        table.rows.append(SourceRow(row_number=index + 1, values=values))
    return table
