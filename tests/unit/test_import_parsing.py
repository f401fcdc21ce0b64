# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for spreadsheet parsing."""

import io
from datetime import datetime

import pytest
from openpyxl import Workbook

from src.domains.imports.parsing import (
    FileParseError,
    detect_format,
    file_extension,
    is_allowed_file,
    parse_table,
    parse_table_async,
)


def _xlsx(rows: list[list[object]]) -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    for row in rows:
        sheet.append(row)
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


class TestFileChecks:
    """Tests for file type detection."""

    @pytest.mark.parametrize(
        "filename,expected",
        [
            ("courses.CSV", ".csv"),
            ("C:\\exports\\users.xlsx", ".xlsx"),
            ("archive.tar.xls", ".xls"),
            ("noextension", ""),
            (None, ""),
        ],
    )
    def test_file_extension(self, filename: str | None, expected: str) -> None:
        """Test extension extraction."""
        assert file_extension(filename) == expected

    def test_allowed_by_content_type(self) -> None:
        """Test that an allowed MIME type is enough."""
        assert is_allowed_file("upload", "text/csv; charset=utf-8") is True

    def test_allowed_by_extension(self) -> None:
        """Test that an allowed extension is enough."""
        assert is_allowed_file("users.xlsx", "application/octet-stream") is True

    def test_rejects_other_files(self) -> None:
        """Test that other files are rejected."""
        assert is_allowed_file("report.pdf", "application/pdf") is False

    def test_detect_format(self) -> None:
        """Test reader selection."""
        assert detect_format("a.xlsx") == "xlsx"
        assert detect_format("a.xls") == "xls"
        assert detect_format("a.csv", "application/vnd.ms-excel") == "csv"
        assert detect_format(
            "upload", "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        ) == "xlsx"
        assert detect_format("upload", None) == "csv"


class TestParseCSV:
    """Tests for CSV parsing."""

    def test_header_and_row_numbers(self) -> None:
        """Test that the header is row 1 and data starts at row 2."""
        content = b"course_id,course_title\nC-1,Safety\nC-2,Fire\n"

        table = parse_table(content, "courses.csv")

        assert table.headers == ["course_id", "course_title"]
        assert [row.row_number for row in table.rows] == [2, 3]
        assert table.rows[0].values == {"course_id": "C-1", "course_title": "Safety"}

    def test_blank_rows_skipped_but_counted(self) -> None:
        """Test that blank rows keep the numbering of later rows."""
        content = b"\n\nid,title\nC-1,A\n,\n\nC-2,B\n"

        table = parse_table(content, "courses.csv")

        assert table.headers == ["id", "title"]
        assert [row.row_number for row in table.rows] == [4, 7]

    def test_quoted_fields(self) -> None:
        """Test that quoted fields may contain commas and newlines."""
        content = b'id,description\nC-1,"Line one,\nline two"\n'

        table = parse_table(content, "courses.csv")

        assert table.rows[0].values["description"] == "Line one,\nline two"

    def test_short_rows_padded(self) -> None:
        """Test that missing trailing cells become None."""
        table = parse_table(b"a,b,c\n1\n", "x.csv")

        assert table.rows[0].values == {"a": "1", "b": None, "c": None}

    def test_unnamed_columns_dropped(self) -> None:
        """Test that columns without a header name are ignored."""
        table = parse_table(b"a,,c\n1,2,3\n", "x.csv")

        assert table.headers == ["a", "c"]
        assert table.rows[0].values == {"a": "1", "c": "3"}

    def test_utf8_bom(self) -> None:
        """Test that a UTF-8 BOM does not leak into the first header."""
        table = parse_table("\ufeffemail,role\na@b.co,student\n".encode("utf-8"), "u.csv")

        assert table.headers == ["email", "role"]

    def test_cp1252_fallback(self) -> None:
        """Test that non UTF-8 files are decoded with a fallback."""
        content = "title\nCaf\u00e9 basics\n".encode("cp1252")

        table = parse_table(content, "c.csv")

        assert table.rows[0].values["title"] == "Caf\u00e9 basics"

    def test_empty_file_rejected(self) -> None:
        """Test that a file without a header fails."""
        with pytest.raises(FileParseError, match="empty"):
            parse_table(b"\n , \n", "empty.csv")

    def test_header_only(self) -> None:
        """Test that a header without data rows parses to no rows."""
        table = parse_table(b"id,title\n", "c.csv")

        assert table.headers == ["id", "title"]
        assert table.rows == []

    @pytest.mark.asyncio
    async def test_parse_async(self) -> None:
        """Test the threaded variant."""
        table = await parse_table_async(b"id\n1\n", "c.csv", "text/csv")

        assert table.rows[0].values == {"id": "1"}


class TestParseExcel:
    """Tests for Excel parsing."""

    def test_first_sheet(self) -> None:
        """Test reading an xlsx workbook."""
        content = _xlsx(
            [
                ["email", "course", "due"],
                ["a@example.com", "C-1", datetime(2025, 3, 1)],
                ["b@example.com", 42, None],
            ]
        )

        table = parse_table(content, "users.xlsx")

        assert table.headers == ["email", "course", "due"]
        assert [row.row_number for row in table.rows] == [2, 3]
        assert table.rows[0].values["due"] == datetime(2025, 3, 1)
        assert table.rows[1].values["course"] == 42
        assert table.rows[1].values["due"] is None

    def test_invalid_workbook(self) -> None:
        """Test that a corrupt workbook raises FileParseError."""
        with pytest.raises(FileParseError):
            parse_table(b"not a workbook", "users.xlsx")
