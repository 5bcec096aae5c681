from __future__ import annotations

import logging
import zipfile
from collections.abc import Sequence
from pathlib import Path
from typing import Any, Protocol

import pandas as pd
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from openpyxl.worksheet.worksheet import Worksheet

from ..errors import SpreadsheetIOError
from ..models.raw_cell import EMPTY, CellKind, RawCell

"""Cell Grid Provider adapters.

Decoding the container formats is left to openpyxl (xlsx family) and the
pandas Excel engines (xls / ods / xlsb). This module only presents them as a
uniform grid of RawCell values addressed by 1-based (row, column).

A SheetGrid is a scoped handle: open it with ``provider.open_sheet`` and
close it (or use it as a context manager) once the sheet is done.
"""

__all__ = [
    "SheetGrid",
    "CellGridProvider",
    "OpenpyxlGridProvider",
    "PandasGridProvider",
    "ExcelGridProvider",
    "MemoryGridProvider",
]

logger = logging.getLogger(__name__)

OPENPYXL_SUFFIXES = frozenset({".xlsx", ".xlsm", ".xltx", ".xltm"})

# Errors raised by the decoding libraries for unreadable / corrupt files
_DECODE_ERRORS = (OSError, ValueError, KeyError, zipfile.BadZipFile, InvalidFileException)


class SheetGrid:
    """One open sheet. ``max_row`` / ``max_column`` give the populated extent."""

    max_row: int = 0
    max_column: int = 0

    def read_cell(self, row: int, column: int) -> RawCell:
        raise NotImplementedError

    def close(self) -> None:
        """Release the underlying file handle (idempotent)."""

    def __enter__(self) -> SheetGrid:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


class CellGridProvider(Protocol):
    def list_sheets(self, path: str) -> list[str]: ...

    def open_sheet(self, path: str, sheet: str) -> SheetGrid: ...


class ListSheetGrid(SheetGrid):
    """Grid over an in-memory list of rows (pandas output, test fixtures)."""

    def __init__(self, rows: Sequence[Sequence[Any]], *, blank_strings_empty: bool = False) -> None:
        self._rows = [list(r) for r in rows]
        self._blank_strings_empty = blank_strings_empty
        self.max_row = len(self._rows)
        self.max_column = max((len(r) for r in self._rows), default=0)
        self.closed = False

    def read_cell(self, row: int, column: int) -> RawCell:
        if row < 1 or column < 1 or row > self.max_row:
            return EMPTY
        values = self._rows[row - 1]
        if column > len(values):
            return EMPTY
        value = values[column - 1]
        if self._blank_strings_empty and value == "":
            return EMPTY
        return RawCell.from_value(value)

    def close(self) -> None:
        self.closed = True


def _format_tokens(number_format: str) -> tuple[bool, bool]:
    """Return (has_date, has_time) for an Excel number format string.

    Escaped characters (``\\x``, ``_x``), quoted literals and bracketed
    sections (colors, conditions, locales) are ignored.
    """
    has_date = has_time = False
    escaped = literal = bracket = False
    for ch in number_format or "":
        if escaped:
            escaped = False
        elif literal:
            literal = ch != '"'
        elif bracket:
            bracket = ch != "]"
        elif ch in "_\\":
            escaped = True
        elif ch == '"':
            literal = True
        elif ch == "[":
            bracket = True
        elif ch in "yYdD":
            has_date = True
        elif ch in "hHsS":
            has_time = True
    return has_date, has_time


class OpenpyxlSheetGrid(SheetGrid):
    def __init__(self, workbook: Any, worksheet: Worksheet) -> None:
        self._workbook = workbook
        self._ws = worksheet
        self.max_row = worksheet.max_row
        self.max_column = worksheet.max_column
        # openpyxl reports 1x1 for a sheet without any cell
        if self.max_row == 1 and self.max_column == 1 and worksheet.cell(1, 1).value is None:
            self.max_row = self.max_column = 0

    def read_cell(self, row: int, column: int) -> RawCell:
        if row > self.max_row or column > self.max_column:
            return EMPTY
        cell = self._ws.cell(row=row, column=column)
        value = cell.value
        if value is None:
            return EMPTY
        if cell.data_type == "e":
            return RawCell(CellKind.ERROR, str(value))
        if cell.is_date and hasattr(value, "hour") and hasattr(value, "year"):
            has_date, has_time = _format_tokens(cell.number_format)
            if has_date and not has_time:
                return RawCell(CellKind.DATE, value.date())
            if has_time and not has_date:
                return RawCell(CellKind.TIME, value.time())
            return RawCell(CellKind.DATETIME, value.replace(tzinfo=None))
        return RawCell.from_value(value, midnight_is_date=False)

    def close(self) -> None:
        if self._workbook is not None:
            self._workbook.close()
            self._workbook = None


class OpenpyxlGridProvider:
    """xlsx / xlsm provider; temporal kinds follow each cell's number format."""

    def list_sheets(self, path: str) -> list[str]:
        try:
            wb = load_workbook(path, read_only=True, data_only=True)
        except FileNotFoundError as e:
            raise SpreadsheetIOError(path, "file not found") from e
        except _DECODE_ERRORS as e:
            raise SpreadsheetIOError(path, f"cannot read workbook: {e}") from e
        try:
            return [ws.title for ws in wb.worksheets]
        finally:
            wb.close()

    def open_sheet(self, path: str, sheet: str) -> SheetGrid:
        try:
            wb = load_workbook(path, data_only=True)
        except FileNotFoundError as e:
            raise SpreadsheetIOError(path, "file not found") from e
        except _DECODE_ERRORS as e:
            raise SpreadsheetIOError(path, f"cannot read workbook: {e}") from e
        worksheets = {ws.title: ws for ws in wb.worksheets}
        if sheet not in worksheets:
            wb.close()
            raise SpreadsheetIOError(path, f"sheet '{sheet}' not found")
        logger.debug("opened %s sheet=%s", path, sheet)
        return OpenpyxlSheetGrid(wb, worksheets[sheet])


class PandasGridProvider:
    """Any format pandas can read (xls via xlrd, ods via odfpy, xlsb via pyxlsb)."""

    def _excel_file(self, path: str) -> pd.ExcelFile:
        if not Path(path).exists():
            raise SpreadsheetIOError(path, "file not found")
        try:
            return pd.ExcelFile(path)
        except ImportError as e:
            raise SpreadsheetIOError(path, f"unsupported format: {e}") from e
        except _DECODE_ERRORS as e:
            raise SpreadsheetIOError(path, f"cannot read workbook: {e}") from e

    def list_sheets(self, path: str) -> list[str]:
        with self._excel_file(path) as xls:
            return [str(name) for name in xls.sheet_names]

    def open_sheet(self, path: str, sheet: str) -> SheetGrid:
        with self._excel_file(path) as xls:
            names = {str(name): name for name in xls.sheet_names}
            if sheet not in names:
                raise SpreadsheetIOError(path, f"sheet '{sheet}' not found")
            try:
                # ヘッダなし・NA 変換なしで生読み (空セルは "" になる)
                df = xls.parse(names[sheet], header=None, dtype=object, keep_default_na=False, na_values=[])
            except _DECODE_ERRORS as e:
                raise SpreadsheetIOError(path, f"cannot read sheet '{sheet}': {e}") from e
        logger.debug("opened %s sheet=%s shape=%s", path, sheet, df.shape)
        return ListSheetGrid(df.values.tolist(), blank_strings_empty=True)


class ExcelGridProvider:
    """Default provider: dispatch on file suffix."""

    def __init__(self) -> None:
        self._openpyxl = OpenpyxlGridProvider()
        self._pandas = PandasGridProvider()

    def _delegate(self, path: str) -> OpenpyxlGridProvider | PandasGridProvider:
        if Path(path).suffix.lower() in OPENPYXL_SUFFIXES:
            return self._openpyxl
        return self._pandas

    def list_sheets(self, path: str) -> list[str]:
        return self._delegate(path).list_sheets(path)

    def open_sheet(self, path: str, sheet: str) -> SheetGrid:
        return self._delegate(path).open_sheet(path, sheet)


class MemoryGridProvider:
    """In-memory workbooks: ``{path: {sheet: [[value, ...], ...]}}``.

    Tracks open handles so callers can check that sources are released.
    """

    def __init__(self, workbooks: dict[str, dict[str, Sequence[Sequence[Any]]]]) -> None:
        self._workbooks = workbooks
        self.opened: list[tuple[str, str]] = []
        self.grids: list[ListSheetGrid] = []

    @property
    def open_handles(self) -> int:
        return sum(1 for g in self.grids if not g.closed)

    def list_sheets(self, path: str) -> list[str]:
        if path not in self._workbooks:
            raise SpreadsheetIOError(path, "file not found")
        return list(self._workbooks[path])

    def open_sheet(self, path: str, sheet: str) -> SheetGrid:
        sheets = self._workbooks.get(path)
        if sheets is None:
            raise SpreadsheetIOError(path, "file not found")
        if sheet not in sheets:
            raise SpreadsheetIOError(path, f"sheet '{sheet}' not found")
        grid = ListSheetGrid(sheets[sheet])
        self.opened.append((path, sheet))
        self.grids.append(grid)
        return grid
