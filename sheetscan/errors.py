from __future__ import annotations

from typing import Any

from openpyxl.utils import get_column_letter

"""Exception hierarchy for sheetscan.

Every fatal condition raised while binding or streaming a query derives from
SheetScanError so that callers (and the CLI) can catch a single type. Each
error carries enough context (file path, sheet, cell reference) to locate the
offending input without re-scanning.
"""

__all__ = [
    "SheetScanError",
    "ConfigError",
    "RangeSyntaxError",
    "NoMatchError",
    "EmptySheetError",
    "SpreadsheetIOError",
    "CellConversionError",
    "ColumnTypeError",
]


class SheetScanError(Exception):
    """Base class for all sheetscan errors."""


class ConfigError(SheetScanError):
    """Invalid parameter, type name, or query file (bind time, before I/O)."""


class RangeSyntaxError(ConfigError):
    """Malformed range string such as ``A0`` or ``C1:A5``."""


class NoMatchError(SheetScanError):
    """No (file, sheet) source matched the given patterns."""


class EmptySheetError(SheetScanError):
    """The selected range of a sheet contains no columns."""

    def __init__(self, file: str, sheet: str) -> None:
        self.file = file
        self.sheet = sheet
        super().__init__(f"{file}: sheet '{sheet}' is empty within the requested range")


class SpreadsheetIOError(SheetScanError):
    """Missing, unreadable, corrupt, or unsupported spreadsheet file."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


class CellConversionError(SheetScanError):
    """A cell value could not be converted to its column's declared type.

    Attributes:
        file: Spreadsheet path as resolved
        sheet: Sheet name
        row: 1-based row number
        column: 1-based column number
        value: The raw cell value
        target: Declared type name of the column
    """

    def __init__(self, file: str, sheet: str, row: int, column: int, value: Any, target: str) -> None:
        self.file = file
        self.sheet = sheet
        self.row = row
        self.column = column
        self.value = value
        self.target = target
        super().__init__(
            f"{file}: sheet '{sheet}' cell {self.reference}: cannot convert {value!r} to {target}"
        )

    @property
    def reference(self) -> str:
        """A1-style reference of the offending cell."""
        return f"{get_column_letter(self.column)}{self.row}"


class ColumnTypeError(SheetScanError):
    """A column shared by name across sources has a different type in a later source."""

    def __init__(self, file: str, sheet: str, column: str, expected: str, actual: str) -> None:
        self.file = file
        self.sheet = sheet
        self.column = column
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"{file}: sheet '{sheet}' column '{column}' is {actual}, expected {expected}"
        )
