"""sheetscan: spreadsheets as typed relational row streams.

Entry points:

- analyze_sheet / analyze_sheets: inferred (column_name, column_type) schemas
- read_sheet / read_sheets: RowStream of typed row tuples
"""

from .errors import (
    CellConversionError,
    ColumnTypeError,
    ConfigError,
    EmptySheetError,
    NoMatchError,
    RangeSyntaxError,
    SheetScanError,
    SpreadsheetIOError,
)
from .services.orchestrator import RowStream, analyze_sheet, analyze_sheets, read_sheet, read_sheets

__all__ = [
    "analyze_sheet",
    "analyze_sheets",
    "read_sheet",
    "read_sheets",
    "RowStream",
    # Errors
    "SheetScanError",
    "ConfigError",
    "RangeSyntaxError",
    "NoMatchError",
    "EmptySheetError",
    "SpreadsheetIOError",
    "CellConversionError",
    "ColumnTypeError",
]

__version__ = "0.1.0"
