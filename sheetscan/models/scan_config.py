from __future__ import annotations

from dataclasses import dataclass, field

from ..excel.range import RangeSpec
from .column_type import ColumnType

"""Scan configuration models.

Built once per query at bind time (see sheetscan.config.loader.build_scan_config)
and immutable thereafter.
"""

__all__ = [
    "ColumnOverride",
    "ScanConfig",
    "DEFAULT_ANALYZE_ROWS",
    "DEFAULT_NULLS",
]

DEFAULT_ANALYZE_ROWS = 10
DEFAULT_NULLS = frozenset({""})


@dataclass(frozen=True)
class ColumnOverride:
    """Declared type for one column, keyed by header name or 1-based position."""

    key: str | int
    kind: ColumnType

    def matches(self, name: str, position: int) -> bool:
        if isinstance(self.key, int):
            return self.key == position
        return self.key == name


@dataclass(frozen=True)
class ScanConfig:
    """Per-query scan options.

    Attributes:
        cell_range: Parsed scan bounds
        header: Read column names from the first row of the range
        analyze_rows: Number of data rows sampled for type inference
        error_as_null: Replace unconvertible cells with null instead of failing
        skip_empty_rows: Drop rows whose in-range cells are all empty
        end_at_empty_row: Stop a source at its first all-empty row
        union_by_name: Align multiple sources by column name (else by position)
        file_name_column: Name of an appended column holding the source file path
        sheet_name_column: Name of an appended column holding the sheet name
        columns: Ordered type overrides
        nulls: String literals treated as empty cells
    """

    cell_range: RangeSpec = field(default_factory=RangeSpec)
    header: bool = True
    analyze_rows: int = DEFAULT_ANALYZE_ROWS
    error_as_null: bool = False
    skip_empty_rows: bool = False
    end_at_empty_row: bool = False
    union_by_name: bool = False
    file_name_column: str | None = None
    sheet_name_column: str | None = None
    columns: tuple[ColumnOverride, ...] = ()
    nulls: frozenset[str] = DEFAULT_NULLS

    @property
    def extra_columns(self) -> list[str]:
        """Appended source columns in output order (sheet first, then file)."""
        extra = []
        if self.sheet_name_column:
            extra.append(self.sheet_name_column)
        if self.file_name_column:
            extra.append(self.file_name_column)
        return extra
