from __future__ import annotations

import re
from dataclasses import dataclass

from openpyxl.utils import column_index_from_string, get_column_letter

from ..errors import RangeSyntaxError

"""Excel-style range notation parser.

Grammar: ``[col][row][":"[col][row]]``; every sub-field is optional.

    "A1:C3"  columns A..C, rows 1..3
    "B2"     start at B2, open end
    "A:C"    columns A..C, all rows
    "2:10"   rows 2..10, all columns
    ":C3"    from A1 to C3

An unspecified start defaults to (1, 1); an unspecified end is unbounded.
"""

__all__ = [
    "RangeSpec",
    "parse_range",
]

_RANGE_PATTERN = re.compile(r"^([A-Z]*)(\d*)(?::([A-Z]*)(\d*))?$")


@dataclass(frozen=True)
class RangeSpec:
    """Parsed scan bounds, 1-based and inclusive. ``None`` means unspecified."""

    start_column: int | None = None
    start_row: int | None = None
    end_column: int | None = None
    end_row: int | None = None

    @property
    def first_column(self) -> int:
        return self.start_column or 1

    @property
    def first_row(self) -> int:
        return self.start_row or 1

    def column_end(self, extent: int) -> int:
        """Last column to scan given the sheet's populated column extent."""
        return self.end_column if self.end_column is not None else extent

    def row_end(self, extent: int) -> int:
        """Last row to scan; an explicit end bound clips the populated extent."""
        if self.end_row is None:
            return extent
        return min(self.end_row, extent)

    def render(self) -> str:
        """Render back to range notation (equivalent, not necessarily identical)."""
        start = _render_bound(self.start_column, self.start_row)
        end = _render_bound(self.end_column, self.end_row)
        if end:
            return f"{start}:{end}"
        return start

    def __str__(self) -> str:
        return self.render()


def _render_bound(column: int | None, row: int | None) -> str:
    letters = get_column_letter(column) if column is not None else ""
    digits = str(row) if row is not None else ""
    return f"{letters}{digits}"


def _parse_column(letters: str, text: str) -> int | None:
    if not letters:
        return None
    try:
        return column_index_from_string(letters)
    except ValueError as e:
        raise RangeSyntaxError(f"invalid range '{text}': bad column '{letters}'") from e


def _parse_row(digits: str, text: str) -> int | None:
    if not digits:
        return None
    row = int(digits)
    if row <= 0:
        raise RangeSyntaxError(f"invalid range '{text}': row numbers start at 1")
    return row


def parse_range(text: str | None) -> RangeSpec:
    """Parse a range string into a RangeSpec.

    Args:
        text: Range notation (case-insensitive) or None / "" for the whole sheet

    Returns:
        RangeSpec with unspecified sub-fields left as None

    Raises:
        RangeSyntaxError: On non-letter column tokens, non-positive rows, or a
            start bound exceeding an explicit end bound on either axis
    """
    if text is None:
        return RangeSpec()
    if not isinstance(text, str):
        raise RangeSyntaxError(f"invalid range {text!r}: expected a string")
    normalized = text.strip().upper()
    match = _RANGE_PATTERN.match(normalized)
    if match is None:
        raise RangeSyntaxError(f"invalid range '{text}'")
    spec = RangeSpec(
        start_column=_parse_column(match.group(1), text),
        start_row=_parse_row(match.group(2), text),
        end_column=_parse_column(match.group(3) or "", text),
        end_row=_parse_row(match.group(4) or "", text),
    )
    if spec.end_column is not None and spec.first_column > spec.end_column:
        raise RangeSyntaxError(f"invalid range '{text}': start column after end column")
    if spec.end_row is not None and spec.first_row > spec.end_row:
        raise RangeSyntaxError(f"invalid range '{text}': start row after end row")
    return spec
