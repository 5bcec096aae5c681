from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence

from openpyxl.utils import get_column_letter

from ..errors import EmptySheetError
from ..excel.reader import SheetGrid
from ..models.column_type import ColumnType, infer_type
from ..models.raw_cell import CellKind, RawCell
from ..models.scan_config import ColumnOverride, ScanConfig
from ..models.schema import Column, ColumnSchema
from ..models.source import ResolvedSource

"""Schema Analyzer: derive a ColumnSchema for one source from sampled rows.

Analysis is read-only and depends only on (grid contents, range, header,
analyze_rows, overrides, nulls), so repeating it yields the same schema.
"""

__all__ = [
    "analyze_grid",
    "column_span",
    "data_start_row",
    "iter_data_rows",
    "row_is_empty",
]

logger = logging.getLogger(__name__)


def column_span(grid: SheetGrid, config: ScanConfig) -> range:
    """1-based sheet columns covered by the range (clipped to the populated extent if open)."""
    rng = config.cell_range
    return range(rng.first_column, rng.column_end(grid.max_column) + 1)


def data_start_row(config: ScanConfig) -> int:
    first = config.cell_range.first_row
    return first + 1 if config.header else first


def row_is_empty(cells: Sequence[RawCell], nulls: frozenset[str]) -> bool:
    return all(cell.is_empty(nulls) for cell in cells)


def iter_data_rows(grid: SheetGrid, config: ScanConfig, span: range) -> Iterator[tuple[int, list[RawCell]]]:
    """Yield (row number, in-range cells) for every physical data row within bounds."""
    last_row = config.cell_range.row_end(grid.max_row)
    for row in range(data_start_row(config), last_row + 1):
        yield row, [grid.read_cell(row, col) for col in span]


def _header_text(cell: RawCell, nulls: frozenset[str]) -> str | None:
    if cell.is_empty(nulls):
        return None
    if cell.kind is CellKind.FLOAT and float(cell.value).is_integer():
        return str(int(cell.value))
    if cell.kind is CellKind.BOOLEAN:
        return "true" if cell.value else "false"
    if cell.kind in (CellKind.DATE, CellKind.TIME, CellKind.DATETIME) and hasattr(cell.value, "isoformat"):
        return cell.value.isoformat()
    text = str(cell.value).strip()
    return text or None


def _column_names(grid: SheetGrid, config: ScanConfig, span: range) -> list[str]:
    letters = [get_column_letter(col) for col in span]
    if not config.header:
        return letters
    header_row = config.cell_range.first_row
    raw = [_header_text(grid.read_cell(header_row, col), config.nulls) for col in span]
    names: list[str] = []
    taken: set[str] = set()
    for text, letter in zip(raw, letters):
        base = text if text is not None else letter
        name = base
        suffix = 0
        while name in taken:
            suffix += 1
            name = f"{base}_{suffix}"
        taken.add(name)
        names.append(name)
    return names


def _resolve_overrides(
    names: list[str], overrides: Sequence[ColumnOverride], source: ResolvedSource | None
) -> dict[int, ColumnType]:
    resolved: dict[int, ColumnType] = {}
    for override in overrides:
        hits = [i for i, name in enumerate(names) if override.matches(name, i + 1)]
        if not hits:
            logger.warning("column override %r matches no column in %s", override.key, source or "source")
            continue
        for i in hits:
            resolved[i] = override.kind
    return resolved


def analyze_grid(
    grid: SheetGrid,
    config: ScanConfig,
    source: ResolvedSource | None = None,
    *,
    overrides: Sequence[ColumnOverride] | None = None,
    honor_row_policies: bool = True,
) -> ColumnSchema:
    """Infer the column schema of one open sheet.

    Args:
        grid: Open sheet
        config: Scan options (range, header, analyze_rows, nulls, row policies)
        source: Source being analyzed, used for error messages and logs
        overrides: Type overrides; defaults to ``config.columns``
        honor_row_policies: Apply skip_empty_rows / end_at_empty_row while
            sampling (the analyze entry points sample raw rows)

    Returns:
        ColumnSchema in sheet column order

    Raises:
        EmptySheetError: If the range contains no columns
    """
    span = column_span(grid, config)
    if len(span) == 0:
        raise EmptySheetError(source.file if source else "<grid>", source.sheet if source else "")
    names = _column_names(grid, config, span)
    fixed = _resolve_overrides(names, config.columns if overrides is None else overrides, source)

    observed: list[list[ColumnType | None]] = [[] for _ in span]
    open_columns = [i for i in range(len(span)) if i not in fixed]
    sampled = 0
    if open_columns and config.analyze_rows > 0:
        for _, cells in iter_data_rows(grid, config, span):
            if honor_row_policies and row_is_empty(cells, config.nulls):
                if config.end_at_empty_row:
                    break
                if config.skip_empty_rows:
                    continue
            for i in open_columns:
                cell = cells[i]
                if not cell.is_empty(config.nulls):
                    observed[i].append(cell.observed_type())
            sampled += 1
            if sampled >= config.analyze_rows:
                break

    columns = []
    for i, name in enumerate(names):
        kind = fixed.get(i) or infer_type(observed[i])
        columns.append(Column(name, kind))
    logger.debug("analyzed %s rows=%d columns=%d", source or "grid", sampled, len(columns))
    return ColumnSchema(tuple(columns))
