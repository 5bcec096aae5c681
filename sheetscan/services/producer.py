from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..errors import CellConversionError
from ..excel.reader import SheetGrid
from ..models.column_type import ColumnType
from ..models.raw_cell import RawCell
from ..models.scan_config import ScanConfig
from ..models.source import ResolvedSource
from .analyzer import column_span, data_start_row, row_is_empty
from .coercion import CoercionFailure, coerce_cell

"""Row Producer: stream typed rows for one open source.

A RowProducer is a one-shot iterator. It owns the SheetGrid handed to it and
releases it when it reaches a terminal state, when it is closed, or when a
conversion error escapes. Re-scanning a source needs a new producer.
"""

__all__ = [
    "ProducerState",
    "ColumnBinding",
    "RowProducer",
    "NullCallback",
]

logger = logging.getLogger(__name__)


class ProducerState(Enum):
    BEFORE_DATA = "before_data"
    STREAMING = "streaming"
    EXHAUSTED_RANGE = "exhausted_range"
    STOPPED_AT_EMPTY = "stopped_at_empty"
    DONE = "done"

    @property
    def is_terminal(self) -> bool:
        return self in (ProducerState.EXHAUSTED_RANGE, ProducerState.STOPPED_AT_EMPTY, ProducerState.DONE)


@dataclass(frozen=True)
class ColumnBinding:
    """Where one output column comes from.

    Attributes:
        index: 0-based position within the source's in-range columns, or None
            for a column the source does not have (always null)
        kind: Declared type of the output column
    """

    index: int | None
    kind: ColumnType


# (source, row, column, raw value, target type name, reason)
NullCallback = Callable[[ResolvedSource, int, int, Any, str, str], None]


class RowProducer:
    """Iterator of typed row tuples for one ResolvedSource."""

    def __init__(
        self,
        grid: SheetGrid,
        source: ResolvedSource,
        config: ScanConfig,
        bindings: Sequence[ColumnBinding],
        *,
        on_null: NullCallback | None = None,
    ) -> None:
        self._grid = grid
        self.source = source
        self._config = config
        self._bindings = tuple(bindings)
        self._on_null = on_null
        self._span = column_span(grid, config)
        self._next_row = data_start_row(config)
        self._last_row = config.cell_range.row_end(grid.max_row)
        self._cancelled = False
        self._released = False
        self.state = ProducerState.BEFORE_DATA
        self.rows_emitted = 0
        self.nulled_cells = 0

    @property
    def width(self) -> int:
        return len(self._bindings)

    def __iter__(self) -> RowProducer:
        return self

    def __next__(self) -> tuple[Any, ...]:
        if self.state.is_terminal:
            raise StopIteration
        self.state = ProducerState.STREAMING
        try:
            while True:
                if self._cancelled:
                    self._finish(ProducerState.DONE)
                    raise StopIteration
                if self._next_row > self._last_row:
                    self._finish(ProducerState.EXHAUSTED_RANGE)
                    raise StopIteration
                row = self._next_row
                self._next_row += 1
                cells = [self._grid.read_cell(row, col) for col in self._span]
                if row_is_empty(cells, self._config.nulls):
                    if self._config.end_at_empty_row:
                        self._finish(ProducerState.STOPPED_AT_EMPTY)
                        raise StopIteration
                    if self._config.skip_empty_rows:
                        continue
                values = tuple(self._convert(row, cells, b) for b in self._bindings)
                self.rows_emitted += 1
                return values
        except CellConversionError:
            self._finish(ProducerState.DONE)
            raise

    def _convert(self, row: int, cells: list[RawCell], binding: ColumnBinding) -> Any:
        if binding.index is None or binding.index >= len(cells):
            return None
        cell = cells[binding.index]
        try:
            return coerce_cell(cell, binding.kind, self._config.nulls)
        except CoercionFailure as e:
            column = self._span[binding.index]
            if not self._config.error_as_null:
                raise CellConversionError(
                    self.source.file, self.source.sheet, row, column, cell.value, binding.kind.value
                ) from e
            self.nulled_cells += 1
            if self._on_null is not None:
                self._on_null(self.source, row, column, cell.value, binding.kind.value, str(e))
            return None

    def _finish(self, state: ProducerState) -> None:
        self.state = state
        self._release()
        logger.debug("%s finished state=%s rows=%d", self.source, state.value, self.rows_emitted)

    def _release(self) -> None:
        if not self._released:
            self._released = True
            self._grid.close()

    def cancel(self) -> None:
        """Stop at the next pull; the grid is released then (or by close())."""
        self._cancelled = True

    def close(self) -> None:
        """Release the grid now; a non-terminal producer ends in DONE."""
        if not self.state.is_terminal:
            self.state = ProducerState.DONE
        self._release()
