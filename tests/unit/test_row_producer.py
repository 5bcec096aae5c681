from __future__ import annotations

import pytest

from sheetscan.config.loader import build_scan_config
from sheetscan.errors import CellConversionError
from sheetscan.excel.reader import ListSheetGrid
from sheetscan.models.column_type import ColumnType
from sheetscan.models.source import ResolvedSource
from sheetscan.services.producer import ColumnBinding, ProducerState, RowProducer

SOURCE = ResolvedSource("book.xlsx", "Sheet1")
V = ColumnType.VARCHAR

# header, A, B, <empty>, C
ROWS = [["v"], ["A"], ["B"], [None], ["C"]]


def _producer(rows, bindings=(ColumnBinding(0, V),), **params) -> RowProducer:
    return RowProducer(ListSheetGrid(rows), SOURCE, build_scan_config(**params), bindings)


def test_default_emits_empty_rows_as_nulls():
    assert list(_producer(ROWS)) == [("A",), ("B",), (None,), ("C",)]


def test_skip_empty_rows():
    producer = _producer(ROWS, skip_empty_rows=True)
    assert list(producer) == [("A",), ("B",), ("C",)]
    assert producer.state is ProducerState.EXHAUSTED_RANGE


def test_end_at_empty_row():
    producer = _producer(ROWS, end_at_empty_row=True)
    assert list(producer) == [("A",), ("B",)]
    assert producer.state is ProducerState.STOPPED_AT_EMPTY


def test_end_at_empty_row_wins_over_skip():
    assert list(_producer(ROWS, end_at_empty_row=True, skip_empty_rows=True)) == [("A",), ("B",)]


def test_producer_is_not_restartable():
    producer = _producer(ROWS)
    assert producer.state is ProducerState.BEFORE_DATA
    assert len(list(producer)) == 4
    assert list(producer) == []


def test_grid_released_on_terminal_state():
    grid = ListSheetGrid(ROWS)
    producer = RowProducer(grid, SOURCE, build_scan_config(), [ColumnBinding(0, V)])
    next(producer)
    assert producer.state is ProducerState.STREAMING
    assert not grid.closed
    list(producer)
    assert grid.closed


def test_short_rows_padded_and_extra_columns_ignored():
    rows = [["a", "b", "c"], [1, 2, 3, 4], [5]]
    bindings = [ColumnBinding(0, ColumnType.BIGINT), ColumnBinding(1, ColumnType.BIGINT), ColumnBinding(None, V)]
    assert list(_producer(rows, bindings, range="A1:B3")) == [(1, 2, None), (5, None, None)]


def test_empty_row_detection_uses_in_range_columns_only():
    rows = [["a", "b"], [1, "x"], [None, "y"], [2, "z"]]
    bindings = [ColumnBinding(0, ColumnType.BIGINT)]
    assert list(_producer(rows, bindings, range="A1:A4", skip_empty_rows=True)) == [(1,), (2,)]


def test_conversion_error_aborts_with_location():
    rows = [["n"], [1], ["N/A"], [3]]
    grid = ListSheetGrid(rows)
    producer = RowProducer(grid, SOURCE, build_scan_config(), [ColumnBinding(0, ColumnType.BIGINT)])
    assert next(producer) == (1,)
    with pytest.raises(CellConversionError) as ei:
        next(producer)
    err = ei.value
    assert (err.file, err.sheet, err.row, err.column, err.value) == ("book.xlsx", "Sheet1", 3, 1, "N/A")
    assert err.reference == "A3"
    assert producer.state is ProducerState.DONE
    assert grid.closed


def test_error_as_null_continues_and_reports():
    seen = []
    rows = [["n"], [1], ["N/A"], [3]]
    producer = RowProducer(
        ListSheetGrid(rows), SOURCE, build_scan_config(error_as_null=True),
        [ColumnBinding(0, ColumnType.BIGINT)],
        on_null=lambda *args: seen.append(args),
    )
    assert list(producer) == [(1,), (None,), (3,)]
    assert producer.nulled_cells == 1
    assert seen[0][:4] == (SOURCE, 3, 1, "N/A")


def test_cancel_stops_at_next_pull():
    grid = ListSheetGrid(ROWS)
    producer = RowProducer(grid, SOURCE, build_scan_config(), [ColumnBinding(0, V)])
    assert next(producer) == ("A",)
    producer.cancel()
    assert list(producer) == []
    assert producer.state is ProducerState.DONE
    assert grid.closed


def test_no_header_starts_at_first_row():
    assert list(_producer(ROWS, header=False, end_at_empty_row=True)) == [("v",), ("A",), ("B",)]
