from __future__ import annotations

from datetime import date, datetime
from pathlib import Path

import pandas as pd
import pytest

from sheetscan.errors import SpreadsheetIOError
from sheetscan.excel.reader import ExcelGridProvider, OpenpyxlGridProvider, PandasGridProvider
from sheetscan.models.raw_cell import CellKind


@pytest.fixture()
def frame_book(tmp_path: Path) -> str:
    path = tmp_path / "frame.xlsx"
    frame = pd.DataFrame(
        {
            "id": [1, 2],
            "when": [datetime(2024, 1, 2), datetime(2024, 1, 3, 12, 0)],
            "note": ["x", ""],
        }
    )
    with pd.ExcelWriter(path) as writer:
        frame.to_excel(writer, sheet_name="First", index=False)
        frame.head(1).to_excel(writer, sheet_name="Second", index=False)
    return str(path)


def test_list_sheets_in_workbook_order(frame_book):
    assert PandasGridProvider().list_sheets(frame_book) == ["First", "Second"]


def test_pandas_grid_cells(frame_book):
    with PandasGridProvider().open_sheet(frame_book, "First") as grid:
        assert (grid.max_row, grid.max_column) == (3, 3)
        assert grid.read_cell(1, 2).value == "when"
        assert grid.read_cell(2, 1).kind is CellKind.INTEGER
        when = grid.read_cell(2, 2)
        assert when.kind is CellKind.DATE
        assert when.value == date(2024, 1, 2)
        assert grid.read_cell(3, 2).kind is CellKind.DATETIME
        assert grid.read_cell(3, 3).kind is CellKind.EMPTY
        assert grid.read_cell(9, 9).kind is CellKind.EMPTY


def test_unknown_sheet(frame_book):
    with pytest.raises(SpreadsheetIOError, match="sheet 'Nope' not found"):
        PandasGridProvider().open_sheet(frame_book, "Nope")
    with pytest.raises(SpreadsheetIOError, match="sheet 'Nope' not found"):
        OpenpyxlGridProvider().open_sheet(frame_book, "Nope")


def test_missing_file(tmp_path: Path):
    with pytest.raises(SpreadsheetIOError, match="file not found"):
        PandasGridProvider().list_sheets(str(tmp_path / "gone.ods"))


def test_dispatch_on_suffix():
    provider = ExcelGridProvider()
    assert isinstance(provider._delegate("a/b.XLSX"), OpenpyxlGridProvider)
    assert isinstance(provider._delegate("a/b.xlsm"), OpenpyxlGridProvider)
    assert isinstance(provider._delegate("a/b.xls"), PandasGridProvider)
    assert isinstance(provider._delegate("a/b.ods"), PandasGridProvider)
