# Shared pytest fixtures
from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
from openpyxl import Workbook

from sheetscan.excel.globbing import GlobMatcher
from sheetscan.excel.reader import MemoryGridProvider
from sheetscan.logging.init import reset_logging


@pytest.fixture()
def temp_workdir(monkeypatch, tmp_path: Path) -> Path:
    (tmp_path / "data").mkdir()
    monkeypatch.chdir(tmp_path)
    yield tmp_path


@pytest.fixture(autouse=True)
def _reset_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def make_xlsx(tmp_path: Path) -> Callable[..., Path]:
    """Write an .xlsx with openpyxl: ``make_xlsx("a.xlsx", {"Sheet1": [[...], ...]})``.

    Rows are appended as-is (None leaves a blank cell).
    """

    def _make(name: str, sheets: dict[str, list[list[Any]]], directory: Path | None = None) -> Path:
        path = (directory or tmp_path) / name
        path.parent.mkdir(parents=True, exist_ok=True)
        wb = Workbook()
        wb.remove(wb.active)
        for sheet, rows in sheets.items():
            ws = wb.create_sheet(sheet)
            for row in rows:
                ws.append(row)
        wb.save(path)
        return path

    return _make


@pytest.fixture()
def memory_workbooks() -> dict[str, dict[str, list[list[Any]]]]:
    return {
        "a1.xlsx": {
            "Data": [["id", "name"], [1, "Alice"], [2, "Bob"]],
            "Notes": [["note"], ["hello"]],
        },
        "b1.xlsx": {
            "Data": [["id", "name"], [3, "Carol"]],
        },
    }


@pytest.fixture()
def memory_env(memory_workbooks) -> tuple[MemoryGridProvider, GlobMatcher]:
    provider = MemoryGridProvider(memory_workbooks)
    return provider, GlobMatcher(candidates=memory_workbooks.keys())
