from __future__ import annotations

import pytest

from sheetscan.config.loader import build_scan_config
from sheetscan.errors import ColumnTypeError, ConfigError, EmptySheetError
from sheetscan.excel.reader import MemoryGridProvider
from sheetscan.models.scan_summary import ScanStatsAccumulator
from sheetscan.models.source import ResolvedSource
from sheetscan.services.union import UnionEngine

BOOKS = {
    "s1.xlsx": {"Sheet1": [["id", "name"], [1, "a"], [2, "b"]]},
    "s2.xlsx": {"Sheet1": [["code", "label", "extra"], [10, "x", "e1"]]},
    "s3.xlsx": {"Sheet1": [["id", "label"], [7, "q"]]},
    "s4.xlsx": {"Sheet1": [["id"], ["not-a-number"]]},
    "empty.xlsx": {"Sheet1": []},
}

S1, S2, S3, S4 = (ResolvedSource(f"s{i}.xlsx", "Sheet1") for i in range(1, 5))
EMPTY = ResolvedSource("empty.xlsx", "Sheet1")


def _run(sources, **params):
    provider = MemoryGridProvider(BOOKS)
    engine = UnionEngine(provider, build_scan_config(**params))
    plan = engine.bind(sources)
    return plan, list(engine.stream(plan)), provider


def test_positional_first_source_defines_schema():
    plan, rows, provider = _run([S1, S2])
    assert plan.schema.as_pairs() == [("id", "bigint"), ("name", "varchar")]
    assert rows == [(1, "a"), (2, "b"), (10, "x")]
    # later sources are opened only for streaming, never analyzed
    assert provider.opened == [("s1.xlsx", "Sheet1"), ("s1.xlsx", "Sheet1"), ("s2.xlsx", "Sheet1")]


def test_positional_pads_narrow_sources():
    _, rows, _ = _run([S2, S1])
    assert rows == [(10, "x", "e1"), (1, "a", None), (2, "b", None)]


def test_by_name_unions_columns_in_first_seen_order():
    plan, rows, _ = _run([S1, S3], union_by_name=True)
    assert plan.schema.names == ["id", "name", "label"]
    assert rows == [(1, "a", None), (2, "b", None), (7, None, "q")]


def test_by_name_type_conflict_fails_bind():
    with pytest.raises(ColumnTypeError) as exc:
        _run([S1, S4], union_by_name=True)
    err = exc.value
    assert (err.file, err.sheet, err.column) == ("s4.xlsx", "Sheet1", "id")
    assert (err.expected, err.actual) == ("bigint", "varchar")


def test_only_one_source_open_at_a_time():
    provider = MemoryGridProvider(BOOKS)
    engine = UnionEngine(provider, build_scan_config(union_by_name=True))
    plan = engine.bind([S1, S2, S3])
    assert provider.open_handles == 0
    for _ in engine.stream(plan):
        assert provider.open_handles == 1
    assert provider.open_handles == 0


def test_source_columns_appended_sheet_then_file():
    plan, rows, _ = _run([S1, S3], file_name_column="file", sheet_name_column="sheet")
    assert plan.schema.as_pairs()[-2:] == [("sheet", "varchar"), ("file", "varchar")]
    assert rows[0] == (1, "a", "Sheet1", "s1.xlsx")
    assert rows[-1] == (7, "q", "Sheet1", "s3.xlsx")


def test_source_column_name_clash():
    with pytest.raises(ConfigError):
        _run([S1], file_name_column="name")


def test_empty_sources_are_skipped():
    plan, rows, _ = _run([EMPTY, S1, EMPTY])
    assert plan.skipped == (EMPTY,)
    stats = ScanStatsAccumulator()
    provider = MemoryGridProvider(BOOKS)
    engine = UnionEngine(provider, build_scan_config())
    plan = engine.bind([EMPTY, S1, EMPTY])
    assert list(engine.stream(plan, stats)) == [(1, "a"), (2, "b")]
    summary = stats.snapshot()
    assert (summary.sources, summary.skipped_sources, summary.rows) == (1, 1, 2)


def test_all_sources_empty():
    with pytest.raises(EmptySheetError):
        _run([EMPTY], union_by_name=True)


def test_cancel_releases_current_source_and_stops():
    provider = MemoryGridProvider(BOOKS)
    engine = UnionEngine(provider, build_scan_config())
    rows = engine.stream(engine.bind([S1, S2]))
    assert next(rows) == (1, "a")
    engine.cancel()
    assert provider.open_handles == 0
    assert list(rows) == []
    assert ("s2.xlsx", "Sheet1") not in provider.opened


class _Recorder:
    def __init__(self):
        self.events = []

    def start_source(self, source):
        self.events.append(("start", source.file))

    def finish_source(self, source, rows):
        self.events.append(("finish", source.file, rows))


def test_listeners_see_source_boundaries():
    recorder = _Recorder()
    engine = UnionEngine(MemoryGridProvider(BOOKS), build_scan_config(), listeners=[recorder])
    list(engine.stream(engine.bind([S1, S3])))
    assert recorder.events == [
        ("start", "s1.xlsx"), ("finish", "s1.xlsx", 2),
        ("start", "s3.xlsx"), ("finish", "s3.xlsx", 1),
    ]
