from __future__ import annotations

from pathlib import Path

import pytest

from sheetscan.errors import NoMatchError, SpreadsheetIOError
from sheetscan.excel.globbing import GlobMatcher
from sheetscan.excel.reader import MemoryGridProvider
from sheetscan.models.source import ResolvedSource, SheetPattern, SourceSpec
from sheetscan.services.resolver import PatternResolver

BOOKS = {
    "a1.xlsx": {"Data": [["x"]], "Data2": [["x"]], "Other": [["x"]]},
    "b1.xlsx": {"Summary": [["x"]], "Data": [["x"]]},
    "c1.xlsx": {"Misc": [["x"]]},
}


@pytest.fixture()
def resolver() -> PatternResolver:
    return PatternResolver(MemoryGridProvider(BOOKS), GlobMatcher(candidates=BOOKS))


def _pairs(sources):
    return [(s.file, s.sheet) for s in sources]


def test_pattern_order_not_lexical_order(resolver):
    sources = resolver.resolve(SourceSpec(("b*.xlsx", "a*.xlsx")))
    assert _pairs(sources) == [("b1.xlsx", "Summary"), ("a1.xlsx", "Data")]


def test_duplicate_files_keep_first_position(resolver):
    sources = resolver.resolve(SourceSpec(("b1.xlsx", "*.xlsx")))
    assert [s.file for s in sources] == ["b1.xlsx", "a1.xlsx", "c1.xlsx"]


def test_sheet_patterns_keep_native_sheet_order(resolver):
    spec = SourceSpec(("a1.xlsx",), (SheetPattern("Other"), SheetPattern("Data*")))
    assert _pairs(resolver.resolve(spec)) == [("a1.xlsx", "Data"), ("a1.xlsx", "Data2"), ("a1.xlsx", "Other")]


def test_file_without_matching_sheet_is_skipped(resolver):
    spec = SourceSpec(("*.xlsx",), (SheetPattern("Data"),))
    assert _pairs(resolver.resolve(spec)) == [("a1.xlsx", "Data"), ("b1.xlsx", "Data")]


def test_file_scoped_sheet_patterns(resolver):
    spec = SourceSpec(("*.xlsx",), (SheetPattern.parse("b*.xlsx=S*"), SheetPattern.parse("c1.xlsx=*")))
    assert _pairs(resolver.resolve(spec)) == [("b1.xlsx", "Summary"), ("c1.xlsx", "Misc")]


def test_nothing_matched(resolver):
    with pytest.raises(NoMatchError):
        resolver.resolve(SourceSpec(("*.xlsx",), (SheetPattern("Nope"),)))
    with pytest.raises(NoMatchError):
        resolver.resolve(SourceSpec(("z*.xlsx",)))


def test_missing_literal_file(resolver):
    with pytest.raises(SpreadsheetIOError):
        resolver.resolve(SourceSpec(("missing.xlsx",)))


def test_resolve_single(resolver):
    assert resolver.resolve_single("a1.xlsx") == ResolvedSource("a1.xlsx", "Data")
    assert resolver.resolve_single("a1.xlsx", "Oth*") == ResolvedSource("a1.xlsx", "Other")
    with pytest.raises(NoMatchError):
        resolver.resolve_single("a1.xlsx", "Summary")
    with pytest.raises(SpreadsheetIOError):
        resolver.resolve_single("zzz.xlsx")


def test_sheet_pattern_parse():
    assert SheetPattern.parse("Data") == SheetPattern("Data")
    assert SheetPattern.parse("x=y=Sheet") == SheetPattern("Sheet", "x=y")
    assert str(SheetPattern("S*", "b*.xlsx")) == "b*.xlsx=S*"


def test_filesystem_expansion(tmp_path: Path, make_xlsx):
    make_xlsx("b1.xlsx", {"S": [["x"]]})
    make_xlsx("a1.xlsx", {"S": [["x"]]})
    make_xlsx("a2.xlsx", {"S": [["x"]]}, directory=tmp_path / "nested")
    matcher = GlobMatcher()
    assert matcher.expand(str(tmp_path / "*.xlsx")) == [str(tmp_path / "a1.xlsx"), str(tmp_path / "b1.xlsx")]
    assert matcher.expand(str(tmp_path / "**" / "a*.xlsx")) == [
        str(tmp_path / "a1.xlsx"),
        str(tmp_path / "nested" / "a2.xlsx"),
    ]
