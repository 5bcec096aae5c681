from __future__ import annotations

import re
from io import StringIO

from sheetscan.cli.__main__ import main as cli_main
from sheetscan.models.scan_summary import ScanSummary
from sheetscan.services.summary import render_summary_line

"""SUMMARY 行フォーマット契約テスト"""

SUMMARY_PATTERN = re.compile(
    r"^SUMMARY\s+sources=([0-9]+)\s+skipped=([0-9]+)\s+rows=([0-9]+)\s+"
    r"nulled_cells=([0-9]+)\s+elapsed_sec=([0-9]+\.?[0-9]*)\s+"
    r"throughput_rps=([0-9]+\.?[0-9]*)$"
)


def test_summary_pattern_example_line():
    line = "SUMMARY sources=3 skipped=1 rows=120 nulled_cells=2 elapsed_sec=0.84 throughput_rps=142.9"
    assert SUMMARY_PATTERN.match(line)


def test_rendered_summary_matches_contract():
    summary = ScanSummary(
        sources=2,
        skipped_sources=0,
        rows=1500,
        nulled_cells=4,
        elapsed_seconds=1.25,
        throughput_rows_per_sec=1200.0,
    )
    m = SUMMARY_PATTERN.match(render_summary_line(summary))
    assert m
    assert m.group(3) == "1500"


def test_cli_emits_summary_last(temp_workdir, make_xlsx, capsys):
    make_xlsx("a.xlsx", {"S": [["id"], [1], [2]]}, directory=temp_workdir / "data")
    code = cli_main(["read", "data/a.xlsx"], out=StringIO())
    assert code == 0
    lines = [line for line in capsys.readouterr().err.splitlines() if line]
    assert SUMMARY_PATTERN.match(lines[-1])
    assert "rows=2" in lines[-1]
