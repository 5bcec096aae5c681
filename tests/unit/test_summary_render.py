from __future__ import annotations

import re

from sheetscan.models.scan_summary import ScanStatsAccumulator, ScanSummary, SourceStat
from sheetscan.services.summary import format_number, render_summary_line

SUMMARY_PATTERN = re.compile(
    r"^SUMMARY\s+sources=([0-9]+)\s+skipped=([0-9]+)\s+rows=([0-9]+)\s+nulled_cells=([0-9]+)\s+"
    r"elapsed_sec=([0-9]+\.?[0-9]*)\s+throughput_rps=([0-9]+\.?[0-9]*)$"
)


def _summary(**kw) -> ScanSummary:
    base = dict(sources=2, skipped_sources=1, rows=1000, nulled_cells=3, elapsed_seconds=2.0,
                throughput_rows_per_sec=500.0)
    base.update(kw)
    return ScanSummary(**base)


def test_render_summary_line():
    line = render_summary_line(_summary())
    m = SUMMARY_PATTERN.match(line)
    assert m, line
    assert m.groups() == ("2", "1", "1000", "3", "2", "500")


def test_render_fractional_and_tiny_values():
    line = render_summary_line(_summary(elapsed_seconds=0.004, throughput_rows_per_sec=1234.5))
    assert SUMMARY_PATTERN.match(line)
    assert "elapsed_sec=0.004 " in line
    assert line.endswith("throughput_rps=1234.5")


def test_format_number():
    assert format_number(0) == "0"
    assert format_number(3.0) == "3"
    assert format_number(0.0000012) == "0.000001"
    assert format_number(0.25) == "0.25"


def test_accumulator_snapshot():
    ticks = iter([10.0, 12.0])
    acc = ScanStatsAccumulator(clock=lambda: next(ticks))
    acc.add_source(SourceStat("a.xlsx", "S", 30, 1, "exhausted_range"))
    acc.add_source(SourceStat("b.xlsx", "S", 10, 0, "stopped_at_empty"))
    acc.skip_source()
    acc.stop()
    s = acc.snapshot()
    assert (s.sources, s.skipped_sources, s.rows, s.nulled_cells) == (2, 1, 40, 1)
    assert s.elapsed_seconds == 2.0
    assert s.throughput_rows_per_sec == 20.0
    assert len(s.source_stats) == 2
