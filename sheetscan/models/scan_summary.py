from __future__ import annotations

import time
from dataclasses import dataclass

"""Scan metrics: per-source statistics and the aggregated SUMMARY figures."""

__all__ = [
    "SourceStat",
    "ScanSummary",
    "ScanStatsAccumulator",
]


@dataclass(frozen=True)
class SourceStat:
    file: str
    sheet: str
    rows: int  # 出力行数
    nulled_cells: int  # error_as_null で null 化したセル数
    stop_state: str  # ProducerState.value at release


@dataclass(frozen=True)
class ScanSummary:
    """Aggregated metrics for one scan (feeds the SUMMARY line)."""

    sources: int  # 読み込んだソース数
    skipped_sources: int  # 空のためスキップしたソース数
    rows: int
    nulled_cells: int
    elapsed_seconds: float
    throughput_rows_per_sec: float
    source_stats: tuple[SourceStat, ...] = ()


class ScanStatsAccumulator:
    """Mutable counterpart of ScanSummary, updated while a scan streams."""

    def __init__(self, clock=time.perf_counter) -> None:
        self._clock = clock
        self._start = clock()
        self._end: float | None = None
        self.skipped_sources = 0
        self.stats: list[SourceStat] = []

    def add_source(self, stat: SourceStat) -> None:
        self.stats.append(stat)

    def skip_source(self) -> None:
        self.skipped_sources += 1

    def stop(self) -> None:
        if self._end is None:
            self._end = self._clock()

    def snapshot(self) -> ScanSummary:
        end = self._end if self._end is not None else self._clock()
        elapsed = max(end - self._start, 0.0)
        rows = sum(s.rows for s in self.stats)
        throughput = rows / elapsed if elapsed > 0 else 0.0
        return ScanSummary(
            sources=len(self.stats),
            skipped_sources=self.skipped_sources,
            rows=rows,
            nulled_cells=sum(s.nulled_cells for s in self.stats),
            elapsed_seconds=round(elapsed, 3),
            throughput_rows_per_sec=round(throughput, 1),
            source_stats=tuple(self.stats),
        )
