from __future__ import annotations

from ..models.scan_summary import ScanSummary

"""SUMMARY line rendering.

Format:
    SUMMARY sources={n} skipped={n} rows={n} nulled_cells={n} elapsed_sec={x} throughput_rps={x}
"""

__all__ = [
    "render_summary_line",
    "format_number",
]


def format_number(value: float) -> str:
    """Render without scientific notation; integral values drop the decimal point."""
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return str(value)


def render_summary_line(summary: ScanSummary) -> str:
    """Render the SUMMARY line for a finished scan.

    Examples:
        >>> s = ScanSummary(sources=2, skipped_sources=0, rows=1000, nulled_cells=3,
        ...                 elapsed_seconds=2.0, throughput_rows_per_sec=500.0)
        >>> render_summary_line(s)
        'SUMMARY sources=2 skipped=0 rows=1000 nulled_cells=3 elapsed_sec=2 throughput_rps=500'
    """
    return (
        f"SUMMARY sources={summary.sources} "
        f"skipped={summary.skipped_sources} "
        f"rows={summary.rows} "
        f"nulled_cells={summary.nulled_cells} "
        f"elapsed_sec={format_number(summary.elapsed_seconds)} "
        f"throughput_rps={format_number(summary.throughput_rows_per_sec)}"
    )
