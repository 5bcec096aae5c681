from __future__ import annotations

import argparse
import csv
import json
import sys
from datetime import date, time, timedelta
from pathlib import Path
from time import perf_counter
from typing import Any, TextIO

from ..config.loader import QuerySpec, build_scan_config, load_query, parse_sheet_patterns
from ..errors import ConfigError, SheetScanError
from ..logging.error_log import ErrorLogBuffer
from ..logging.init import log_summary, setup_logging
from ..models.scan_summary import ScanSummary
from ..models.source import SourceSpec
from ..services.coercion import format_duration
from ..services.orchestrator import run_analysis, run_query
from ..services.progress import ProgressTracker
from ..services.summary import render_summary_line

"""CLI entrypoint.

    python -m sheetscan.cli analyze FILE_PATTERN... [options]
    python -m sheetscan.cli read FILE_PATTERN... [options]

Results go to stdout (csv or jsonl); log lines and the final SUMMARY line go
to stderr.
"""

EXIT_SUCCESS = 0
EXIT_FATAL = 1

ANALYZE_COLUMNS = ["file_name", "sheet_name", "column_name", "column_type"]


def _scan_options() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(add_help=False)
    p.add_argument("patterns", nargs="*", metavar="FILE_PATTERN", help="Spreadsheet path or glob pattern")
    p.add_argument("--sheet", action="append", dest="sheets", metavar="PATTERN",
                   help="Sheet pattern, optionally file-scoped as FILE_PATTERN=SHEET_PATTERN (repeatable)")
    p.add_argument("--range", dest="cell_range", metavar="RANGE", help="Cell range such as A1:D100")
    p.add_argument("--no-header", dest="header", action="store_false", default=None,
                   help="First row is data; columns are named by letter")
    p.add_argument("--analyze-rows", type=int, metavar="N", help="Rows sampled for type inference (default 10)")
    p.add_argument("--error-as-null", action="store_true", default=None, help="Null out unconvertible cells")
    p.add_argument("--column", action="append", dest="columns", metavar="KEY=TYPE",
                   help="Column type override; KEY is a header name or 1-based position (repeatable)")
    p.add_argument("--null", action="append", dest="nulls", metavar="TEXT",
                   help="String treated as an empty cell (repeatable; default: empty string)")
    p.add_argument("--query", type=Path, metavar="FILE.yml", help="Read the query from a YAML file")
    p.add_argument("--format", choices=["csv", "jsonl"], default="csv", help="Output format")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    return p


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="sheetscan", description="Query spreadsheets as typed tables")
    sub = parser.add_subparsers(dest="command", required=True)
    common = _scan_options()
    sub.add_parser("analyze", parents=[common], help="Print the inferred schema of each source")
    read = sub.add_parser("read", parents=[common], help="Print typed rows from all sources")
    read.add_argument("--skip-empty-rows", action="store_true", default=None)
    read.add_argument("--end-at-empty-row", action="store_true", default=None)
    read.add_argument("--union-by-name", action="store_true", default=None)
    read.add_argument("--file-name-column", metavar="NAME")
    read.add_argument("--sheet-name-column", metavar="NAME")
    read.add_argument("--error-log", action="store_true", help="Write nulled cells to logs/errors-*.log")
    return parser.parse_args(argv)


def parse_column_option(text: str) -> tuple[str | int, str]:
    """``KEY=TYPE`` -> (key, type); an all-digit key is a 1-based position."""
    key, sep, type_name = text.rpartition("=")
    if not sep or not key or not type_name:
        raise ConfigError(f"invalid --column '{text}': expected KEY=TYPE")
    return (int(key) if key.isdigit() else key), type_name


def _build_query(args: argparse.Namespace) -> QuerySpec:
    if args.query is not None:
        if args.patterns:
            raise ConfigError("FILE_PATTERN arguments cannot be combined with --query")
        return load_query(args.query)
    if not args.patterns:
        raise ConfigError("at least one FILE_PATTERN (or --query) is required")
    params: dict[str, Any] = {
        "range": args.cell_range,
        "header": args.header,
        "analyze_rows": args.analyze_rows,
        "error_as_null": args.error_as_null,
        "columns": [parse_column_option(c) for c in args.columns] if args.columns else None,
        "nulls": args.nulls,
    }
    if args.command == "read":
        params.update(
            skip_empty_rows=args.skip_empty_rows,
            end_at_empty_row=args.end_at_empty_row,
            union_by_name=args.union_by_name,
            file_name_column=args.file_name_column,
            sheet_name_column=args.sheet_name_column,
        )
    return QuerySpec(
        SourceSpec(tuple(args.patterns), parse_sheet_patterns(args.sheets)),
        build_scan_config(**params),
    )


def format_value(value: Any) -> Any:
    """Render a typed value for text output (None stays None)."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, timedelta):
        return format_duration(value)
    if isinstance(value, (date, time)):
        return str(value)
    return value


class _RowWriter:
    def __init__(self, out: TextIO, fmt: str, columns: list[str]) -> None:
        self._out = out
        self._fmt = fmt
        self._columns = columns
        if fmt == "csv":
            self._csv = csv.writer(out, lineterminator="\n")
            self._csv.writerow(columns)

    def write(self, row: tuple[Any, ...]) -> None:
        values = [format_value(v) for v in row]
        if self._fmt == "csv":
            self._csv.writerow(["" if v is None else v for v in values])
        else:
            self._out.write(json.dumps(dict(zip(self._columns, values)), ensure_ascii=False) + "\n")


def _run_analyze(query: QuerySpec, fmt: str, out: TextIO) -> int:
    started = perf_counter()
    rows = run_analysis(query)
    writer = _RowWriter(out, fmt, ANALYZE_COLUMNS)
    for row in rows:
        writer.write(row)
    elapsed = perf_counter() - started
    summary = ScanSummary(
        sources=len({(r[0], r[1]) for r in rows}),
        skipped_sources=0,
        rows=len(rows),
        nulled_cells=0,
        elapsed_seconds=round(elapsed, 3),
        throughput_rows_per_sec=round(len(rows) / elapsed, 1) if elapsed > 0 else 0.0,
    )
    log_summary(render_summary_line(summary)[len("SUMMARY "):])
    return EXIT_SUCCESS


def _run_read(query: QuerySpec, args: argparse.Namespace, out: TextIO) -> int:
    logger = setup_logging()
    error_log = ErrorLogBuffer() if args.error_log else None
    stream = run_query(query, error_log=error_log)
    logger.info(f"sources={len(stream.sources)} columns={stream.columns}")
    writer = _RowWriter(out, args.format, stream.columns)
    try:
        with ProgressTracker(len(stream.sources)) as progress, stream:
            stream.add_listener(progress)
            for row in stream:
                writer.write(row)
    finally:
        if error_log is not None:
            path = error_log.flush()
            if path is not None:
                logger.info(f"error log written: {path}")
    summary_line = render_summary_line(stream.stats)
    # log_summary adds the "SUMMARY " label itself
    log_summary(summary_line[len("SUMMARY "):])
    return EXIT_SUCCESS


def main(argv: list[str] | None = None, out: TextIO | None = None) -> int:
    # argv=None のときのみ sys.argv を読む (テストの main([]) 呼び出し対策)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(debug=args.debug)
    if args.debug:
        # setup_logging は冪等なので既存ハンドラも DEBUG に下げる
        for h in logger.handlers:
            h.setLevel("DEBUG")
        logger.setLevel("DEBUG")
        logger.debug("debug mode enabled")
    out = out or sys.stdout
    try:
        query = _build_query(args)
        if args.command == "analyze":
            return _run_analyze(query, args.format, out)
        return _run_read(query, args, out)
    except SheetScanError as e:
        logger.error(str(e))
        return EXIT_FATAL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
