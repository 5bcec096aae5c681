from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

import pandas as pd

from ..config.loader import QuerySpec, build_scan_config, parse_sheet_patterns
from ..errors import ConfigError, EmptySheetError
from ..excel.globbing import GlobMatcher
from ..excel.reader import CellGridProvider, ExcelGridProvider
from ..logging.error_log import ErrorLogBuffer
from ..models.column_type import ColumnType
from ..models.scan_config import ScanConfig
from ..models.scan_summary import ScanStatsAccumulator, ScanSummary
from ..models.schema import ColumnSchema
from ..models.source import ResolvedSource, SourceSpec
from .analyzer import analyze_grid
from .progress import SourceListener
from .resolver import PatternResolver
from .union import UnionEngine, UnionPlan

"""Query entry points.

analyze_sheet / analyze_sheets report inferred schemas; read_sheet /
read_sheets return a RowStream. Parameters are validated into a ScanConfig
before any file is touched. Sources are opened strictly one at a time.
"""

__all__ = [
    "RowStream",
    "analyze_sheet",
    "analyze_sheets",
    "read_sheet",
    "read_sheets",
    "run_analysis",
    "run_query",
]

logger = logging.getLogger(__name__)

_PANDAS_DTYPES = {
    ColumnType.BOOLEAN: "boolean",
    ColumnType.BIGINT: "Int64",
    ColumnType.DOUBLE: "Float64",
    ColumnType.TIMESTAMP: "datetime64[ns]",
}


class RowStream:
    """Lazy, one-shot stream of typed row tuples.

    Attributes:
        schema: Output ColumnSchema (fixed at bind time)
        sources: Sources that will be streamed, in order
    """

    def __init__(self, engine: UnionEngine, plan: UnionPlan) -> None:
        self._engine = engine
        self.schema: ColumnSchema = plan.schema
        self.sources: tuple[ResolvedSource, ...] = tuple(p.source for p in plan.sources)
        self._stats = ScanStatsAccumulator()
        for _ in plan.skipped:
            self._stats.skip_source()
        self._rows = engine.stream(plan, self._stats)
        self._finished = False

    @property
    def columns(self) -> list[str]:
        return self.schema.names

    @property
    def stats(self) -> ScanSummary:
        return self._stats.snapshot()

    def add_listener(self, listener: SourceListener) -> None:
        """Receive start_source / finish_source for the remaining sources."""
        self._engine.add_listener(listener)

    def __iter__(self) -> RowStream:
        return self

    def __next__(self) -> tuple[Any, ...]:
        try:
            return next(self._rows)
        except BaseException:
            self._finish()
            raise

    def _finish(self) -> None:
        if not self._finished:
            self._finished = True
            self._stats.stop()

    def cancel(self) -> None:
        """Stop streaming; rows already returned stay returned."""
        self._engine.cancel()
        self.close()

    def close(self) -> None:
        self._rows.close()
        self._finish()

    def __enter__(self) -> RowStream:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def to_dataframe(self) -> pd.DataFrame:
        """Drain the stream into a DataFrame with nullable pandas dtypes."""
        df = pd.DataFrame.from_records(list(self), columns=self.schema.names)
        for column in self.schema:
            dtype = _PANDAS_DTYPES.get(column.kind)
            if dtype is not None:
                df[column.name] = df[column.name].astype(dtype)
        return df


def _patterns(file_patterns: str | Sequence[str]) -> tuple[str, ...]:
    if isinstance(file_patterns, str):
        file_patterns = [file_patterns]
    patterns = tuple(file_patterns)
    if not patterns or not all(isinstance(p, str) and p for p in patterns):
        raise ConfigError("file_patterns: expected one or more non-empty strings")
    return patterns


def _file_path(file_path: Any) -> str:
    if not isinstance(file_path, str) or not file_path:
        raise ConfigError("file_path: expected a non-empty string")
    return file_path


def _sheet(sheet: Any) -> str | None:
    if sheet is not None and (not isinstance(sheet, str) or not sheet):
        raise ConfigError("sheet: expected a non-empty string")
    return sheet


def analyze_sheet(
    file_path: str,
    sheet: str | None = None,
    *,
    range: str | None = None,
    header: bool | None = None,
    analyze_rows: int | None = None,
    error_as_null: bool | None = None,
    columns: Mapping[Any, str] | None = None,
    nulls: Iterable[str] | None = None,
    provider: CellGridProvider | None = None,
) -> list[tuple[str, str]]:
    """Infer the schema of one sheet.

    Returns:
        (column_name, column_type) pairs in column order

    Raises:
        ConfigError, RangeSyntaxError: Before any I/O
        SpreadsheetIOError: If the file is missing or unreadable
        NoMatchError: If no sheet matches ``sheet``
        EmptySheetError: If the range holds no columns
    """
    path = _file_path(file_path)
    sheet = _sheet(sheet)
    config = build_scan_config(
        range=range, header=header, analyze_rows=analyze_rows, error_as_null=error_as_null,
        columns=columns, nulls=nulls,
    )
    provider = provider or ExcelGridProvider()
    source = PatternResolver(provider).resolve_single(path, sheet)
    with provider.open_sheet(source.file, source.sheet) as grid:
        schema = analyze_grid(grid, config, source, honor_row_policies=False)
    return schema.as_pairs()


def analyze_sheets(
    file_patterns: str | Sequence[str],
    sheets: Sequence[Any] | None = None,
    *,
    range: str | None = None,
    header: bool | None = None,
    analyze_rows: int | None = None,
    error_as_null: bool | None = None,
    columns: Mapping[Any, str] | None = None,
    nulls: Iterable[str] | None = None,
    provider: CellGridProvider | None = None,
    matcher: GlobMatcher | None = None,
) -> list[tuple[str, str, str, str]]:
    """Infer the schema of every matched source.

    Returns:
        (file_name, sheet_name, column_name, column_type) rows, sources in
        resolution order; sources without columns in range are skipped
    """
    spec = SourceSpec(_patterns(file_patterns), parse_sheet_patterns(sheets))
    config = build_scan_config(
        range=range, header=header, analyze_rows=analyze_rows, error_as_null=error_as_null,
        columns=columns, nulls=nulls,
    )
    return run_analysis(QuerySpec(spec, config), provider=provider, matcher=matcher)


def run_analysis(
    query: QuerySpec,
    *,
    provider: CellGridProvider | None = None,
    matcher: GlobMatcher | None = None,
) -> list[tuple[str, str, str, str]]:
    """analyze_sheets for a query already validated by load_query / build_scan_config."""
    config = query.config
    provider = provider or ExcelGridProvider()
    rows: list[tuple[str, str, str, str]] = []
    for source in PatternResolver(provider, matcher).resolve(query.source):
        with provider.open_sheet(source.file, source.sheet) as grid:
            try:
                schema = analyze_grid(grid, config, source, honor_row_policies=False)
            except EmptySheetError:
                logger.warning("%s has no columns in range; skipping", source)
                continue
        rows.extend((source.file, source.sheet, name, kind) for name, kind in schema.as_pairs())
    return rows


def _open_stream(
    sources: list[ResolvedSource],
    config: ScanConfig,
    provider: CellGridProvider,
    error_log: ErrorLogBuffer | None,
    listeners: Sequence[SourceListener],
) -> RowStream:
    on_null = error_log.record_nulled_cell if error_log is not None else None
    engine = UnionEngine(provider, config, on_null=on_null, listeners=listeners)
    plan = engine.bind(sources)
    logger.debug("bound %d source(s) schema=%s", len(plan.sources), plan.schema.as_pairs())
    return RowStream(engine, plan)


def read_sheet(
    file_path: str,
    sheet: str | None = None,
    *,
    range: str | None = None,
    header: bool | None = None,
    analyze_rows: int | None = None,
    error_as_null: bool | None = None,
    skip_empty_rows: bool | None = None,
    end_at_empty_row: bool | None = None,
    file_name_column: str | None = None,
    sheet_name_column: str | None = None,
    columns: Mapping[Any, str] | None = None,
    nulls: Iterable[str] | None = None,
    provider: CellGridProvider | None = None,
    error_log: ErrorLogBuffer | None = None,
    listeners: Sequence[SourceListener] = (),
) -> RowStream:
    """Stream typed rows from one sheet.

    Raises:
        ConfigError, RangeSyntaxError: Before any I/O
        SpreadsheetIOError, NoMatchError, EmptySheetError: At bind time
        CellConversionError: While iterating, unless error_as_null
    """
    path = _file_path(file_path)
    sheet = _sheet(sheet)
    config = build_scan_config(
        range=range, header=header, analyze_rows=analyze_rows, error_as_null=error_as_null,
        skip_empty_rows=skip_empty_rows, end_at_empty_row=end_at_empty_row,
        file_name_column=file_name_column, sheet_name_column=sheet_name_column,
        columns=columns, nulls=nulls,
    )
    provider = provider or ExcelGridProvider()
    source = PatternResolver(provider).resolve_single(path, sheet)
    return _open_stream([source], config, provider, error_log, listeners)


def read_sheets(
    file_patterns: str | Sequence[str],
    sheets: Sequence[Any] | None = None,
    *,
    range: str | None = None,
    header: bool | None = None,
    analyze_rows: int | None = None,
    error_as_null: bool | None = None,
    skip_empty_rows: bool | None = None,
    end_at_empty_row: bool | None = None,
    file_name_column: str | None = None,
    sheet_name_column: str | None = None,
    union_by_name: bool | None = None,
    columns: Mapping[Any, str] | None = None,
    nulls: Iterable[str] | None = None,
    provider: CellGridProvider | None = None,
    matcher: GlobMatcher | None = None,
    error_log: ErrorLogBuffer | None = None,
    listeners: Sequence[SourceListener] = (),
) -> RowStream:
    """Stream typed rows from every matched source as one unioned table."""
    spec = SourceSpec(_patterns(file_patterns), parse_sheet_patterns(sheets))
    config = build_scan_config(
        range=range, header=header, analyze_rows=analyze_rows, error_as_null=error_as_null,
        skip_empty_rows=skip_empty_rows, end_at_empty_row=end_at_empty_row,
        file_name_column=file_name_column, sheet_name_column=sheet_name_column,
        union_by_name=union_by_name, columns=columns, nulls=nulls,
    )
    provider = provider or ExcelGridProvider()
    sources = PatternResolver(provider, matcher).resolve(spec)
    return _open_stream(sources, config, provider, error_log, listeners)


def run_query(
    query: QuerySpec,
    *,
    provider: CellGridProvider | None = None,
    matcher: GlobMatcher | None = None,
    error_log: ErrorLogBuffer | None = None,
    listeners: Sequence[SourceListener] = (),
) -> RowStream:
    """read_sheets for a query already validated by load_query / build_scan_config."""
    provider = provider or ExcelGridProvider()
    sources = PatternResolver(provider, matcher).resolve(query.source)
    return _open_stream(sources, query.config, provider, error_log, listeners)
