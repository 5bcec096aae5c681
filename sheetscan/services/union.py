from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from typing import Any

from ..errors import ColumnTypeError, ConfigError, EmptySheetError
from ..excel.reader import CellGridProvider
from ..models.column_type import ColumnType
from ..models.scan_config import ScanConfig
from ..models.scan_summary import ScanStatsAccumulator, SourceStat
from ..models.schema import Column, ColumnSchema
from ..models.source import ResolvedSource
from .analyzer import analyze_grid, column_span
from .producer import ColumnBinding, NullCallback, RowProducer
from .progress import SourceListener

"""Union Engine: reconcile several sources into one output schema and stream.

Positional mode: the first non-empty source alone defines the schema. Later
sources are not analyzed; their columns are taken by position, truncated or
null-padded to the schema width.

By-name mode: every source is analyzed (one open at a time). The schema is
the union of column names in first-seen order; a name must keep the type it
was first seen with, otherwise binding fails with ColumnTypeError.

Either way the optional sheet / file name columns are appended last.
"""

__all__ = [
    "SourcePlan",
    "UnionPlan",
    "UnionEngine",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SourcePlan:
    """Bind-time plan for one source; ``bindings`` is None in positional mode
    (they are derived from the source's own width once it is opened)."""

    source: ResolvedSource
    bindings: tuple[ColumnBinding, ...] | None = None


@dataclass(frozen=True)
class UnionPlan:
    schema: ColumnSchema
    data_schema: ColumnSchema  # schema without the appended source columns
    sources: tuple[SourcePlan, ...]
    skipped: tuple[ResolvedSource, ...] = ()


class UnionEngine:
    def __init__(
        self,
        provider: CellGridProvider,
        config: ScanConfig,
        *,
        on_null: NullCallback | None = None,
        listeners: Sequence[SourceListener] = (),
    ) -> None:
        self._provider = provider
        self._config = config
        self._on_null = on_null
        self._listeners = list(listeners)
        self._current: RowProducer | None = None
        self._cancelled = False

    def add_listener(self, listener: SourceListener) -> None:
        self._listeners.append(listener)

    def _analyze(self, source: ResolvedSource) -> ColumnSchema:
        with self._provider.open_sheet(source.file, source.sheet) as grid:
            return analyze_grid(grid, self._config, source)

    def bind(self, sources: Sequence[ResolvedSource]) -> UnionPlan:
        """Compute the target schema for ``sources``.

        Raises:
            EmptySheetError: If no source has any column in range
            ConfigError: If an appended source column clashes with a data column
            ColumnTypeError: If, by name, a column changes type between sources
        """
        if self._config.union_by_name:
            data_schema, plans, skipped = self._bind_by_name(sources)
        else:
            data_schema, plans, skipped = self._bind_positional(sources)
        for name in self._config.extra_columns:
            if data_schema.index_of(name) is not None:
                raise ConfigError(f"source column name '{name}' clashes with a data column")
        extra = tuple(Column(name, ColumnType.VARCHAR) for name in self._config.extra_columns)
        schema = ColumnSchema(data_schema.columns + extra)
        return UnionPlan(schema, data_schema, tuple(plans), tuple(skipped))

    def _bind_positional(self, sources: Sequence[ResolvedSource]):
        skipped: list[ResolvedSource] = []
        for i, source in enumerate(sources):
            try:
                schema = self._analyze(source)
            except EmptySheetError:
                logger.warning("%s has no columns in range; skipping", source)
                skipped.append(source)
                continue
            plans = [SourcePlan(s) for s in sources[i:]]
            return schema, plans, skipped
        raise EmptySheetError(sources[0].file, sources[0].sheet)

    def _bind_by_name(self, sources: Sequence[ResolvedSource]):
        skipped: list[ResolvedSource] = []
        analyzed: list[tuple[ResolvedSource, ColumnSchema]] = []
        names: list[str] = []
        kinds: dict[str, ColumnType] = {}
        for source in sources:
            try:
                schema = self._analyze(source)
            except EmptySheetError:
                logger.warning("%s has no columns in range; skipping", source)
                skipped.append(source)
                continue
            analyzed.append((source, schema))
            for column in schema:
                if column.name not in kinds:
                    names.append(column.name)
                    kinds[column.name] = column.kind
                elif kinds[column.name] is not column.kind:
                    raise ColumnTypeError(
                        source.file, source.sheet, column.name, kinds[column.name].value, column.kind.value
                    )
        if not analyzed:
            raise EmptySheetError(sources[0].file, sources[0].sheet)
        target = ColumnSchema(tuple(Column(n, kinds[n]) for n in names))
        plans = []
        for source, schema in analyzed:
            bindings = tuple(ColumnBinding(schema.index_of(c.name), c.kind) for c in target)
            plans.append(SourcePlan(source, bindings))
        return target, plans, skipped

    def _positional_bindings(self, data_schema: ColumnSchema, width: int) -> tuple[ColumnBinding, ...]:
        return tuple(ColumnBinding(i if i < width else None, c.kind) for i, c in enumerate(data_schema))

    def stream(self, plan: UnionPlan, stats: ScanStatsAccumulator | None = None) -> Iterator[tuple[Any, ...]]:
        """Yield target-schema rows, one source at a time, in plan order."""
        for source_plan in plan.sources:
            if self._cancelled:
                break
            source = source_plan.source
            grid = self._provider.open_sheet(source.file, source.sheet)
            bindings = source_plan.bindings
            if bindings is None:
                width = len(column_span(grid, self._config))
                if width == 0:
                    grid.close()
                    logger.warning("%s has no columns in range; skipping", source)
                    if stats is not None:
                        stats.skip_source()
                    continue
                if width != len(plan.data_schema):
                    logger.warning(
                        "%s has %d column(s), schema has %d; aligning by position",
                        source, width, len(plan.data_schema),
                    )
                bindings = self._positional_bindings(plan.data_schema, width)
            producer = RowProducer(grid, source, self._config, bindings, on_null=self._on_null)
            self._current = producer
            trailer = self._trailer(source)
            for listener in self._listeners:
                listener.start_source(source)
            try:
                for row in producer:
                    yield row + trailer
            finally:
                producer.close()
                self._current = None
            if stats is not None:
                stats.add_source(
                    SourceStat(source.file, source.sheet, producer.rows_emitted, producer.nulled_cells, producer.state.value)
                )
            for listener in self._listeners:
                listener.finish_source(source, producer.rows_emitted)

    def _trailer(self, source: ResolvedSource) -> tuple[str, ...]:
        values = []
        if self._config.sheet_name_column:
            values.append(source.sheet)
        if self._config.file_name_column:
            values.append(source.file)
        return tuple(values)

    def cancel(self) -> None:
        """Stop opening sources and release the current one."""
        self._cancelled = True
        if self._current is not None:
            self._current.cancel()
            self._current.close()
