from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..errors import ConfigError
from ..excel.range import parse_range
from ..models.column_type import ColumnType
from ..models.scan_config import DEFAULT_ANALYZE_ROWS, DEFAULT_NULLS, ColumnOverride, ScanConfig
from ..models.source import SheetPattern, SourceSpec

"""Bind-time configuration.

- build_scan_config(): keyword parameters -> validated ScanConfig
- load_query(): YAML query file -> QuerySpec (validated against query_schema.json)

Everything here runs before any spreadsheet I/O; every problem surfaces as
ConfigError (RangeSyntaxError for bad ranges).
"""

__all__ = [
    "QuerySpec",
    "build_scan_config",
    "parse_column_overrides",
    "parse_sheet_patterns",
    "load_query",
    "SCHEMA_PATH",
]

SCHEMA_PATH = Path(__file__).parent / "query_schema.json"

_BOOL_PARAMS = ("header", "error_as_null", "skip_empty_rows", "end_at_empty_row", "union_by_name")
_KNOWN_PARAMS = frozenset(
    _BOOL_PARAMS
    + ("range", "analyze_rows", "file_name_column", "sheet_name_column", "columns", "nulls")
)


@dataclass(frozen=True)
class QuerySpec:
    """A complete multi-source query: what to read and how."""

    source: SourceSpec
    config: ScanConfig


def parse_column_overrides(columns: Mapping[Any, Any] | Iterable[tuple[Any, Any]] | None) -> tuple[ColumnOverride, ...]:
    """Validate column overrides, preserving caller order.

    Keys are header names (str) or 1-based positions (int).

    Raises:
        ConfigError: On a bad key or an unknown type name
    """
    if columns is None:
        return ()
    items = columns.items() if isinstance(columns, Mapping) else columns
    overrides = []
    try:
        pairs = list(items)
    except TypeError as e:
        raise ConfigError(f"invalid columns: expected a mapping, got {type(columns).__name__}") from e
    for pair in pairs:
        if not isinstance(pair, (tuple, list)) or len(pair) != 2:
            raise ConfigError(f"invalid column override {pair!r}: expected (key, type)")
        key, type_name = pair
        if isinstance(key, bool) or not isinstance(key, (str, int)):
            raise ConfigError(f"invalid column key {key!r}: expected a name or a 1-based position")
        if isinstance(key, int) and key < 1:
            raise ConfigError(f"invalid column position {key}: positions start at 1")
        if isinstance(key, str) and not key:
            raise ConfigError("invalid column key: empty name")
        overrides.append(ColumnOverride(key, ColumnType.parse(type_name)))
    return tuple(overrides)


def parse_sheet_patterns(sheets: Iterable[Any] | str | None) -> tuple[SheetPattern, ...]:
    """Accept ``"Sheet*"``, ``"file*.xlsx=Sheet*"`` or ``{"file": ..., "sheet": ...}`` items."""
    if sheets is None:
        return ()
    if isinstance(sheets, str):
        sheets = [sheets]
    patterns = []
    for item in sheets:
        if isinstance(item, SheetPattern):
            patterns.append(item)
        elif isinstance(item, str) and item:
            patterns.append(SheetPattern.parse(item))
        elif isinstance(item, Mapping) and isinstance(item.get("sheet"), str):
            patterns.append(SheetPattern(item["sheet"], item.get("file")))
        else:
            raise ConfigError(f"invalid sheet pattern {item!r}")
    return tuple(patterns)


def _source_column(name: Any, param: str) -> str | None:
    if name is None:
        return None
    if not isinstance(name, str) or not name.strip():
        raise ConfigError(f"invalid {param}: expected a non-empty string")
    return name


def build_scan_config(**params: Any) -> ScanConfig:
    """Build a ScanConfig from keyword parameters (None means default).

    Raises:
        ConfigError: On unknown parameters, wrong value types, bad type names
        RangeSyntaxError: On a malformed range
    """
    unknown = sorted(set(params) - _KNOWN_PARAMS)
    if unknown:
        raise ConfigError(f"unknown parameter(s): {', '.join(unknown)}")

    flags: dict[str, bool] = {}
    for name in _BOOL_PARAMS:
        value = params.get(name)
        if value is None:
            continue
        if not isinstance(value, bool):
            raise ConfigError(f"invalid {name}: expected true/false, got {value!r}")
        flags[name] = value

    analyze_rows = params.get("analyze_rows")
    if analyze_rows is None:
        analyze_rows = DEFAULT_ANALYZE_ROWS
    elif isinstance(analyze_rows, bool) or not isinstance(analyze_rows, int) or analyze_rows < 0:
        raise ConfigError(f"invalid analyze_rows: expected a non-negative integer, got {analyze_rows!r}")

    nulls = params.get("nulls")
    if nulls is None:
        null_set = DEFAULT_NULLS
    else:
        if isinstance(nulls, str) or not all(isinstance(n, str) for n in nulls):
            raise ConfigError("invalid nulls: expected a list of strings")
        null_set = frozenset(nulls)

    file_name_column = _source_column(params.get("file_name_column"), "file_name_column")
    sheet_name_column = _source_column(params.get("sheet_name_column"), "sheet_name_column")
    if file_name_column is not None and file_name_column == sheet_name_column:
        raise ConfigError("file_name_column and sheet_name_column must differ")

    return ScanConfig(
        cell_range=parse_range(params.get("range")),
        analyze_rows=analyze_rows,
        file_name_column=file_name_column,
        sheet_name_column=sheet_name_column,
        columns=parse_column_overrides(params.get("columns")),
        nulls=null_set,
        **flags,
    )


def _validate_query_schema(data: Any) -> None:
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    try:
        jsonschema.validate(data, schema)
    except ValidationError as e:
        raise ConfigError(f"query validation failed: {e.message}") from e


def load_query(path: Path) -> QuerySpec:
    """Load a YAML query file.

    Raises:
        ConfigError: If the file is missing, not YAML, or fails validation
    """
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"query file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e

    _validate_query_schema(data)

    files = data["files"]
    if isinstance(files, str):
        files = [files]
    params = {k: v for k, v in data.items() if k not in ("files", "sheets")}
    return QuerySpec(
        source=SourceSpec(tuple(files), parse_sheet_patterns(data.get("sheets"))),
        config=build_scan_config(**params),
    )
