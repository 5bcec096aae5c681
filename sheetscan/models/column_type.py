from __future__ import annotations

from collections.abc import Iterable
from enum import Enum

from ..errors import ConfigError

"""Declared column types and the inference promotion lattice.

The lattice is fixed:

    boolean < bigint < double < varchar

Temporal types (date, time, timestamp) are mutually exclusive: joining any two
different temporal types, or a temporal type with a non-temporal one, yields
varchar.
"""

__all__ = [
    "ColumnType",
    "join_types",
    "infer_type",
    "BIGINT_MIN",
    "BIGINT_MAX",
]


class ColumnType(Enum):
    """Closed set of declared column types."""

    BOOLEAN = "boolean"
    BIGINT = "bigint"
    DOUBLE = "double"
    VARCHAR = "varchar"
    TIMESTAMP = "timestamp"
    DATE = "date"
    TIME = "time"

    @classmethod
    def parse(cls, name: str) -> ColumnType:
        """Parse a type name or alias (case-insensitive).

        Raises:
            ConfigError: If the name is not a known type or alias
        """
        if not isinstance(name, str):
            raise ConfigError(f"invalid column type {name!r}")
        kind = _ALIASES.get(name.strip().lower())
        if kind is None:
            raise ConfigError(f"invalid column type '{name}'")
        return kind

    @property
    def is_temporal(self) -> bool:
        return self in _TEMPORAL


_ALIASES: dict[str, ColumnType] = {
    "bool": ColumnType.BOOLEAN,
    "boolean": ColumnType.BOOLEAN,
    "int": ColumnType.BIGINT,
    "integer": ColumnType.BIGINT,
    "bigint": ColumnType.BIGINT,
    "float": ColumnType.DOUBLE,
    "double": ColumnType.DOUBLE,
    "decimal": ColumnType.DOUBLE,
    "numeric": ColumnType.DOUBLE,
    "text": ColumnType.VARCHAR,
    "string": ColumnType.VARCHAR,
    "varchar": ColumnType.VARCHAR,
    "datetime": ColumnType.TIMESTAMP,
    "timestamp": ColumnType.TIMESTAMP,
    "date": ColumnType.DATE,
    "time": ColumnType.TIME,
}

# 64-bit signed range of bigint
BIGINT_MIN = -(2**63)
BIGINT_MAX = 2**63 - 1

_TEMPORAL = frozenset({ColumnType.TIMESTAMP, ColumnType.DATE, ColumnType.TIME})

# Rank within the non-temporal chain
_RANK = {
    ColumnType.BOOLEAN: 0,
    ColumnType.BIGINT: 1,
    ColumnType.DOUBLE: 2,
    ColumnType.VARCHAR: 3,
}


def join_types(left: ColumnType | None, right: ColumnType | None) -> ColumnType | None:
    """Least upper bound of two types in the promotion lattice.

    ``None`` is the bottom element (no observation yet).
    """
    if left is None:
        return right
    if right is None or left is right:
        return left
    if left.is_temporal or right.is_temporal:
        return ColumnType.VARCHAR
    return left if _RANK[left] >= _RANK[right] else right


def infer_type(observed: Iterable[ColumnType | None]) -> ColumnType:
    """Narrowest type holding every observation; varchar when nothing was observed."""
    result: ColumnType | None = None
    for kind in observed:
        result = join_types(result, kind)
        if result is ColumnType.VARCHAR:
            break
    return result or ColumnType.VARCHAR
