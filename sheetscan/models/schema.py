from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from .column_type import ColumnType

"""ColumnSchema: the frozen, ordered (name, type) list that shapes a scan."""

__all__ = [
    "Column",
    "ColumnSchema",
]


@dataclass(frozen=True)
class Column:
    name: str
    kind: ColumnType


@dataclass(frozen=True)
class ColumnSchema:
    """Ordered sequence of columns; immutable once computed."""

    columns: tuple[Column, ...]

    def __len__(self) -> int:
        return len(self.columns)

    def __iter__(self) -> Iterator[Column]:
        return iter(self.columns)

    def __getitem__(self, index: int) -> Column:
        return self.columns[index]

    @property
    def names(self) -> list[str]:
        return [c.name for c in self.columns]

    def index_of(self, name: str) -> int | None:
        for i, column in enumerate(self.columns):
            if column.name == name:
                return i
        return None

    def as_pairs(self) -> list[tuple[str, str]]:
        """(column_name, column_type) pairs as reported by analyze_sheet."""
        return [(c.name, c.kind.value) for c in self.columns]
