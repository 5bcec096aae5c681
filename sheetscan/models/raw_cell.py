from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import Enum
from numbers import Integral, Real
from typing import Any

import numpy as np
import pandas as pd

from .column_type import BIGINT_MAX, BIGINT_MIN, ColumnType

"""RawCell model: one cell value as produced by a Cell Grid Provider.

A RawCell is a tagged value. The tag (CellKind) is closed; every consumer
dispatches on it explicitly. Values by kind:

- EMPTY: None
- BOOLEAN: bool
- INTEGER: int
- FLOAT: float (finite)
- STRING: str
- DATE: datetime.date
- TIME: datetime.time, or datetime.timedelta for durations
- DATETIME: datetime.datetime (naive)
- ERROR: str error literal such as ``#N/A``
"""

__all__ = [
    "CellKind",
    "RawCell",
    "ERROR_LITERALS",
    "EMPTY",
]

ERROR_LITERALS = frozenset(
    {"#NULL!", "#DIV/0!", "#VALUE!", "#REF!", "#NAME?", "#NUM!", "#N/A", "#GETTING_DATA"}
)


class CellKind(Enum):
    EMPTY = "empty"
    BOOLEAN = "boolean"
    INTEGER = "integer"
    FLOAT = "float"
    STRING = "string"
    DATE = "date"
    TIME = "time"
    DATETIME = "datetime"
    ERROR = "error"


@dataclass(frozen=True)
class RawCell:
    kind: CellKind
    value: Any = None

    @classmethod
    def from_value(cls, value: Any, *, midnight_is_date: bool = True) -> RawCell:
        """Classify a plain Python / pandas value into a RawCell.

        Args:
            value: Cell value as returned by pandas or openpyxl
            midnight_is_date: Treat datetimes at exactly 00:00:00 as dates
                (used when the source format carries no number format)
        """
        if value is None or value is pd.NaT:
            return EMPTY
        if isinstance(value, (bool, np.bool_)):
            return cls(CellKind.BOOLEAN, bool(value))
        if isinstance(value, Integral):
            return cls(CellKind.INTEGER, int(value))
        if isinstance(value, Real):
            number = float(value)
            if math.isnan(number):
                return EMPTY
            return cls(CellKind.FLOAT, number)
        if isinstance(value, str):
            if value in ERROR_LITERALS:
                return cls(CellKind.ERROR, value)
            return cls(CellKind.STRING, value)
        if isinstance(value, datetime):
            if isinstance(value, pd.Timestamp):
                value = value.to_pydatetime()
            value = value.replace(tzinfo=None)
            if midnight_is_date and value.time() == time(0, 0):
                return cls(CellKind.DATE, value.date())
            return cls(CellKind.DATETIME, value)
        if isinstance(value, date):
            return cls(CellKind.DATE, value)
        if isinstance(value, (time, timedelta)):
            if isinstance(value, pd.Timedelta):
                value = value.to_pytimedelta()
            return cls(CellKind.TIME, value)
        # Anything else (rich text, formulas left unevaluated) is shown as text
        return cls(CellKind.STRING, str(value))

    def is_empty(self, nulls: frozenset[str] = frozenset()) -> bool:
        """True for empty cells and for strings listed as null literals."""
        if self.kind is CellKind.EMPTY:
            return True
        return self.kind is CellKind.STRING and self.value in nulls

    def observed_type(self) -> ColumnType | None:
        """Narrowest declared type able to hold this value (None if ignored).

        Empty and error cells are not observations.
        """
        kind = self.kind
        if kind is CellKind.BOOLEAN:
            return ColumnType.BOOLEAN
        if kind in (CellKind.INTEGER, CellKind.FLOAT):
            number = self.value
            if kind is CellKind.FLOAT and not float(number).is_integer():
                return ColumnType.DOUBLE
            # 64bit を超える整数値は double 扱い
            return ColumnType.BIGINT if BIGINT_MIN <= number <= BIGINT_MAX else ColumnType.DOUBLE
        if kind is CellKind.STRING:
            return ColumnType.VARCHAR
        if kind is CellKind.DATE:
            return ColumnType.DATE
        if kind is CellKind.TIME:
            return ColumnType.TIME
        if kind is CellKind.DATETIME:
            return ColumnType.TIMESTAMP
        return None


EMPTY = RawCell(CellKind.EMPTY)
