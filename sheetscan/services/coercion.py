from __future__ import annotations

import math
import re
from datetime import date, datetime, time, timedelta
from typing import Any

from openpyxl.utils.datetime import from_excel

from ..models.column_type import BIGINT_MAX, BIGINT_MIN, ColumnType
from ..models.raw_cell import CellKind, RawCell

"""Value Coercion: one RawCell -> one typed value of a declared column type.

``coerce_cell`` returns the converted value, ``None`` for empty cells, and
raises ``CoercionFailure`` when the value cannot be represented. The Row
Producer turns a failure into either a CellConversionError (with file / sheet
/ cell context) or a null, depending on error_as_null.

Typed values by declared type:

- boolean: bool
- bigint: int
- double: float
- varchar: str
- timestamp: datetime.datetime
- date: datetime.date
- time: datetime.time, or datetime.timedelta for durations of 24h or more
  (ISO-8601 duration text, elapsed-time cells)
"""

__all__ = [
    "CoercionFailure",
    "coerce_cell",
    "parse_iso_duration",
    "format_duration",
]

_TRUE_STRINGS = frozenset({"true", "1"})
_FALSE_STRINGS = frozenset({"false", "0"})

_EXCEL_EPOCH = datetime(1899, 12, 30)

_DURATION_PATTERN = re.compile(
    r"^P(?:(?P<days>\d+(?:\.\d+)?)D)?"
    r"(?:T(?:(?P<hours>\d+(?:\.\d+)?)H)?(?:(?P<minutes>\d+(?:\.\d+)?)M)?(?:(?P<seconds>\d+(?:\.\d+)?)S)?)?$"
)


class CoercionFailure(ValueError):
    """Raised when a cell cannot be converted to the target type."""


def parse_iso_duration(text: str) -> timedelta | None:
    """Parse an ISO-8601 duration limited to days and time parts (``P1DT2H``, ``PT36H``).

    Returns None when the text is not such a duration.
    """
    match = _DURATION_PATTERN.match(text.strip().upper())
    if match is None or not any(match.groupdict().values()):
        return None
    parts = {k: float(v) for k, v in match.groupdict().items() if v is not None}
    return timedelta(**parts)


def _serial_to_datetime(serial: float) -> datetime:
    if not math.isfinite(serial) or serial < 0:
        raise CoercionFailure("serial out of range")
    try:
        value = from_excel(serial)
    except (OverflowError, ValueError) as e:
        raise CoercionFailure(str(e)) from e
    # from_excel yields a bare time for serials below one day
    if isinstance(value, time):
        return datetime.combine(_EXCEL_EPOCH.date(), value)
    if isinstance(value, timedelta):
        return _EXCEL_EPOCH + value
    return value


def _time_of_day(delta: timedelta) -> time | timedelta:
    if delta >= timedelta(days=1) or delta < timedelta(0):
        return delta
    return (datetime.min + delta).time()


def _number_text(value: float) -> str:
    if value.is_integer() and abs(value) < 1e16:
        return str(int(value))
    return repr(value)


def _to_boolean(cell: RawCell) -> bool:
    kind, value = cell.kind, cell.value
    if kind is CellKind.BOOLEAN:
        return value
    if kind in (CellKind.INTEGER, CellKind.FLOAT) and value in (0, 1):
        return bool(value)
    if kind is CellKind.STRING:
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
    raise CoercionFailure("not a boolean")


def _to_bigint(cell: RawCell) -> int:
    kind, value = cell.kind, cell.value
    if kind is CellKind.BOOLEAN:
        return int(value)
    number: int | None = None
    if kind is CellKind.INTEGER:
        number = value
    elif kind is CellKind.FLOAT and value.is_integer():
        number = int(value)
    elif kind is CellKind.STRING:
        text = value.strip()
        try:
            number = int(text)
        except ValueError:
            try:
                parsed = float(text)
            except ValueError as e:
                raise CoercionFailure("not an integer") from e
            if math.isfinite(parsed) and parsed.is_integer():
                number = int(parsed)
    if number is None:
        raise CoercionFailure("not an integer")
    if not BIGINT_MIN <= number <= BIGINT_MAX:
        raise CoercionFailure("integer out of bigint range")
    return number


def _to_double(cell: RawCell) -> float:
    kind, value = cell.kind, cell.value
    if kind in (CellKind.BOOLEAN, CellKind.INTEGER, CellKind.FLOAT):
        return float(value)
    if kind is CellKind.STRING:
        try:
            return float(value.strip())
        except ValueError as e:
            raise CoercionFailure("not a number") from e
    raise CoercionFailure("not a number")


def _to_varchar(cell: RawCell) -> str:
    kind, value = cell.kind, cell.value
    if kind is CellKind.BOOLEAN:
        return "true" if value else "false"
    if kind is CellKind.FLOAT:
        return _number_text(value)
    if kind is CellKind.DATETIME:
        return value.isoformat(sep=" ")
    if kind in (CellKind.DATE, CellKind.TIME):
        if isinstance(value, timedelta):
            return format_duration(value)
        return value.isoformat()
    return str(value)


def format_duration(delta: timedelta) -> str:
    seconds = delta.total_seconds()
    hours, rest = divmod(int(seconds), 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours}:{minutes:02d}:{secs:02d}"


def _to_timestamp(cell: RawCell) -> datetime:
    kind, value = cell.kind, cell.value
    if kind is CellKind.DATETIME:
        return value
    if kind is CellKind.DATE:
        return datetime.combine(value, time(0, 0))
    if kind in (CellKind.INTEGER, CellKind.FLOAT):
        return _serial_to_datetime(float(value))
    if kind is CellKind.STRING:
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError as e:
            raise CoercionFailure("not a timestamp") from e
        return parsed.replace(tzinfo=None)
    raise CoercionFailure("not a timestamp")


def _to_date(cell: RawCell) -> date:
    kind, value = cell.kind, cell.value
    if kind is CellKind.DATE:
        return value
    if kind is CellKind.DATETIME:
        return value.date()
    if kind in (CellKind.INTEGER, CellKind.FLOAT):
        return _serial_to_datetime(math.floor(float(value))).date()
    if kind is CellKind.STRING:
        text = value.strip()
        try:
            return date.fromisoformat(text)
        except ValueError:
            pass
        try:
            return datetime.fromisoformat(text).date()
        except ValueError as e:
            raise CoercionFailure("not a date") from e
    raise CoercionFailure("not a date")


def _to_time(cell: RawCell) -> time | timedelta:
    kind, value = cell.kind, cell.value
    if kind is CellKind.TIME:
        if isinstance(value, timedelta):
            return _time_of_day(value)
        return value
    if kind is CellKind.DATETIME:
        return value.time()
    if kind in (CellKind.INTEGER, CellKind.FLOAT):
        # シリアル値の日付部分は捨て、時刻部分のみ使う
        return _serial_to_datetime(float(value)).time()
    if kind is CellKind.STRING:
        text = value.strip()
        try:
            return time.fromisoformat(text)
        except ValueError:
            pass
        duration = parse_iso_duration(text)
        if duration is not None:
            return _time_of_day(duration)
        try:
            return datetime.fromisoformat(text).time()
        except ValueError as e:
            raise CoercionFailure("not a time") from e
    raise CoercionFailure("not a time")


_CONVERTERS = {
    ColumnType.BOOLEAN: _to_boolean,
    ColumnType.BIGINT: _to_bigint,
    ColumnType.DOUBLE: _to_double,
    ColumnType.VARCHAR: _to_varchar,
    ColumnType.TIMESTAMP: _to_timestamp,
    ColumnType.DATE: _to_date,
    ColumnType.TIME: _to_time,
}


def coerce_cell(cell: RawCell, target: ColumnType, nulls: frozenset[str] = frozenset()) -> Any:
    """Convert one cell to ``target``.

    Args:
        cell: Raw cell from the grid provider
        target: Declared column type
        nulls: String literals treated as empty cells

    Returns:
        The typed value, or None for empty cells

    Raises:
        CoercionFailure: If the value cannot be converted
    """
    if cell.is_empty(nulls):
        return None
    if cell.kind is CellKind.ERROR:
        if target is ColumnType.VARCHAR:
            return cell.value
        raise CoercionFailure(f"error value {cell.value}")
    return _CONVERTERS[target](cell)
