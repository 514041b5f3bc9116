from __future__ import annotations

import datetime as _dt
from typing import Any


def day_count(start: _dt.date, end: _dt.date) -> int:
    """Inclusive number of days from start to end; never less than 1."""
    return max(1, (end - start).days + 1)


def end_from_duration(start: _dt.date, duration: int) -> _dt.date:
    """Inclusive end date of an item starting on ``start`` lasting ``duration`` days."""
    return start + _dt.timedelta(days=duration - 1)


def add_days(day: _dt.date, days: int) -> _dt.date:
    return day + _dt.timedelta(days=days)


def parse_day(value: Any) -> _dt.date:
    """
    Coerce a boundary value into a day.

    Accepts ``date`` values, ``datetime`` values (time of day dropped) and
    ISO ``YYYY-MM-DD`` strings. Raises ``ValueError`` for anything else.
    """

    if isinstance(value, _dt.datetime):
        return value.date()
    if isinstance(value, _dt.date):
        return value
    if isinstance(value, str):
        return _dt.date.fromisoformat(value.strip())
    raise ValueError(f"expected YYYY-MM-DD date, got {value!r}")
