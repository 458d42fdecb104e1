# barberbook/core/time_utils.py

"""Minute-of-day arithmetic.

Every time value inside the booking engine is an integer number of minutes
since midnight. Strings are parsed once, at the edge, by ``minutes_of_day``.
"""

import re
from datetime import date, datetime, time, timedelta
from typing import Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, model_validator

MINUTES_PER_DAY = 24 * 60

_HHMM = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*$")


class Interval(BaseModel):
    """Half-open ``[start, end)`` in minutes of day."""

    model_config = ConfigDict(frozen=True)

    start: int
    end: int

    @model_validator(mode="after")
    def _check_bounds(self):
        if self.start < 0 or self.end > MINUTES_PER_DAY:
            raise ValueError("interval must lie within a single day")
        if self.end < self.start:
            raise ValueError("interval end cannot be before its start")
        return self

    @property
    def duration(self) -> int:
        return self.end - self.start

    @property
    def is_empty(self) -> bool:
        return self.end <= self.start

    def contains(self, other: "Interval") -> bool:
        return self.start <= other.start and other.end <= self.end

    def __str__(self) -> str:
        return f"{format_minutes(self.start)}-{format_minutes(self.end)}"


def weekday_of(day: date) -> int:
    # 0 = Monday ... 6 = Sunday
    return day.weekday()


def minutes_of_day(value: str) -> int:
    match = _HHMM.match(value) if isinstance(value, str) else None
    if match is None:
        raise ValueError(f"invalid time {value!r}, expected HH:MM")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if minutes > 59:
        raise ValueError(f"invalid time {value!r}, minutes out of range")
    # 24:00 is accepted as the end of the day
    if hours > 24 or (hours == 24 and minutes != 0):
        raise ValueError(f"invalid time {value!r}, hours out of range")
    return hours * 60 + minutes


def format_minutes(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def from_time(value: time) -> int:
    return value.hour * 60 + value.minute


def at(day: date, minutes: int) -> datetime:
    return datetime.combine(day, time()) + timedelta(minutes=minutes)


def overlaps(s1, e1, s2, e2) -> bool:
    return s1 < e2 and s2 < e1


def intersect(a: Interval, b: Interval) -> Optional[Interval]:
    start = max(a.start, b.start)
    end = min(a.end, b.end)
    if end <= start:
        return None
    return Interval(start=start, end=end)


def subtract(base: Interval, others: Iterable[Interval]) -> List[Interval]:
    """Remove every interval in ``others`` from ``base``.

    Returns the remaining pieces in ascending order; empty pieces are dropped.
    """
    remaining = [] if base.is_empty else [base]
    for cut in sorted(others, key=lambda i: (i.start, i.end)):
        pieces = []
        for piece in remaining:
            if not overlaps(piece.start, piece.end, cut.start, cut.end):
                pieces.append(piece)
                continue
            if piece.start < cut.start:
                pieces.append(Interval(start=piece.start, end=cut.start))
            if cut.end < piece.end:
                pieces.append(Interval(start=cut.end, end=piece.end))
        remaining = pieces
    return remaining
