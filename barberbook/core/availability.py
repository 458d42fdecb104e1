# barberbook/core/availability.py

"""Open-slot computation.

The calculator never mutates anything: every call works from the hours,
leave, blocks and appointment snapshot it is handed.
"""

import logging
from datetime import date as Date
from typing import Iterable, Iterator, List, Optional, Sequence

from .conflicts import find_conflict
from .domain import Appointment, Block, BusinessHours, LeaveRange, Slot
from .errors import ValidationError
from .time_utils import Interval, intersect, subtract

logger = logging.getLogger(__name__)

DEFAULT_STEP_MINUTES = 30

SHOP_CLOSED = "shop closed"
PROVIDER_OFF = "provider not working"
PROVIDER_ON_LEAVE = "provider on leave"
FULLY_BLOCKED = "provider blocked"
NO_ROOM = "service longer than open window"
PROVIDER_UNAVAILABLE = "provider not taking bookings"
NOT_OFFERED = "service not offered by provider"


class SlotSequence:
    """Candidate slots for one date, in ascending order.

    Iterable exactly once. ``reason`` explains why the sequence is empty
    before any slot was considered (closed shop, leave, ...), otherwise it
    is None.
    """

    def __init__(self, slots: Iterator[Slot], reason: Optional[str] = None):
        self._slots = slots
        self.reason = reason

    def __iter__(self) -> Iterator[Slot]:
        return self._slots

    def __next__(self) -> Slot:
        return next(self._slots)

    @classmethod
    def empty(cls, reason: str) -> "SlotSequence":
        return cls(iter(()), reason)


class AvailabilityCalculator:
    def __init__(self, step_minutes: int = DEFAULT_STEP_MINUTES):
        if step_minutes <= 0:
            raise ValueError("step_minutes must be positive")
        self.step_minutes = step_minutes

    def open_windows(
        self,
        shop_hours: BusinessHours,
        day: Date,
        provider_hours: Optional[BusinessHours] = None,
        provider_leave: Sequence[LeaveRange] = (),
        blocks: Sequence[Block] = (),
        has_provider: bool = False,
    ):
        """Return ``(window, pieces, reason)`` for ``day``.

        ``window`` is the shop and provider hours overlap that slot starts
        are stepped from, ``pieces`` what is left of it after blocks and
        ``reason`` is set when there is nothing left.
        """
        # 1) Shop hours for the weekday
        window = shop_hours.window_for(day)
        if window is None or window.is_empty:
            return None, [], SHOP_CLOSED

        # 2) Narrow to the provider
        if has_provider:
            if any(r.covers(day) for r in provider_leave):
                return None, [], PROVIDER_ON_LEAVE
            if provider_hours is not None:
                provider_window = provider_hours.window_for(day)
                window = intersect(window, provider_window) if provider_window else None
                if window is None:
                    return None, [], PROVIDER_OFF

        # 3) Cut out lunch breaks and day-off blocks
        cuts = [b.interval for b in blocks if b.date == day]
        pieces = subtract(window, cuts)
        if not pieces:
            return window, [], FULLY_BLOCKED
        return window, pieces, None

    def compute_availability(
        self,
        shop_hours: BusinessHours,
        service_duration: int,
        day: Date,
        provider_hours: Optional[BusinessHours] = None,
        provider_leave: Sequence[LeaveRange] = (),
        existing_appointments: Iterable[Appointment] = (),
        provider_id: Optional[int] = None,
        blocks: Sequence[Block] = (),
    ) -> SlotSequence:
        if service_duration <= 0:
            raise ValidationError("Service duration must be positive")

        window, pieces, reason = self.open_windows(
            shop_hours,
            day,
            provider_hours=provider_hours,
            provider_leave=provider_leave,
            blocks=blocks,
            has_provider=provider_id is not None,
        )
        if reason is not None:
            logger.debug("No availability on %s: %s", day, reason)
            return SlotSequence.empty(reason)

        if all(p.duration < service_duration for p in pieces):
            return SlotSequence.empty(NO_ROOM)

        snapshot = list(existing_appointments)
        return SlotSequence(self._walk(window, pieces, service_duration, day, snapshot, provider_id))

    def _walk(
        self,
        window: Interval,
        pieces: List[Interval],
        service_duration: int,
        day: Date,
        snapshot: List[Appointment],
        provider_id: Optional[int],
    ) -> Iterator[Slot]:
        # starts stay on the grid anchored at the window start, blocks only drop them
        start = window.start
        while start + service_duration <= window.end:
            candidate = Interval(start=start, end=start + service_duration)
            if any(p.contains(candidate) for p in pieces):
                if provider_id is None or not find_conflict(snapshot, provider_id, day, candidate):
                    yield Slot(start=candidate.start, end=candidate.end)
            start += self.step_minutes
