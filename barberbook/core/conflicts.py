# barberbook/core/conflicts.py

import logging
from datetime import date as Date
from typing import Iterable, NamedTuple, Optional

from .contracts import AppointmentStore
from .domain import ACTIVE_STATUSES, Appointment
from .time_utils import Interval, overlaps

logger = logging.getLogger(__name__)


class ConflictResult(NamedTuple):
    has_conflict: bool
    conflicting: Optional[Appointment] = None

    def __bool__(self) -> bool:
        return self.has_conflict


NO_CONFLICT = ConflictResult(False)


def find_conflict(
    appointments: Iterable[Appointment],
    provider_id: int,
    day: Date,
    interval: Interval,
    exclude_appointment_id: Optional[int] = None,
) -> ConflictResult:
    """Check ``interval`` against a snapshot of appointments.

    Only active appointments of the same provider on the same date count.
    """
    for a in appointments:
        if a.provider_id != provider_id or a.date != day:
            continue
        if a.status not in ACTIVE_STATUSES:
            continue
        if exclude_appointment_id is not None and a.id == exclude_appointment_id:
            continue
        if overlaps(interval.start, interval.end, a.start, a.end):
            return ConflictResult(True, a)
    return NO_CONFLICT


class ConflictChecker:
    def __init__(self, store: AppointmentStore):
        self.store = store

    def has_conflict(
        self,
        provider_id: int,
        day: Date,
        interval: Interval,
        exclude_appointment_id: Optional[int] = None,
    ) -> ConflictResult:
        current = self.store.list_for_provider(provider_id, day, ACTIVE_STATUSES)
        result = find_conflict(current, provider_id, day, interval, exclude_appointment_id)
        if result:
            logger.debug(
                "Interval %s for provider %s on %s conflicts with appointment %s",
                interval, provider_id, day, result.conflicting.id,
            )
        return result
