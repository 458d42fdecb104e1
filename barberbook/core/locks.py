# barberbook/core/locks.py

import logging
import threading
from contextlib import contextmanager
from datetime import date as Date
from typing import Dict, Tuple

from .errors import SlotUnavailable

logger = logging.getLogger(__name__)


class _Entry:
    __slots__ = ("lock", "holders")

    def __init__(self):
        self.lock = threading.Lock()
        # threads holding or waiting on ``lock``
        self.holders = 0


class ProviderLocks:
    """One mutex per (provider, date), held across check-then-write.

    Entries live only while some thread holds or waits on them.
    """

    def __init__(self, timeout_seconds: float = 5.0):
        self.timeout_seconds = timeout_seconds
        self._guard = threading.Lock()
        self._locks: Dict[Tuple[int, Date], _Entry] = {}

    def _checkout(self, key: Tuple[int, Date]) -> _Entry:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = _Entry()
            entry.holders += 1
            return entry

    def _checkin(self, key: Tuple[int, Date], entry: _Entry) -> None:
        with self._guard:
            entry.holders -= 1
            if entry.holders == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, provider_id: int, day: Date):
        key = (provider_id, day)
        entry = self._checkout(key)
        try:
            if not entry.lock.acquire(timeout=self.timeout_seconds):
                logger.warning("Timed out waiting for booking lock of provider %s on %s", provider_id, day)
                raise SlotUnavailable("The schedule is busy, please try again")
            try:
                yield
            finally:
                entry.lock.release()
        finally:
            self._checkin(key, entry)
