# barberbook/core/memory.py

"""Thread-safe in-process implementations of the store and directory."""

import itertools
import threading
from datetime import date as Date
from typing import Dict, Iterable, List, Optional

from .domain import (
    ACTIVE_STATUSES,
    Appointment,
    AppointmentStatus,
    Block,
    ProviderProfile,
    ServiceSpec,
    ShopProfile,
)
from .errors import StoreConflict


class InMemoryAppointmentStore:
    def __init__(self):
        self._lock = threading.Lock()
        self._rows: Dict[int, Appointment] = {}
        self._ids = itertools.count(1)

    def _holds_slot(self, appointment: Appointment) -> bool:
        # active (provider, date, start) is unique, like the SQL partial index
        if appointment.status not in ACTIVE_STATUSES:
            return False
        return any(
            row.id != appointment.id
            and row.status in ACTIVE_STATUSES
            and row.provider_id == appointment.provider_id
            and row.date == appointment.date
            and row.start == appointment.start
            for row in self._rows.values()
        )

    def get(self, appointment_id: int) -> Optional[Appointment]:
        with self._lock:
            row = self._rows.get(appointment_id)
            return row.model_copy() if row is not None else None

    def list_for_provider(
        self,
        provider_id: int,
        day: Date,
        statuses: Optional[Iterable[AppointmentStatus]] = None,
    ) -> List[Appointment]:
        wanted = set(statuses) if statuses is not None else None
        with self._lock:
            rows = [
                r.model_copy() for r in self._rows.values()
                if r.provider_id == provider_id and r.date == day
                and (wanted is None or r.status in wanted)
            ]
        return sorted(rows, key=lambda r: (r.start, r.id))

    def list_for_customer(
        self,
        customer_id: int,
        statuses: Optional[Iterable[AppointmentStatus]] = None,
    ) -> List[Appointment]:
        wanted = set(statuses) if statuses is not None else None
        with self._lock:
            rows = [
                r.model_copy() for r in self._rows.values()
                if r.customer_id == customer_id and (wanted is None or r.status in wanted)
            ]
        return sorted(rows, key=lambda r: (r.date, r.start, r.id))

    def list_in_range(self, provider_id: int, start: Date, end: Date) -> List[Appointment]:
        with self._lock:
            rows = [
                r.model_copy() for r in self._rows.values()
                if r.provider_id == provider_id and start <= r.date <= end
            ]
        return sorted(rows, key=lambda r: (r.date, r.start, r.id))

    def insert(self, appointment: Appointment) -> Appointment:
        with self._lock:
            if self._holds_slot(appointment):
                raise StoreConflict("active appointment already starts at that time")
            row = appointment.model_copy(update={"id": next(self._ids)})
            self._rows[row.id] = row
            return row.model_copy()

    def compare_and_swap(self, appointment: Appointment, expected_version: int) -> Appointment:
        with self._lock:
            stored = self._rows.get(appointment.id)
            if stored is None or stored.version != expected_version:
                raise StoreConflict(f"appointment {appointment.id} changed")
            if self._holds_slot(appointment):
                raise StoreConflict("active appointment already starts at that time")
            row = appointment.model_copy()
            self._rows[row.id] = row
            return row.model_copy()


class InMemoryDirectory:
    def __init__(self):
        self.shops: Dict[int, ShopProfile] = {}
        self.providers: Dict[int, ProviderProfile] = {}
        self.services: Dict[int, ServiceSpec] = {}
        self._provider_blocks: Dict[int, List[Block]] = {}

    def add_shop(self, shop: ShopProfile) -> ShopProfile:
        self.shops[shop.id] = shop
        return shop

    def add_provider(self, provider: ProviderProfile) -> ProviderProfile:
        self.providers[provider.id] = provider
        return provider

    def add_service(self, service: ServiceSpec) -> ServiceSpec:
        self.services[service.id] = service
        return service

    def add_block(self, provider_id: int, block: Block) -> Block:
        self._provider_blocks.setdefault(provider_id, []).append(block)
        return block

    def get_shop(self, shop_id: int) -> Optional[ShopProfile]:
        return self.shops.get(shop_id)

    def get_provider(self, provider_id: int) -> Optional[ProviderProfile]:
        return self.providers.get(provider_id)

    def get_service(self, service_id: int) -> Optional[ServiceSpec]:
        return self.services.get(service_id)

    def list_providers(self, shop_id: int) -> List[ProviderProfile]:
        return sorted((p for p in self.providers.values() if p.shop_id == shop_id), key=lambda p: p.id)

    def get_blocks(self, provider_id: int, day: Date) -> List[Block]:
        return [b for b in self._provider_blocks.get(provider_id, []) if b.date == day]
