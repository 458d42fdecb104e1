# barberbook/core/contracts.py

"""Collaborators the booking engine depends on but does not implement.

A store must make ``insert`` and ``compare_and_swap`` atomic: ``insert``
raises ``StoreConflict`` when another active appointment already holds the
same provider/date/start, ``compare_and_swap`` raises it when the stored
version is not ``expected_version``. Both return the committed copy.
"""

from datetime import date as Date
from typing import Iterable, List, Optional, Protocol

from .domain import Appointment, AppointmentStatus, Block, ProviderProfile, ServiceSpec, ShopProfile


class AppointmentStore(Protocol):
    def get(self, appointment_id: int) -> Optional[Appointment]: ...

    def list_for_provider(
        self,
        provider_id: int,
        day: Date,
        statuses: Optional[Iterable[AppointmentStatus]] = None,
    ) -> List[Appointment]: ...

    def list_for_customer(
        self,
        customer_id: int,
        statuses: Optional[Iterable[AppointmentStatus]] = None,
    ) -> List[Appointment]: ...

    def list_in_range(self, provider_id: int, start: Date, end: Date) -> List[Appointment]: ...

    def insert(self, appointment: Appointment) -> Appointment: ...

    def compare_and_swap(self, appointment: Appointment, expected_version: int) -> Appointment: ...


class ScheduleDirectory(Protocol):
    def get_shop(self, shop_id: int) -> Optional[ShopProfile]: ...

    def get_provider(self, provider_id: int) -> Optional[ProviderProfile]: ...

    def get_service(self, service_id: int) -> Optional[ServiceSpec]: ...

    def list_providers(self, shop_id: int) -> List[ProviderProfile]: ...

    def get_blocks(self, provider_id: int, day: Date) -> List[Block]: ...


class Notifier(Protocol):
    def notify(self, event: str, appointment: Appointment) -> None: ...
