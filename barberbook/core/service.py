# barberbook/core/service.py

import heapq
import logging
from datetime import date as Date, datetime
from typing import Dict, Iterator, List, Optional

from .availability import NOT_OFFERED, PROVIDER_UNAVAILABLE, AvailabilityCalculator, SlotSequence
from .contracts import AppointmentStore, Notifier, ScheduleDirectory
from .domain import (
    ACTIVE_STATUSES,
    Action,
    ActorRole,
    Appointment,
    AppointmentStatus,
    CancellationReason,
    ProviderProfile,
    Slot,
)
from .errors import NotFound, OutOfHours, ProviderOnLeave, ValidationError
from .locks import ProviderLocks
from .state_machine import BookingStateMachine, check_hours

logger = logging.getLogger(__name__)


class BookingService:
    """Entry point for availability queries and booking mutations."""

    def __init__(
        self,
        store: AppointmentStore,
        directory: ScheduleDirectory,
        calculator: Optional[AvailabilityCalculator] = None,
        locks: Optional[ProviderLocks] = None,
        notifier: Optional[Notifier] = None,
        clock=datetime.now,
    ):
        self.store = store
        self.directory = directory
        self.calculator = calculator or AvailabilityCalculator()
        self.machine = BookingStateMachine(
            store, directory, locks=locks, notifier=notifier, clock=clock,
        )

    def compute_availability(
        self,
        shop_id: int,
        service_id: int,
        day: Date,
        provider_id: Optional[int] = None,
    ) -> SlotSequence:
        shop = self.directory.get_shop(shop_id)
        if shop is None:
            raise NotFound(f"Shop {shop_id} not found")
        service = self.directory.get_service(service_id)
        if service is None:
            raise NotFound(f"Service {service_id} not found")
        if service.shop_id != shop.id:
            raise ValidationError("Service is not offered at this shop")
        if not service.active:
            raise ValidationError("Service is no longer offered")

        if provider_id is not None:
            provider = self.directory.get_provider(provider_id)
            if provider is None:
                raise NotFound(f"Barber {provider_id} not found")
            if provider.shop_id != shop.id:
                raise ValidationError("Barber does not work at this shop")
            return self._for_provider(shop, service, day, provider)

        # Any barber: a start is open if at least one barber is free then
        providers = self.directory.list_providers(shop.id)
        if not providers:
            return self.calculator.compute_availability(shop.hours, service.duration_minutes, day)

        sequences = [self._for_provider(shop, service, day, p) for p in providers]
        if all(s.reason is not None for s in sequences):
            return SlotSequence.empty(sequences[0].reason)
        return SlotSequence(_merge_unique(sequences))

    def _for_provider(self, shop, service, day, provider) -> SlotSequence:
        if not provider.available:
            return SlotSequence.empty(PROVIDER_UNAVAILABLE)
        if not provider.offers(service.id):
            return SlotSequence.empty(NOT_OFFERED)
        existing = self.store.list_for_provider(provider.id, day, ACTIVE_STATUSES)
        return self.calculator.compute_availability(
            shop.hours,
            service.duration_minutes,
            day,
            provider_hours=provider.hours,
            provider_leave=provider.leave,
            existing_appointments=existing,
            provider_id=provider.id,
            blocks=self.directory.get_blocks(provider.id, day),
        )

    def create_booking(
        self,
        customer_id: int,
        shop_id: int,
        provider_id: int,
        service_id: int,
        day: Date,
        start: int,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Appointment:
        return self.machine.create(
            customer_id, shop_id, provider_id, service_id, day, start, notes=notes, now=now,
        )

    def reschedule_booking(
        self,
        appointment_id: int,
        new_date: Date,
        new_start: int,
        now: Optional[datetime] = None,
        actor_role: Optional[ActorRole] = None,
        actor_id: Optional[int] = None,
    ) -> Appointment:
        return self.machine.reschedule(
            appointment_id, new_date, new_start, now=now, actor_role=actor_role, actor_id=actor_id,
        )

    def transition(
        self,
        appointment_id: int,
        action: Action,
        actor_role: ActorRole,
        now: Optional[datetime] = None,
        reason: Optional[CancellationReason] = None,
        notes: Optional[str] = None,
        actor_id: Optional[int] = None,
    ) -> Appointment:
        return self.machine.transition(
            appointment_id, action, actor_role, now=now, reason=reason, notes=notes, actor_id=actor_id,
        )

    def get_appointment(self, appointment_id: int) -> Appointment:
        appointment = self.store.get(appointment_id)
        if appointment is None:
            raise NotFound(f"Appointment {appointment_id} not found")
        return appointment

    def provider_appointments(self, provider_id: int, day: Date, statuses=None) -> List[Appointment]:
        return self.store.list_for_provider(provider_id, day, statuses)

    def customer_appointments(self, customer_id: int, statuses=None) -> List[Appointment]:
        return self.store.list_for_customer(customer_id, statuses)

    def stranded_appointments(self, provider: ProviderProfile, start: Date, end: Date) -> List[Appointment]:
        """Active appointments between ``start`` and ``end`` that ``provider`` could no longer keep.

        Pass a provider profile carrying the proposed hours or leave to
        check a schedule change before it is saved.
        """
        shop = self.directory.get_shop(provider.shop_id)
        if shop is None:
            raise NotFound(f"Shop {provider.shop_id} not found")

        stranded = []
        for a in self.store.list_in_range(provider.id, start, end):
            if not a.is_active:
                continue
            try:
                check_hours(shop, provider, a.date, a.interval)
            except (OutOfHours, ProviderOnLeave):
                stranded.append(a)
        return stranded

    def appointment_stats(self, provider_id: int, start: Date, end: Date) -> Dict[str, int]:
        if end < start:
            raise ValidationError("end date cannot be before start date")
        stats = {status.value: 0 for status in AppointmentStatus}
        appointments = self.store.list_in_range(provider_id, start, end)
        for a in appointments:
            stats[a.status.value] += 1
        stats["total"] = len(appointments)
        return stats


def _merge_unique(sequences: List[SlotSequence]) -> Iterator[Slot]:
    last = None
    for slot in heapq.merge(*sequences, key=lambda s: (s.start, s.end)):
        if slot == last:
            continue
        last = slot
        yield slot
