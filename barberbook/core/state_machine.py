# barberbook/core/state_machine.py

"""Appointment lifecycle.

Every status change goes through ``TRANSITIONS``. Writes that depend on the
provider's calendar (create, reschedule) run the conflict check and the
write under the provider's lock; every write is a compare-and-swap on
``version`` so two transitions racing on one appointment cannot both land.
"""

import logging
from datetime import date as Date, datetime
from typing import Callable, Optional

from .conflicts import ConflictChecker
from .contracts import AppointmentStore, Notifier, ScheduleDirectory
from .domain import (
    MAX_NOTES_LENGTH,
    Action,
    ActorRole,
    Appointment,
    AppointmentStatus,
    CancellationReason,
    ProviderProfile,
    ServiceSpec,
    ShopProfile,
)
from .errors import (
    InvalidStateTransition,
    NotAuthorized,
    NotFound,
    OutOfHours,
    ProviderOnLeave,
    SlotUnavailable,
    StoreConflict,
    ValidationError,
)
from .locks import ProviderLocks
from .policy import CancellationPolicy
from .time_utils import MINUTES_PER_DAY, Interval, intersect, overlaps

logger = logging.getLogger(__name__)

S = AppointmentStatus

TRANSITIONS = {
    (S.pending, Action.confirm): S.confirmed,
    (S.confirmed, Action.complete): S.completed,
    (S.confirmed, Action.mark_no_show): S.no_show,
    (S.pending, Action.cancel): S.cancelled,
    (S.confirmed, Action.cancel): S.cancelled,
    (S.pending, Action.reschedule): S.pending,
    (S.confirmed, Action.reschedule): S.pending,
}

ALLOWED_ACTORS = {
    Action.confirm: {ActorRole.provider, ActorRole.shop_staff},
    Action.complete: {ActorRole.provider},
    Action.mark_no_show: {ActorRole.provider},
    Action.cancel: set(ActorRole),
}

EVENTS = {
    Action.confirm: "confirmed",
    Action.complete: "completed",
    Action.mark_no_show: "no_show",
    Action.cancel: "cancelled",
    Action.reschedule: "rescheduled",
}


def next_state(current: AppointmentStatus, action: Action) -> AppointmentStatus:
    target = TRANSITIONS.get((current, action))
    if target is None:
        raise InvalidStateTransition(current.value, action.value)
    return target


def check_hours(shop: ShopProfile, provider: ProviderProfile, day: Date, interval: Interval) -> None:
    """Raise unless ``interval`` on ``day`` fits shop hours, provider hours and leave."""
    shop_window = shop.hours.window_for(day)
    if shop_window is None or not shop_window.contains(interval):
        raise OutOfHours("Appointment must be within shop hours")

    if provider.on_leave(day):
        raise ProviderOnLeave("Barber is on leave that day")

    if provider.hours is not None:
        provider_window = provider.hours.window_for(day)
        if provider_window is None:
            raise OutOfHours("Barber is not scheduled to work that day")
        working = intersect(shop_window, provider_window)
        if working is None or not working.contains(interval):
            raise OutOfHours("Appointment must be within working hours")


class BookingStateMachine:
    def __init__(
        self,
        store: AppointmentStore,
        directory: ScheduleDirectory,
        conflicts: Optional[ConflictChecker] = None,
        policy: Optional[CancellationPolicy] = None,
        locks: Optional[ProviderLocks] = None,
        notifier: Optional[Notifier] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.directory = directory
        self.conflicts = conflicts or ConflictChecker(store)
        self.policy = policy or CancellationPolicy()
        self.locks = locks or ProviderLocks()
        self.notifier = notifier
        self.clock = clock

    # ------------------------------------------------------------------
    # lookups

    def _shop(self, shop_id: int) -> ShopProfile:
        shop = self.directory.get_shop(shop_id)
        if shop is None:
            raise NotFound(f"Shop {shop_id} not found")
        return shop

    def _provider(self, provider_id: int) -> ProviderProfile:
        provider = self.directory.get_provider(provider_id)
        if provider is None:
            raise NotFound(f"Barber {provider_id} not found")
        return provider

    def _service(self, service_id: int) -> ServiceSpec:
        service = self.directory.get_service(service_id)
        if service is None:
            raise NotFound(f"Service {service_id} not found")
        return service

    def _appointment(self, appointment_id: int) -> Appointment:
        appointment = self.store.get(appointment_id)
        if appointment is None:
            raise NotFound(f"Appointment {appointment_id} not found")
        return appointment

    # ------------------------------------------------------------------
    # guards

    def validate_slot(
        self,
        shop: ShopProfile,
        provider: ProviderProfile,
        day: Date,
        interval: Interval,
    ) -> None:
        """Raise unless the provider can take ``interval`` on ``day``."""
        if not provider.available:
            raise SlotUnavailable("Barber is not taking bookings")

        check_hours(shop, provider, day, interval)

        for block in self.directory.get_blocks(provider.id, day):
            if overlaps(interval.start, interval.end, block.interval.start, block.interval.end):
                raise SlotUnavailable("Appointment overlaps a block")

    def _check_service(self, shop: ShopProfile, provider: ProviderProfile, service: ServiceSpec) -> None:
        if service.shop_id != shop.id:
            raise ValidationError("Service is not offered at this shop")
        if not service.active:
            raise ValidationError("Service is no longer offered")
        if not provider.offers(service.id):
            raise ValidationError("Barber does not offer this service")

    def _check_interval_input(self, day, start) -> None:
        if not isinstance(day, Date):
            raise ValidationError("date must be a calendar date")
        if isinstance(start, bool) or not isinstance(start, int):
            raise ValidationError("start must be minutes of day")
        if not 0 <= start < MINUTES_PER_DAY:
            raise ValidationError("start must be between 00:00 and 23:59")

    def _check_actor(self, appointment: Appointment, actor_role: ActorRole, actor_id: Optional[int]) -> None:
        if actor_id is None:
            return
        if actor_role == ActorRole.customer and actor_id != appointment.customer_id:
            raise NotAuthorized("Customers can only manage their own appointments")
        if actor_role == ActorRole.provider and actor_id != appointment.provider_id:
            raise NotAuthorized("Barbers can only manage appointments assigned to them")

    # ------------------------------------------------------------------
    # writes

    def _guarded_write(self, provider_id: int, day: Date, interval: Interval, write, exclude_id=None):
        """Run conflict check then ``write()`` under the provider lock.

        A lost race reported by the store is retried once with a fresh
        conflict check, then surfaced as ``SlotUnavailable``.
        """
        with self.locks.hold(provider_id, day):
            for attempt in (1, 2):
                conflict = self.conflicts.has_conflict(provider_id, day, interval, exclude_id)
                if conflict:
                    raise SlotUnavailable("Appointment overlaps an existing appointment")
                try:
                    return write()
                except StoreConflict:
                    logger.warning(
                        "Write for provider %s on %s %s lost a race (attempt %s)",
                        provider_id, day, interval, attempt,
                    )
            raise SlotUnavailable("Someone just booked that slot")

    def _notify(self, event: str, appointment: Appointment) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier.notify(event, appointment)
        except Exception:
            logger.exception("Failed to dispatch %s notification for appointment %s", event, appointment.id)

    # ------------------------------------------------------------------
    # operations

    def create(
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
        now = now or self.clock()

        # 1) Validate input
        self._check_interval_input(day, start)
        if notes is not None:
            notes = notes.strip() or None
            if notes and len(notes) > MAX_NOTES_LENGTH:
                raise ValidationError(f"Notes cannot be more than {MAX_NOTES_LENGTH} characters")

        # 2) Resolve shop, barber and service
        shop = self._shop(shop_id)
        provider = self._provider(provider_id)
        service = self._service(service_id)
        if provider.shop_id != shop.id:
            raise ValidationError("Barber does not work at this shop")
        self._check_service(shop, provider, service)

        # 3) Build appointment interval
        end = start + service.duration_minutes
        if end > MINUTES_PER_DAY:
            raise OutOfHours("Appointment cannot run past midnight")
        interval = Interval(start=start, end=end)

        appointment = Appointment(
            customer_id=customer_id,
            provider_id=provider.id,
            shop_id=shop.id,
            service_id=service.id,
            date=day,
            start=start,
            end=end,
            status=AppointmentStatus.confirmed if provider.auto_confirm else AppointmentStatus.pending,
            notes=notes,
            version=1,
            created_at=now,
            updated_at=now,
        )
        if appointment.starts_at < now:
            raise ValidationError("Cannot book an appointment in the past")

        # 4) Hours, leave and blocks
        self.validate_slot(shop, provider, day, interval)

        # 5) Conflict check and insert, atomically per provider
        created = self._guarded_write(provider.id, day, interval, lambda: self.store.insert(appointment))
        logger.info(
            "Appointment %s created for barber %s on %s %s",
            created.id, created.provider_id, created.date, created.interval,
        )
        self._notify("created", created)
        return created

    def reschedule(
        self,
        appointment_id: int,
        new_date: Date,
        new_start: int,
        now: Optional[datetime] = None,
        actor_role: Optional[ActorRole] = None,
        actor_id: Optional[int] = None,
    ) -> Appointment:
        now = now or self.clock()
        self._check_interval_input(new_date, new_start)

        current = self._appointment(appointment_id)
        if actor_role is not None:
            self._check_actor(current, actor_role, actor_id)
        next_state(current.status, Action.reschedule)

        shop = self._shop(current.shop_id)
        provider = self._provider(current.provider_id)
        service = self._service(current.service_id)

        new_end = new_start + service.duration_minutes
        if new_end > MINUTES_PER_DAY:
            raise OutOfHours("Appointment cannot run past midnight")
        interval = Interval(start=new_start, end=new_end)
        self.validate_slot(shop, provider, new_date, interval)

        def write():
            # re-read so a retry sees what the concurrent writer did
            latest = self._appointment(appointment_id)
            target = next_state(latest.status, Action.reschedule)
            moved = latest.model_copy(update={
                "date": new_date,
                "start": new_start,
                "end": new_end,
                "status": target,
                "version": latest.version + 1,
                "updated_at": now,
            })
            if moved.starts_at < now:
                raise ValidationError("Cannot move an appointment into the past")
            return self.store.compare_and_swap(moved, latest.version)

        moved = self._guarded_write(current.provider_id, new_date, interval, write, exclude_id=current.id)
        logger.info(
            "Appointment %s rescheduled from %s %s to %s %s",
            moved.id, current.date, current.interval, moved.date, moved.interval,
        )
        self._notify(EVENTS[Action.reschedule], moved)
        return moved

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
        """Apply ``confirm``, ``complete``, ``mark_no_show`` or ``cancel``."""
        now = now or self.clock()
        try:
            action = Action(action)
            actor_role = ActorRole(actor_role)
        except ValueError as exc:
            raise ValidationError(str(exc))
        if action == Action.reschedule:
            raise ValidationError("Use reschedule() to move an appointment")
        try:
            reason = CancellationReason(reason) if reason else None
        except ValueError:
            raise ValidationError(f"Unknown cancellation reason {reason!r}")
        if notes and len(notes) > MAX_NOTES_LENGTH:
            raise ValidationError(f"Notes cannot be more than {MAX_NOTES_LENGTH} characters")

        for attempt in (1, 2):
            current = self._appointment(appointment_id)
            target = next_state(current.status, action)

            if actor_role not in ALLOWED_ACTORS[action]:
                raise NotAuthorized(f"A {actor_role.value} cannot {action.value} an appointment")
            self._check_actor(current, actor_role, actor_id)

            changes = {"status": target, "version": current.version + 1, "updated_at": now}

            if action == Action.complete:
                if now < current.starts_at:
                    raise InvalidStateTransition(
                        current.status.value, action.value, "Appointment has not started yet"
                    )
                changes["completed_at"] = now
            elif action == Action.mark_no_show:
                if now < current.ends_at:
                    raise InvalidStateTransition(
                        current.status.value, action.value, "Appointment has not ended yet"
                    )
            elif action == Action.cancel:
                shop = self._shop(current.shop_id)
                self.policy.can_cancel(current, actor_role, now, shop.cancellation_cutoff_hours, reason)
                changes.update({
                    "cancelled_by": actor_role,
                    "cancellation_reason": reason or CancellationReason.customer_request,
                    "cancellation_notes": notes,
                    "cancelled_at": now,
                })

            updated = current.model_copy(update=changes)
            try:
                committed = self.store.compare_and_swap(updated, current.version)
            except StoreConflict:
                logger.warning(
                    "Appointment %s changed while applying %s (attempt %s)",
                    appointment_id, action.value, attempt,
                )
                continue

            logger.info(
                "Appointment %s %s -> %s by %s",
                committed.id, current.status.value, committed.status.value, actor_role.value,
            )
            self._notify(EVENTS[action], committed)
            return committed

        raise SlotUnavailable("Appointment was modified concurrently, please retry")
