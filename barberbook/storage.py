# barberbook/storage.py

"""SQLModel-backed implementations of the booking engine's collaborators."""

from datetime import date as Date
from typing import Iterable, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from .core.domain import (
    Appointment,
    AppointmentStatus,
    Block,
    BusinessHours,
    LeaveRange,
    ProviderProfile,
    ServiceSpec,
    ShopProfile,
)
from .core.errors import StoreConflict
from .core.time_utils import Interval
from .models import (
    Appointment as AppointmentRow,
    Barber,
    BarberBlock,
    BarberLeave,
    BarberService,
    Service,
    Shop,
)

# domain field -> column
_COLUMNS = {
    "customer_id": "customer_id",
    "provider_id": "barber_id",
    "shop_id": "shop_id",
    "service_id": "service_id",
    "date": "date",
    "start": "start_minute",
    "end": "end_minute",
    "status": "status",
    "notes": "notes",
    "cancelled_by": "cancelled_by",
    "cancellation_reason": "cancellation_reason",
    "cancellation_notes": "cancellation_notes",
    "cancelled_at": "cancelled_at",
    "completed_at": "completed_at",
    "version": "version",
    "created_at": "created_at",
    "updated_at": "updated_at",
}


def to_domain(row: AppointmentRow) -> Appointment:
    values = {field: getattr(row, column) for field, column in _COLUMNS.items()}
    return Appointment(id=row.id, **values)


def to_columns(appointment: Appointment) -> dict:
    values = {}
    for field, column in _COLUMNS.items():
        value = getattr(appointment, field)
        # enums are stored by value
        values[column] = getattr(value, "value", value)
    return values


class SqlAppointmentStore:
    def __init__(self, session: Session):
        self.session = session

    def get(self, appointment_id: int) -> Optional[Appointment]:
        row = self.session.get(AppointmentRow, appointment_id, populate_existing=True)
        return to_domain(row) if row is not None else None

    def _list(self, stmt) -> List[Appointment]:
        rows = self.session.exec(stmt.execution_options(populate_existing=True)).all()
        return [to_domain(r) for r in rows]

    def list_for_provider(
        self,
        provider_id: int,
        day: Date,
        statuses: Optional[Iterable[AppointmentStatus]] = None,
    ) -> List[Appointment]:
        stmt = (
            select(AppointmentRow)
            .where(AppointmentRow.barber_id == provider_id)
            .where(AppointmentRow.date == day)
        )
        if statuses is not None:
            stmt = stmt.where(AppointmentRow.status.in_([AppointmentStatus(s).value for s in statuses]))
        return self._list(stmt.order_by(AppointmentRow.start_minute, AppointmentRow.id))

    def list_for_customer(
        self,
        customer_id: int,
        statuses: Optional[Iterable[AppointmentStatus]] = None,
    ) -> List[Appointment]:
        stmt = select(AppointmentRow).where(AppointmentRow.customer_id == customer_id)
        if statuses is not None:
            stmt = stmt.where(AppointmentRow.status.in_([AppointmentStatus(s).value for s in statuses]))
        return self._list(stmt.order_by(AppointmentRow.date, AppointmentRow.start_minute, AppointmentRow.id))

    def list_in_range(self, provider_id: int, start: Date, end: Date) -> List[Appointment]:
        stmt = (
            select(AppointmentRow)
            .where(AppointmentRow.barber_id == provider_id)
            .where(AppointmentRow.date >= start)
            .where(AppointmentRow.date <= end)
            .order_by(AppointmentRow.date, AppointmentRow.start_minute, AppointmentRow.id)
        )
        return self._list(stmt)

    def insert(self, appointment: Appointment) -> Appointment:
        row = AppointmentRow(**to_columns(appointment))
        self.session.add(row)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise StoreConflict("Appointment already exists for that start time")

        self.session.refresh(row)  # fills row.id
        return to_domain(row)

    def compare_and_swap(self, appointment: Appointment, expected_version: int) -> Appointment:
        stmt = (
            update(AppointmentRow)
            .where(AppointmentRow.id == appointment.id)
            .where(AppointmentRow.version == expected_version)
            .values(**to_columns(appointment))
        )
        try:
            result = self.session.connection().execute(stmt)
            if result.rowcount != 1:
                self.session.rollback()
                raise StoreConflict(f"Appointment {appointment.id} was modified concurrently")
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise StoreConflict("Appointment already exists for that start time")

        return self.get(appointment.id)


class SqlDirectory:
    def __init__(self, session: Session):
        self.session = session

    def get_shop(self, shop_id: int) -> Optional[ShopProfile]:
        shop = self.session.get(Shop, shop_id)
        if shop is None:
            return None
        return ShopProfile(
            id=shop.id,
            name=shop.name,
            hours=BusinessHours.from_strings(shop.business_hours),
            cancellation_cutoff_hours=shop.cancellation_cutoff_hours,
        )

    def _profile(self, barber: Barber) -> ProviderProfile:
        leave = self.session.exec(
            select(BarberLeave)
            .where(BarberLeave.barber_id == barber.id)
            .order_by(BarberLeave.start_date)
        ).all()
        offered = self.session.exec(
            select(BarberService).where(BarberService.barber_id == barber.id)
        ).all()
        hours = None
        if barber.working_hours is not None:
            hours = BusinessHours.from_strings(barber.working_hours)
        return ProviderProfile(
            id=barber.id,
            shop_id=barber.shop_id,
            hours=hours,
            leave=tuple(
                LeaveRange(start_date=r.start_date, end_date=r.end_date, approved=r.approved, reason=r.reason)
                for r in leave
            ),
            available=barber.is_available,
            auto_confirm=barber.auto_confirm,
            service_ids=frozenset(o.service_id for o in offered if o.is_active) if offered else None,
        )

    def get_provider(self, provider_id: int) -> Optional[ProviderProfile]:
        barber = self.session.get(Barber, provider_id)
        return self._profile(barber) if barber is not None else None

    def list_providers(self, shop_id: int) -> List[ProviderProfile]:
        barbers = self.session.exec(
            select(Barber).where(Barber.shop_id == shop_id).order_by(Barber.id)
        ).all()
        return [self._profile(b) for b in barbers]

    def get_service(self, service_id: int) -> Optional[ServiceSpec]:
        service = self.session.get(Service, service_id)
        if service is None:
            return None
        return ServiceSpec(
            id=service.id,
            shop_id=service.shop_id,
            name=service.name,
            category=service.category,
            duration_minutes=service.duration_minutes,
            active=service.is_active,
        )

    def get_blocks(self, provider_id: int, day: Date) -> List[Block]:
        blocks = self.session.exec(
            select(BarberBlock)
            .where(BarberBlock.barber_id == provider_id)
            .where(BarberBlock.date == day)
            .order_by(BarberBlock.start_minute)
        ).all()
        return [
            Block(date=b.date, interval=Interval(start=b.start_minute, end=b.end_minute), kind=b.kind)
            for b in blocks
        ]
