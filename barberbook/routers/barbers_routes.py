# barberbook/routers/barbers_routes.py

from datetime import date

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select

from barberbook.auth import get_current_user
from barberbook.core import BlockKind, BookingService, BusinessHours, LeaveRange
from barberbook.core.domain import ACTIVE_STATUSES
from barberbook.core.time_utils import Interval, format_minutes, from_time, intersect, overlaps
from barberbook.db import get_session
from barberbook.deps import get_booking_service, require_role
from barberbook.models import Barber, BarberBlock as BarberBlockModel, BarberLeave, BarberService, Service, Shop
from barberbook.routers.shops_routes import availability_response
from barberbook.schemas import (
    AppointmentStats,
    AvailabilityResponse,
    BarberPublic,
    BarberSchedule as BarberScheduleSchema,
    BarberServices,
    BarberUpdate,
    BlockCreate,
    BlockPublic,
    LeaveCreate,
    LeavePublic,
)

router = APIRouter(
    prefix="/barbers",
    tags=["barbers"],
)

LUNCH_BREAK_MINUTES = 30
BLOCK_STEP_MINUTES = 15


def my_barber(session: Session, current_user: dict) -> Barber:
    require_role(current_user, "barber")
    barber_id = current_user.get("barber_id")
    barber = session.get(Barber, barber_id) if barber_id is not None else None
    if barber is None:
        raise HTTPException(status_code=409, detail="Barber profile not set up")
    return barber


def working_window(session: Session, barber: Barber, on_date: date):
    """The barber's open interval on ``on_date`` (shop hours narrowed by schedule)."""
    shop = session.get(Shop, barber.shop_id)
    window = BusinessHours.from_strings(shop.business_hours).window_for(on_date)
    if window is not None and barber.working_hours is not None:
        own = BusinessHours.from_strings(barber.working_hours).window_for(on_date)
        window = intersect(window, own) if own is not None else None
    return window


def refuse_stranding(stranded, what: str):
    """409 when a schedule change would leave booked appointments outside working time."""
    if stranded:
        days = ", ".join(sorted({a.date.isoformat() for a in stranded}))
        raise HTTPException(
            status_code=409,
            detail=f"{len(stranded)} booked appointment(s) fall outside the {what} on {days}; cancel or move them first",
        )


def check_leave(booking: BookingService, barber_id: int, start: date, end: date):
    profile = booking.directory.get_provider(barber_id)
    proposed = profile.model_copy(
        update={"leave": profile.leave + (LeaveRange(start_date=start, end_date=end, approved=True),)}
    )
    refuse_stranding(booking.stranded_appointments(proposed, start, end), "leave")


def schedule_from_hours(hours: dict) -> dict:
    days = sorted(int(d) for d in hours)
    if not days:
        return {"working_days": [], "day_start": None, "day_end": None}
    day_start, day_end = hours[str(days[0])]
    return {"working_days": days, "day_start": day_start, "day_end": day_end}


@router.put('/me/schedule', response_model=BarberScheduleSchema)
def set_schedule(
    schedule: BarberScheduleSchema,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
    booking: BookingService = Depends(get_booking_service),
):
    barber = my_barber(session, current_user)
    if not schedule.working_days:
        raise HTTPException(status_code=422, detail="working_days must contain at least one day")
    for day in schedule.working_days:
        if not (0 <= day <= 6):
            raise HTTPException(status_code=422, detail="working_days must be integers between 0 and 6")
    if len(schedule.working_days) != len(set(schedule.working_days)):
        raise HTTPException(status_code=422, detail="working_days cannot contain duplicates")

    start, end = from_time(schedule.day_start), from_time(schedule.day_end)
    if start >= end:
        raise HTTPException(status_code=422, detail="day_start must be before day_end")

    hours = {
        str(day): [format_minutes(start), format_minutes(end)] for day in sorted(schedule.working_days)
    }
    proposed = booking.directory.get_provider(barber.id).model_copy(
        update={"hours": BusinessHours.from_strings(hours)}
    )
    refuse_stranding(booking.stranded_appointments(proposed, date.today(), date.max), "new schedule")

    # one schedule per barber, overwritten on every PUT
    barber.working_hours = hours
    session.add(barber)
    session.commit()
    session.refresh(barber)

    return schedule_from_hours(barber.working_hours)


@router.get("/me/schedule", response_model=BarberScheduleSchema)
def get_my_schedule(
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    barber = my_barber(session, current_user)
    if barber.working_hours is None:
        raise HTTPException(status_code=404, detail="Schedule not set")
    return schedule_from_hours(barber.working_hours)


@router.put('/me/blocks', response_model=BlockPublic)
def add_block(
    block: BlockCreate,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
    booking: BookingService = Depends(get_booking_service),
):
    barber = my_barber(session, current_user)

    window = working_window(session, barber, block.date)
    if window is None:
        raise HTTPException(status_code=422, detail="Not scheduled to work that day")

    if block.kind == BlockKind.lunch_break:
        if block.start_time.minute % BLOCK_STEP_MINUTES != 0 or block.start_time.second != 0:
            raise HTTPException(status_code=422, detail="Time must be in increments of 15")
        start = from_time(block.start_time)
        interval = Interval(start=start, end=min(start + LUNCH_BREAK_MINUTES, 24 * 60))
    else:
        interval = window

    if not window.contains(interval):
        raise HTTPException(status_code=422, detail="Block must be within working hours")

    existing_blocks = session.exec(
        select(BarberBlockModel)
        .where(BarberBlockModel.barber_id == barber.id)
        .where(BarberBlockModel.date == block.date)
    ).all()
    for existing in existing_blocks:
        if overlaps(interval.start, interval.end, existing.start_minute, existing.end_minute):
            raise HTTPException(status_code=409, detail="Block overlaps existing block")

    for booked in booking.provider_appointments(barber.id, block.date, ACTIVE_STATUSES):
        if overlaps(interval.start, interval.end, booked.start, booked.end):
            raise HTTPException(status_code=409, detail="Block overlaps a booked appointment")

    db_block = BarberBlockModel(
        barber_id=barber.id,
        date=block.date,
        start_minute=interval.start,
        end_minute=interval.end,
        kind=block.kind.value,
    )
    session.add(db_block)
    session.commit()
    session.refresh(db_block)

    return {
        "id": db_block.id,
        "barber_id": db_block.barber_id,
        "date": db_block.date,
        "start_time": format_minutes(db_block.start_minute),
        "end_time": format_minutes(db_block.end_minute),
        "kind": db_block.kind,
    }


@router.post('/me/leave', response_model=LeavePublic, status_code=201)
def add_leave(
    leave: LeaveCreate,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
    booking: BookingService = Depends(get_booking_service),
):
    barber = my_barber(session, current_user)
    if leave.end_date < leave.start_date:
        raise HTTPException(status_code=422, detail="end_date cannot be before start_date")

    check_leave(booking, barber.id, leave.start_date, leave.end_date)

    # takes effect once shop staff approve it
    db_leave = BarberLeave(
        barber_id=barber.id,
        start_date=leave.start_date,
        end_date=leave.end_date,
        approved=False,
        reason=leave.reason,
    )
    session.add(db_leave)
    session.commit()
    session.refresh(db_leave)
    return db_leave


@router.post("/{barber_id}/leave/{leave_id}/approve", response_model=LeavePublic)
def approve_leave(
    barber_id: int,
    leave_id: int,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
    booking: BookingService = Depends(get_booking_service),
):
    require_role(current_user, "staff")
    db_leave = session.get(BarberLeave, leave_id)
    if db_leave is None or db_leave.barber_id != barber_id:
        raise HTTPException(status_code=404, detail="Leave not found")
    if db_leave.approved:
        return db_leave

    # bookings may have landed between the request and the approval
    check_leave(booking, barber_id, db_leave.start_date, db_leave.end_date)

    db_leave.approved = True
    session.add(db_leave)
    session.commit()
    session.refresh(db_leave)
    return db_leave


@router.patch("/me", response_model=BarberPublic)
def update_me(
    update: BarberUpdate,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    barber = my_barber(session, current_user)
    for field, value in update.model_dump(exclude_none=True).items():
        setattr(barber, field, value)
    session.add(barber)
    session.commit()
    session.refresh(barber)
    return barber


@router.put("/me/services", response_model=BarberServices)
def set_my_services(
    offered: BarberServices,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    barber = my_barber(session, current_user)
    service_ids = sorted(set(offered.service_ids))
    for service_id in service_ids:
        service = session.get(Service, service_id)
        if service is None or service.shop_id != barber.shop_id:
            raise HTTPException(status_code=422, detail=f"Service {service_id} is not offered at this shop")

    existing = session.exec(select(BarberService).where(BarberService.barber_id == barber.id)).all()
    for row in existing:
        session.delete(row)
    session.flush()
    for service_id in service_ids:
        session.add(BarberService(barber_id=barber.id, service_id=service_id))
    session.commit()
    return {"service_ids": service_ids}


@router.get("/{barber_id}/availability", response_model=AvailabilityResponse)
def barber_availability(
    barber_id: int,
    service_id: int,
    date: date,
    session: Session = Depends(get_session),
    booking: BookingService = Depends(get_booking_service),
):
    barber = session.get(Barber, barber_id)
    if barber is None:
        raise HTTPException(status_code=404, detail="Barber Not Found")

    slots = booking.compute_availability(barber.shop_id, service_id, date, provider_id=barber_id)
    return availability_response(slots, barber.shop_id, service_id, date, barber_id)


@router.get("/{barber_id}/stats", response_model=AppointmentStats)
def barber_stats(
    barber_id: int,
    start_date: date,
    end_date: date,
    current_user: dict = Depends(get_current_user),
    booking: BookingService = Depends(get_booking_service),
):
    require_role(current_user, "barber", "staff")
    if current_user["role"] == "barber" and current_user.get("barber_id") != barber_id:
        raise HTTPException(status_code=403, detail="Forbidden")

    counts = booking.appointment_stats(barber_id, start_date, end_date)
    return {"barber_id": barber_id, "start_date": start_date, "end_date": end_date, "counts": counts}
