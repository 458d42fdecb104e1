# barberbook/routers/appointments_routes.py

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException

from barberbook.auth import get_current_user
from barberbook.core import Action, ActorRole, AppointmentStatus, BookingService
from barberbook.core.domain import ACTIVE_STATUSES
from barberbook.core.time_utils import minutes_of_day
from barberbook.deps import actor_for, get_booking_service, require_role
from barberbook.schemas import (
    AppointmentCreate,
    AppointmentPublic,
    RescheduleRequest,
    TransitionRequest,
)

router = APIRouter(
    tags=["appointments"],
)

# URL segment -> engine action
ACTIONS = {
    "confirm": Action.confirm,
    "complete": Action.complete,
    "no_show": Action.mark_no_show,
    "cancel": Action.cancel,
}


def status_filter(status: Optional[str]):
    if status is None or status == "all":
        return None
    if status == "active":
        return ACTIVE_STATUSES
    try:
        return [AppointmentStatus(status)]
    except ValueError:
        raise HTTPException(status_code=422, detail="status must be 'active', 'all' or an appointment status")


@router.post("/appointments", response_model=AppointmentPublic, status_code=201)
def create_appointment(
    appt: AppointmentCreate,
    current_user: dict = Depends(get_current_user),
    booking: BookingService = Depends(get_booking_service),
):
    require_role(current_user, "client")  # customers book for themselves

    created = booking.create_booking(
        customer_id=current_user["id"],
        shop_id=appt.shop_id,
        provider_id=appt.barber_id,
        service_id=appt.service_id,
        day=appt.date,
        start=minutes_of_day(appt.start_time),
        notes=appt.notes,
    )
    return AppointmentPublic.from_appointment(created)


@router.get("/appointments/{appt_id}", response_model=AppointmentPublic)
def get_appointment(
    appt_id: int,
    current_user: dict = Depends(get_current_user),
    booking: BookingService = Depends(get_booking_service),
):
    appointment = booking.get_appointment(appt_id)
    role, actor_id = actor_for(current_user)
    if role == ActorRole.customer and actor_id != appointment.customer_id:
        raise HTTPException(status_code=403, detail="Forbidden")
    if role == ActorRole.provider and actor_id != appointment.provider_id:
        raise HTTPException(status_code=403, detail="Forbidden")
    return AppointmentPublic.from_appointment(appointment)


@router.patch("/appointments/{appt_id}/reschedule", response_model=AppointmentPublic)
def reschedule_appointment(
    appt_id: int,
    change: RescheduleRequest,
    current_user: dict = Depends(get_current_user),
    booking: BookingService = Depends(get_booking_service),
):
    role, actor_id = actor_for(current_user)
    moved = booking.reschedule_booking(
        appt_id,
        change.date,
        minutes_of_day(change.start_time),
        actor_role=role,
        actor_id=actor_id,
    )
    return AppointmentPublic.from_appointment(moved)


@router.post("/appointments/{appt_id}/{action}", response_model=AppointmentPublic)
def transition_appointment(
    appt_id: int,
    action: str,
    body: Optional[TransitionRequest] = Body(default=None),
    current_user: dict = Depends(get_current_user),
    booking: BookingService = Depends(get_booking_service),
):
    if action not in ACTIONS:
        raise HTTPException(status_code=404, detail="Unknown action")
    body = body or TransitionRequest()
    role, actor_id = actor_for(current_user)

    updated = booking.transition(
        appt_id,
        ACTIONS[action],
        role,
        reason=body.reason,
        notes=body.notes,
        actor_id=actor_id,
    )
    return AppointmentPublic.from_appointment(updated)


@router.get("/barbers/me/appointments", response_model=List[AppointmentPublic])
def list_barber_appointments(
    on_date: date,
    status: Optional[str] = "active",
    current_user: dict = Depends(get_current_user),
    booking: BookingService = Depends(get_booking_service),
):
    require_role(current_user, "barber")
    _, barber_id = actor_for(current_user)

    appts = booking.provider_appointments(barber_id, on_date, status_filter(status))
    return [AppointmentPublic.from_appointment(a) for a in appts]


@router.get("/clients/me/appointments", response_model=List[AppointmentPublic])
def list_my_appointments(
    status: Optional[str] = "active",
    current_user: dict = Depends(get_current_user),
    booking: BookingService = Depends(get_booking_service),
):
    require_role(current_user, "client")

    appts = booking.customer_appointments(current_user["id"], status_filter(status))
    return [AppointmentPublic.from_appointment(a) for a in appts]
