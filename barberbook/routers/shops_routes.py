# barberbook/routers/shops_routes.py

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select

from barberbook.auth import get_current_user
from barberbook.core import BookingService, BusinessHours
from barberbook.db import get_session
from barberbook.deps import get_booking_service, require_role
from barberbook.models import Barber, Service, Shop, User
from barberbook.schemas import (
    AvailabilityResponse,
    BarberCreate,
    BarberPublic,
    ServiceCreate,
    ServicePublic,
    ServiceUpdate,
    ShopCreate,
    ShopPublic,
)
from barberbook.core.time_utils import format_minutes

router = APIRouter(
    prefix="/shops",
    tags=["shops"],
)


def hours_to_json(hours: BusinessHours) -> dict:
    return {str(day): list(pair) for day, pair in hours.to_strings().items()}


def availability_response(slots, shop_id, service_id, on_date, barber_id=None) -> dict:
    slot_list = [
        {"start_time": format_minutes(s.start), "end_time": format_minutes(s.end)}
        for s in slots
    ]
    return {
        "shop_id": shop_id,
        "service_id": service_id,
        "barber_id": barber_id,
        "date": on_date,
        "reason": slots.reason,
        "slots": slot_list,
        "available_starts": [s["start_time"] for s in slot_list],
    }


def get_shop_or_404(session: Session, shop_id: int) -> Shop:
    shop = session.get(Shop, shop_id)
    if shop is None:
        raise HTTPException(status_code=404, detail="Shop not found")
    return shop


@router.post("", response_model=ShopPublic, status_code=201)
def create_shop(
    shop: ShopCreate,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "staff")

    raw = {day: (h.open, h.close) if h else None for day, h in shop.business_hours.items()}
    try:
        hours = BusinessHours.from_strings(raw)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    db_shop = Shop(
        name=shop.name,
        business_hours=hours_to_json(hours),
        cancellation_cutoff_hours=shop.cancellation_cutoff_hours,
    )
    session.add(db_shop)
    session.commit()
    session.refresh(db_shop)
    return db_shop


@router.get("/{shop_id}", response_model=ShopPublic)
def get_shop(shop_id: int, session: Session = Depends(get_session)):
    return get_shop_or_404(session, shop_id)


@router.post("/{shop_id}/services", response_model=ServicePublic, status_code=201)
def add_service(
    shop_id: int,
    service: ServiceCreate,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "staff")
    get_shop_or_404(session, shop_id)

    db_service = Service(shop_id=shop_id, **service.model_dump())
    session.add(db_service)
    session.commit()
    session.refresh(db_service)
    return db_service


@router.patch("/{shop_id}/services/{service_id}", response_model=ServicePublic)
def update_service(
    shop_id: int,
    service_id: int,
    update: ServiceUpdate,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "staff")
    db_service = session.get(Service, service_id)
    if db_service is None or db_service.shop_id != shop_id:
        raise HTTPException(status_code=404, detail="Service not found")

    # existing appointments keep their service; only new bookings are refused
    db_service.is_active = update.is_active
    session.add(db_service)
    session.commit()
    session.refresh(db_service)
    return db_service


@router.post("/{shop_id}/barbers", response_model=BarberPublic, status_code=201)
def add_barber(
    shop_id: int,
    barber: BarberCreate,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "staff")
    get_shop_or_404(session, shop_id)

    user = session.exec(select(User).where(User.email == barber.email.strip().lower())).first()
    if user is None or user.role != "barber":
        raise HTTPException(status_code=404, detail="Barber Not Found")

    existing = session.exec(select(Barber).where(Barber.user_id == user.id)).first()
    if existing is not None:
        raise HTTPException(status_code=409, detail="Barber already belongs to a shop")

    db_barber = Barber(user_id=user.id, shop_id=shop_id)
    session.add(db_barber)
    session.commit()
    session.refresh(db_barber)
    return db_barber


@router.get("/{shop_id}/availability", response_model=AvailabilityResponse)
def shop_availability(
    shop_id: int,
    service_id: int,
    date: date,
    barber_id: Optional[int] = None,
    booking: BookingService = Depends(get_booking_service),
):
    slots = booking.compute_availability(shop_id, service_id, date, provider_id=barber_id)
    return availability_response(slots, shop_id, service_id, date, barber_id)
