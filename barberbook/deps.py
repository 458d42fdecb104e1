# barberbook/deps.py

from fastapi import BackgroundTasks, Depends, HTTPException
from sqlmodel import Session

from .config import PROVIDER_LOCK_TIMEOUT_SECONDS, SLOT_STEP_MINUTES
from .core import ActorRole, AvailabilityCalculator, BookingService, ProviderLocks
from .db import get_session
from .notifications import BackgroundNotifier
from .storage import SqlAppointmentStore, SqlDirectory

# shared by every request so concurrent bookings for one barber serialize
provider_locks = ProviderLocks(timeout_seconds=PROVIDER_LOCK_TIMEOUT_SECONDS)

ACTOR_ROLES = {
    "client": ActorRole.customer,
    "barber": ActorRole.provider,
    "staff": ActorRole.shop_staff,
}


def require_role(user: dict, *roles: str):
    if user["role"] not in roles:
        raise HTTPException(status_code=403, detail="Forbidden")


def actor_for(user: dict):
    """Map a logged-in user to ``(role, id)`` as the booking engine sees them."""
    role = ACTOR_ROLES[user["role"]]
    if role == ActorRole.provider:
        if user.get("barber_id") is None:
            raise HTTPException(status_code=409, detail="Barber profile not set up")
        return role, user["barber_id"]
    if role == ActorRole.customer:
        return role, user["id"]
    return role, None


def get_booking_service(
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
) -> BookingService:
    return BookingService(
        SqlAppointmentStore(session),
        SqlDirectory(session),
        calculator=AvailabilityCalculator(step_minutes=SLOT_STEP_MINUTES),
        locks=provider_locks,
        notifier=BackgroundNotifier(background_tasks),
    )
