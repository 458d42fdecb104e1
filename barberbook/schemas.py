# barberbook/schemas.py

from pydantic import BaseModel, Field, field_validator
from enum import Enum
from datetime import date, datetime, time
from typing import Dict, List, Optional

from .core.domain import (
    MAX_NOTES_LENGTH,
    MAX_SERVICE_MINUTES,
    MIN_SERVICE_MINUTES,
    Appointment,
    BlockKind,
    CancellationReason,
)
from .core.time_utils import format_minutes, minutes_of_day


def _check_hhmm(value: str) -> str:
    minutes_of_day(value)
    return value.strip()


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserRole(str, Enum):
    barber = "barber"
    client = "client"
    staff = "staff"


class UserPublic(BaseModel):
    id: int
    email: str
    role: UserRole
    barber_id: Optional[int] = None


class UserCreate(BaseModel):
    email: str
    password: str = Field(min_length=8, max_length=72)
    role: UserRole


class DayHours(BaseModel):
    open: str
    close: str

    @field_validator("open", "close")
    @classmethod
    def check_time(cls, value: str) -> str:
        return _check_hhmm(value)


class ShopCreate(BaseModel):
    name: str = Field(min_length=1)
    # "0".."6" (0 = Monday) or weekday names; missing or null = closed
    business_hours: Dict[str, Optional[DayHours]]
    cancellation_cutoff_hours: int = Field(ge=0)


class ShopPublic(BaseModel):
    id: int
    name: str
    business_hours: Dict[str, List[str]]
    cancellation_cutoff_hours: int


class ServiceCreate(BaseModel):
    name: str = Field(min_length=1)
    category: Optional[str] = None
    duration_minutes: int = Field(ge=MIN_SERVICE_MINUTES, le=MAX_SERVICE_MINUTES)


class ServicePublic(BaseModel):
    id: int
    shop_id: int
    name: str
    category: Optional[str]
    duration_minutes: int
    is_active: bool = True


class ServiceUpdate(BaseModel):
    is_active: bool


class BarberCreate(BaseModel):
    email: str


class BarberPublic(BaseModel):
    id: int
    user_id: int
    shop_id: int
    working_hours: Optional[Dict[str, List[str]]] = None
    is_available: bool = True
    auto_confirm: bool = False


class BarberUpdate(BaseModel):
    is_available: Optional[bool] = None
    auto_confirm: Optional[bool] = None


class BarberServices(BaseModel):
    # empty = every active service of the shop
    service_ids: List[int]


class BarberSchedule(BaseModel):
    working_days: list[int]     # 0=Mon, 1=Tues....
    day_start: time
    day_end: time


class BlockCreate(BaseModel):
    date: date
    start_time: time
    kind: BlockKind


class BlockPublic(BaseModel):
    id: int
    barber_id: int
    date: date
    start_time: str
    end_time: str
    kind: BlockKind


class LeaveCreate(BaseModel):
    start_date: date
    end_date: date
    reason: Optional[str] = Field(default=None, max_length=MAX_NOTES_LENGTH)


class LeavePublic(BaseModel):
    id: int
    barber_id: int
    start_date: date
    end_date: date
    approved: bool
    reason: Optional[str]


class AppointmentCreate(BaseModel):
    shop_id: int
    barber_id: int
    service_id: int
    date: date
    start_time: str
    notes: Optional[str] = None

    @field_validator("start_time")
    @classmethod
    def check_time(cls, value: str) -> str:
        return _check_hhmm(value)


class RescheduleRequest(BaseModel):
    date: date
    start_time: str

    @field_validator("start_time")
    @classmethod
    def check_time(cls, value: str) -> str:
        return _check_hhmm(value)


class TransitionRequest(BaseModel):
    reason: Optional[CancellationReason] = None
    notes: Optional[str] = None


class AppointmentPublic(BaseModel):
    id: int
    customer_id: int
    barber_id: int
    shop_id: int
    service_id: int
    date: date
    start_time: str
    end_time: str
    status: str
    notes: Optional[str] = None
    cancelled_by: Optional[str] = None
    cancellation_reason: Optional[str] = None
    cancellation_notes: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    version: int

    @classmethod
    def from_appointment(cls, a: Appointment) -> "AppointmentPublic":
        return cls(
            id=a.id,
            customer_id=a.customer_id,
            barber_id=a.provider_id,
            shop_id=a.shop_id,
            service_id=a.service_id,
            date=a.date,
            start_time=format_minutes(a.start),
            end_time=format_minutes(a.end),
            status=a.status.value,
            notes=a.notes,
            cancelled_by=a.cancelled_by.value if a.cancelled_by else None,
            cancellation_reason=a.cancellation_reason.value if a.cancellation_reason else None,
            cancellation_notes=a.cancellation_notes,
            cancelled_at=a.cancelled_at,
            version=a.version,
        )


class SlotPublic(BaseModel):
    start_time: str
    end_time: str


class AvailabilityResponse(BaseModel):
    shop_id: int
    service_id: int
    barber_id: Optional[int] = None
    date: date
    reason: Optional[str] = None
    slots: List[SlotPublic]
    available_starts: List[str]


class AppointmentStats(BaseModel):
    barber_id: int
    start_date: date
    end_date: date
    counts: Dict[str, int]
