# barberbook/models.py

from typing import Optional
from datetime import date as Date

from pydantic import NaiveDatetime
from sqlalchemy import DateTime, Index, text
from sqlalchemy.types import JSON
from sqlmodel import SQLModel, Field, Column

ACTIVE_SLOT_WHERE = text("status IN ('pending', 'confirmed')")


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True, unique=True)
    password_hash: str
    role: str  # client, barber or staff


class Shop(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    # {"0": ["09:00", "18:00"], ...}, 0 = Monday; missing weekday = closed
    business_hours: dict = Field(sa_column=Column(JSON, nullable=False))
    cancellation_cutoff_hours: int


class Service(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    shop_id: int = Field(foreign_key="shop.id", index=True)
    name: str
    category: Optional[str] = None
    duration_minutes: int
    # retired services stay for old appointments but take no new bookings
    is_active: bool = True


class Barber(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", unique=True)
    shop_id: int = Field(foreign_key="shop.id", index=True)
    # same shape as Shop.business_hours; NULL = works the shop's hours
    working_hours: Optional[dict] = Field(default=None, sa_column=Column(JSON, nullable=True))
    is_available: bool = True
    auto_confirm: bool = False


class BarberService(SQLModel, table=True):
    # no rows for a barber = offers every active service of the shop
    barber_id: int = Field(foreign_key="barber.id", primary_key=True)
    service_id: int = Field(foreign_key="service.id", primary_key=True)
    is_active: bool = True


class BarberLeave(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    barber_id: int = Field(foreign_key="barber.id", index=True)
    start_date: Date
    end_date: Date
    approved: bool = False
    reason: Optional[str] = None


class BarberBlock(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    barber_id: int = Field(foreign_key="barber.id", index=True)
    date: Date = Field(index=True)
    start_minute: int
    end_minute: int
    kind: str  # "lunch_break" or "day_off"


class Appointment(SQLModel, table=True):
    __table_args__ = (
        # one active appointment per barber start time
        Index(
            "uq_active_barber_slot",
            "barber_id",
            "date",
            "start_minute",
            unique=True,
            sqlite_where=ACTIVE_SLOT_WHERE,
            postgresql_where=ACTIVE_SLOT_WHERE,
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)

    customer_id: int = Field(foreign_key="user.id", index=True)
    barber_id: int = Field(foreign_key="barber.id", index=True)
    shop_id: int = Field(foreign_key="shop.id")
    service_id: int = Field(foreign_key="service.id")
    date: Date = Field(index=True)
    start_minute: int
    end_minute: int
    status: str = "pending"
    notes: Optional[str] = None

    cancelled_by: Optional[str] = None
    cancellation_reason: Optional[str] = None
    cancellation_notes: Optional[str] = None
    # wall-clock shop time, stored without tzinfo
    cancelled_at: Optional[NaiveDatetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))
    completed_at: Optional[NaiveDatetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))

    version: int = 1
    created_at: Optional[NaiveDatetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))
    updated_at: Optional[NaiveDatetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))
