# barberbook/core/domain.py

from datetime import date as Date, datetime
from enum import Enum
from typing import Dict, FrozenSet, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .time_utils import Interval, at, format_minutes, minutes_of_day, weekday_of

MIN_SERVICE_MINUTES = 5
MAX_SERVICE_MINUTES = 480
MAX_NOTES_LENGTH = 500

WEEKDAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class AppointmentStatus(str, Enum):
    pending = "pending"
    confirmed = "confirmed"
    completed = "completed"
    cancelled = "cancelled"
    no_show = "no_show"


ACTIVE_STATUSES = frozenset({AppointmentStatus.pending, AppointmentStatus.confirmed})


class Action(str, Enum):
    confirm = "confirm"
    complete = "complete"
    mark_no_show = "mark_no_show"
    cancel = "cancel"
    reschedule = "reschedule"


class ActorRole(str, Enum):
    customer = "customer"
    provider = "provider"
    shop_staff = "shop_staff"
    system = "system"


class CancellationReason(str, Enum):
    customer_request = "customer_request"
    barber_unavailable = "barber_unavailable"
    shop_closed = "shop_closed"
    weather = "weather"
    emergency = "emergency"
    other = "other"


class BlockKind(str, Enum):
    lunch_break = "lunch_break"
    day_off = "day_off"


class BusinessHours(BaseModel):
    """Weekly opening hours; a weekday missing from ``days`` is closed."""

    model_config = ConfigDict(frozen=True)

    days: Dict[int, Interval] = Field(default_factory=dict)

    @field_validator("days")
    @classmethod
    def _check_weekdays(cls, days):
        for weekday in days:
            if not 0 <= weekday <= 6:
                raise ValueError("weekday keys must be integers between 0 and 6")
        return days

    @classmethod
    def from_strings(cls, hours: Mapping) -> "BusinessHours":
        """Build from ``{weekday: ("09:00", "18:00") | None}``.

        Weekdays may be given as integers (0 = Monday) or lowercase names.
        """
        days = {}
        for key, value in hours.items():
            if isinstance(key, str) and not key.isdigit():
                weekday = WEEKDAY_NAMES.index(key.lower())
            else:
                weekday = int(key)
            if value is None:
                continue
            open_at, close_at = value
            days[weekday] = Interval(start=minutes_of_day(open_at), end=minutes_of_day(close_at))
        return cls(days=days)

    def to_strings(self) -> Dict[int, Tuple[str, str]]:
        return {
            weekday: (format_minutes(i.start), format_minutes(i.end))
            for weekday, i in sorted(self.days.items())
        }

    def window_for(self, day: Date) -> Optional[Interval]:
        return self.days.get(weekday_of(day))


class LeaveRange(BaseModel):
    model_config = ConfigDict(frozen=True)

    start_date: Date
    end_date: Date
    approved: bool = False
    reason: Optional[str] = None

    @model_validator(mode="after")
    def _check_order(self):
        if self.end_date < self.start_date:
            raise ValueError("leave end_date cannot be before start_date")
        return self

    def covers(self, day: Date) -> bool:
        return self.approved and self.start_date <= day <= self.end_date


class Block(BaseModel):
    """A date-specific interval during which a provider takes no bookings."""

    model_config = ConfigDict(frozen=True)

    date: Date
    interval: Interval
    kind: BlockKind = BlockKind.lunch_break


class ServiceSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    shop_id: int
    name: str = ""
    category: Optional[str] = None
    duration_minutes: int = Field(ge=MIN_SERVICE_MINUTES, le=MAX_SERVICE_MINUTES)
    active: bool = True


class ShopProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str = ""
    hours: BusinessHours
    cancellation_cutoff_hours: int = Field(ge=0)


class ProviderProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    shop_id: int
    # None means the provider works the shop's hours
    hours: Optional[BusinessHours] = None
    leave: Tuple[LeaveRange, ...] = ()
    # False while the provider takes no new bookings at all
    available: bool = True
    # new bookings start out confirmed
    auto_confirm: bool = False
    # None means every active service of the shop
    service_ids: Optional[FrozenSet[int]] = None

    def on_leave(self, day: Date) -> bool:
        return any(r.covers(day) for r in self.leave)

    def offers(self, service_id: int) -> bool:
        return self.service_ids is None or service_id in self.service_ids


class Slot(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: int
    end: int


class Appointment(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    id: Optional[int] = None
    customer_id: int
    provider_id: int
    shop_id: int
    service_id: int
    date: Date
    start: int
    end: int
    status: AppointmentStatus = AppointmentStatus.pending
    notes: Optional[str] = None

    cancelled_by: Optional[ActorRole] = None
    cancellation_reason: Optional[CancellationReason] = None
    cancellation_notes: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    version: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def interval(self) -> Interval:
        return Interval(start=self.start, end=self.end)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def starts_at(self) -> datetime:
        return at(self.date, self.start)

    @property
    def ends_at(self) -> datetime:
        return at(self.date, self.end)
