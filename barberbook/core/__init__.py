# barberbook/core/__init__.py

from .availability import AvailabilityCalculator, SlotSequence
from .conflicts import ConflictChecker, ConflictResult
from .domain import (
    Action,
    ActorRole,
    Appointment,
    AppointmentStatus,
    Block,
    BlockKind,
    BusinessHours,
    CancellationReason,
    LeaveRange,
    ProviderProfile,
    ServiceSpec,
    ShopProfile,
    Slot,
)
from .errors import (
    BookingError,
    InvalidStateTransition,
    NotAuthorized,
    NotFound,
    OutOfHours,
    PolicyViolation,
    ProviderOnLeave,
    SlotUnavailable,
    StoreConflict,
    ValidationError,
)
from .locks import ProviderLocks
from .memory import InMemoryAppointmentStore, InMemoryDirectory
from .policy import CancellationPolicy
from .service import BookingService
from .state_machine import BookingStateMachine
from .time_utils import Interval, minutes_of_day, overlaps
