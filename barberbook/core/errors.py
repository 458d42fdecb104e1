# barberbook/core/errors.py


class BookingError(Exception):
    code = "booking_error"
    status_code = 400

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code


class ValidationError(BookingError):
    code = "validation_error"
    status_code = 422


class SlotUnavailable(BookingError):
    code = "slot_unavailable"
    status_code = 409


class OutOfHours(SlotUnavailable):
    code = "out_of_hours"


class ProviderOnLeave(BookingError):
    code = "provider_on_leave"
    status_code = 409


class PolicyViolation(BookingError):
    code = "policy_violation"
    status_code = 409


class InvalidStateTransition(BookingError):
    code = "invalid_state_transition"
    status_code = 409

    def __init__(self, current_state: str, action: str, detail: str = ""):
        super().__init__(detail or f"Cannot {action} an appointment that is {current_state}")
        self.current_state = current_state
        self.action = action


class NotAuthorized(BookingError):
    code = "not_authorized"
    status_code = 403


class NotFound(BookingError):
    code = "not_found"
    status_code = 404


class StoreConflict(Exception):
    """Raised by a store when a write loses to a concurrent writer."""
