# barberbook/core/policy.py

import logging
from datetime import datetime, timedelta
from typing import Optional

from .domain import ActorRole, Appointment, CancellationReason
from .errors import PolicyViolation

logger = logging.getLogger(__name__)


class CancellationPolicy:
    """Who may cancel, and until when.

    Customers are held to the shop's cutoff window; providers, shop staff
    and the system may always cancel but have to say why.
    """

    def can_cancel(
        self,
        appointment: Appointment,
        actor_role: ActorRole,
        now: datetime,
        cutoff_hours: int,
        reason: Optional[CancellationReason] = None,
    ) -> bool:
        if actor_role == ActorRole.customer:
            deadline = appointment.starts_at - timedelta(hours=cutoff_hours)
            if now > deadline:
                logger.info(
                    "Customer cancellation of appointment %s refused: %sh cutoff passed at %s",
                    appointment.id, cutoff_hours, deadline,
                )
                raise PolicyViolation(
                    f"Appointments can only be cancelled at least {cutoff_hours} hours in advance"
                )
            return True

        if not reason:
            raise PolicyViolation(f"A cancellation reason is required when cancelling as {actor_role.value}")
        return True

