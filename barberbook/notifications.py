# barberbook/notifications.py

import logging

from fastapi import BackgroundTasks

from .core.domain import Appointment
from .core.time_utils import format_minutes

logger = logging.getLogger(__name__)


class LoggingNotifier:
    """Default dispatcher: records booking events in the application log."""

    def notify(self, event: str, appointment: Appointment) -> None:
        logger.info(
            "Notify %s: appointment %s customer=%s barber=%s %s %s-%s",
            event,
            appointment.id,
            appointment.customer_id,
            appointment.provider_id,
            appointment.date,
            format_minutes(appointment.start),
            format_minutes(appointment.end),
        )


class BackgroundNotifier:
    """Defers delivery until after the response is sent."""

    def __init__(self, background_tasks: BackgroundTasks, delegate=None):
        self.background_tasks = background_tasks
        self.delegate = delegate or LoggingNotifier()

    def notify(self, event: str, appointment: Appointment) -> None:
        self.background_tasks.add_task(self._deliver, event, appointment.model_copy())

    def _deliver(self, event: str, appointment: Appointment) -> None:
        try:
            self.delegate.notify(event, appointment)
        except Exception:
            logger.exception("Failed to deliver %s notification for appointment %s", event, appointment.id)
