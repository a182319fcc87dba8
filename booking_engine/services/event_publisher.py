"""Best-effort publication of appointment domain events."""

import logging
from datetime import datetime
from enum import Enum

import httpx
from pydantic import BaseModel

from booking_engine.core import config
from booking_engine.models.appointment import Appointment

logger = logging.getLogger(__name__)


class AppointmentEventType(str, Enum):
    CREATED = "APPOINTMENT_CREATED"
    COMPLETED = "APPOINTMENT_COMPLETED"
    CANCELED = "APPOINTMENT_CANCELED"
    RESCHEDULED = "APPOINTMENT_RESCHEDULED"


class AppointmentEvent(BaseModel):
    appointment_id: int
    provider_id: int
    consumer_id: int
    event_type: AppointmentEventType
    status: str
    start_time: datetime
    end_time: datetime
    timestamp: datetime


class EventPublisher:
    """Logs every event and forwards it to a webhook when one is configured.

    Publishing never raises: a booking must not fail because a notification
    could not be delivered.
    """

    def __init__(
        self,
        webhook_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.webhook_url = config.EVENTS_WEBHOOK_URL if webhook_url is None else webhook_url
        self.timeout = timeout if timeout is not None else config.EVENTS_TIMEOUT_SECONDS
        self.transport = transport

    def build_event(self, event_type: AppointmentEventType, appointment: Appointment) -> AppointmentEvent:
        return AppointmentEvent(
            appointment_id=appointment.id,
            provider_id=appointment.provider_id,
            consumer_id=appointment.consumer_id,
            event_type=event_type,
            status=appointment.status,
            start_time=appointment.start_time,
            end_time=appointment.end_time,
            timestamp=datetime.now(),
        )

    def publish(self, event_type: AppointmentEventType, appointment: Appointment) -> bool:
        try:
            event = self.build_event(event_type, appointment)
            logger.info('Appointment event %s for appointment %s', event.event_type.value, event.appointment_id)
            if not self.webhook_url:
                return True

            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(self.webhook_url, content=event.model_dump_json(),
                                       headers={'Content-Type': 'application/json'})
                response.raise_for_status()
            return True
        except Exception:
            logger.exception('Failed to publish %s for appointment %s', event_type, getattr(appointment, 'id', None))
            return False


def get_event_publisher() -> EventPublisher:
    return EventPublisher()
