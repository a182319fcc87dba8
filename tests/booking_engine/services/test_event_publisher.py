import json
from datetime import datetime

import httpx

from booking_engine.models.appointment import Appointment
from booking_engine.services.event_publisher import AppointmentEventType, EventPublisher


def _appointment() -> Appointment:
    return Appointment(
        id=11,
        provider_id=1,
        consumer_id=7,
        status='SCHEDULED',
        start_time=datetime(2026, 1, 5, 10, 0),
        end_time=datetime(2026, 1, 5, 11, 0),
    )


def test_publish_without_webhook_only_logs() -> None:
    assert EventPublisher(webhook_url='').publish(AppointmentEventType.CREATED, _appointment()) is True


def test_publish_posts_event_to_webhook() -> None:
    received = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append(json.loads(request.content))
        return httpx.Response(202)

    publisher = EventPublisher(webhook_url='http://events.test/hook', transport=httpx.MockTransport(handler))

    assert publisher.publish(AppointmentEventType.CANCELED, _appointment()) is True
    assert received[0]['appointment_id'] == 11
    assert received[0]['provider_id'] == 1
    assert received[0]['consumer_id'] == 7
    assert received[0]['event_type'] == 'APPOINTMENT_CANCELED'
    assert received[0]['status'] == 'SCHEDULED'
    assert 'timestamp' in received[0]


def test_publish_swallows_delivery_failures() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError('connection refused', request=request)

    publisher = EventPublisher(webhook_url='http://events.test/hook', transport=httpx.MockTransport(handler))

    assert publisher.publish(AppointmentEventType.CREATED, _appointment()) is False


def test_publish_reports_rejected_events() -> None:
    publisher = EventPublisher(
        webhook_url='http://events.test/hook',
        transport=httpx.MockTransport(lambda request: httpx.Response(500)),
    )

    assert publisher.publish(AppointmentEventType.COMPLETED, _appointment()) is False
