"""Appointment service - the booking state machine.

Handles:
- Booking with conflict guard, price snapshot and package redemption
- Completion with on-site payment settlement
- Cancellation with package credit refund
- Reschedule of the same record to a new, conflict-free range
- Paginated appointment history for providers and consumers

Every transition runs under the provider lock and commits once, so the
appointment row and any credit movement land together or not at all.
Events are published after the commit and never fail the operation.
"""

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import NamedTuple

from sqlalchemy.orm import Session

from booking_engine.core import config
from booking_engine.core.errors import (
    Forbidden,
    InvalidStateTransition,
    InvalidTimeRange,
    NotFound,
    SlotUnavailable,
)
from booking_engine.database import provider_lock
from booking_engine.models.appointment import Appointment
from booking_engine.models.enums import (
    ACTIVE_STATUSES,
    AppointmentStatus,
    AppointmentType,
    PaymentMethod,
    PaymentStatus,
    Role,
)
from booking_engine.services.catalog_client import CatalogClient
from booking_engine.services.conflict_service import has_conflict
from booking_engine.services.event_publisher import AppointmentEventType, EventPublisher
from booking_engine.services.payment_policies import BookingCharge, get_policy

logger = logging.getLogger(__name__)


# =============================================================================
# Types
# =============================================================================

class BookingRequest(NamedTuple):
    """What a consumer asks for when booking."""
    provider_id: int
    service_id: int
    start_time: datetime
    payment_method: PaymentMethod
    appointment_type: AppointmentType = AppointmentType.IN_PERSON
    patient_symptoms: str | None = None


class AppointmentPage(NamedTuple):
    items: list[Appointment]
    total: int
    page: int
    size: int


# =============================================================================
# Helpers
# =============================================================================

def get_appointment(db: Session, appointment_id: int) -> Appointment:
    appointment = db.get(Appointment, appointment_id)
    if appointment is None:
        raise NotFound('Appointment not found.')
    return appointment


def _ensure_owner(appointment: Appointment, user_id: int, role: Role) -> None:
    if role == Role.PROVIDER and appointment.provider_id == user_id:
        return
    if role == Role.CONSUMER and appointment.consumer_id == user_id:
        return
    raise Forbidden('You are not allowed to manage this appointment.')


def _ensure_active(appointment: Appointment) -> None:
    if appointment.status not in ACTIVE_STATUSES:
        raise InvalidStateTransition(f'Cannot change an appointment with status {appointment.status}.')


def get_appointment_for(db: Session, user_id: int, role: Role, appointment_id: int) -> Appointment:
    appointment = get_appointment(db, appointment_id)
    _ensure_owner(appointment, user_id, Role(role))
    return appointment


# =============================================================================
# Transitions
# =============================================================================

def create_appointment(
    db: Session,
    consumer_id: int,
    request: BookingRequest,
    catalog: CatalogClient,
    publisher: EventPublisher,
) -> Appointment:
    logger.info('Booking request from consumer %s for provider %s', consumer_id, request.provider_id)

    service = catalog.get_service(request.service_id)
    start_time = request.start_time
    end_time = start_time + timedelta(minutes=service.duration_minutes)
    policy = get_policy(request.payment_method)

    with provider_lock(db, request.provider_id):
        if has_conflict(db, request.provider_id, start_time, end_time):
            logger.warning('Slot %s - %s is taken for provider %s', start_time, end_time, request.provider_id)
            raise SlotUnavailable('The selected time is no longer available. Please choose another one.')

        settlement = policy.settle(
            db,
            BookingCharge(consumer_id, request.provider_id, request.service_id, service.price),
        )

        appointment = Appointment(
            provider_id=request.provider_id,
            consumer_id=consumer_id,
            service_id=request.service_id,
            service_name_snapshot=service.name,
            total_price=service.price,
            currency=service.currency,
            start_time=start_time,
            end_time=end_time,
            appointment_type=AppointmentType(request.appointment_type).value,
            status=AppointmentStatus.SCHEDULED.value,
            payment_method=PaymentMethod(request.payment_method).value,
            payment_status=settlement.payment_status.value,
            amount_paid=settlement.amount_paid,
            consumer_package_balance_id=settlement.balance_id,
            patient_symptoms=request.patient_symptoms,
        )
        db.add(appointment)
        db.commit()

    db.refresh(appointment)
    logger.info('Appointment %s scheduled for provider %s', appointment.id, appointment.provider_id)
    publisher.publish(AppointmentEventType.CREATED, appointment)
    return appointment


def complete_appointment(
    db: Session,
    user_id: int,
    role: Role,
    appointment_id: int,
    publisher: EventPublisher,
    private_notes: str | None = None,
) -> Appointment:
    appointment = get_appointment(db, appointment_id)
    if Role(role) != Role.PROVIDER or appointment.provider_id != user_id:
        raise Forbidden('Only the provider of this appointment can complete it.')

    with provider_lock(db, appointment.provider_id):
        db.refresh(appointment)
        _ensure_active(appointment)

        appointment.status = AppointmentStatus.COMPLETED.value
        if private_notes is not None:
            appointment.private_notes = private_notes
        # On-site payments are assumed collected by the time the visit ends
        if appointment.payment_status == PaymentStatus.PENDING.value:
            appointment.payment_status = PaymentStatus.SETTLED.value
            appointment.amount_paid = appointment.total_price
        db.commit()

    db.refresh(appointment)
    logger.info('Appointment %s completed by provider %s', appointment.id, user_id)
    publisher.publish(AppointmentEventType.COMPLETED, appointment)
    return appointment


def cancel_appointment(
    db: Session,
    user_id: int,
    role: Role,
    appointment_id: int,
    publisher: EventPublisher,
    reason: str | None = None,
) -> Appointment:
    role = Role(role)
    appointment = get_appointment(db, appointment_id)
    _ensure_owner(appointment, user_id, role)

    with provider_lock(db, appointment.provider_id):
        db.refresh(appointment)
        _ensure_active(appointment)

        released_status = get_policy(appointment.payment_method).release(db, appointment)
        if released_status is not None:
            appointment.payment_status = released_status.value

        if role == Role.PROVIDER:
            appointment.status = AppointmentStatus.CANCELED_BY_PROVIDER.value
        else:
            appointment.status = AppointmentStatus.CANCELED_BY_PATIENT.value
        appointment.cancellation_reason = reason
        db.commit()

    db.refresh(appointment)
    logger.info('Appointment %s canceled by %s %s', appointment.id, role.value.lower(), user_id)
    publisher.publish(AppointmentEventType.CANCELED, appointment)
    return appointment


def reschedule_appointment(
    db: Session,
    user_id: int,
    role: Role,
    appointment_id: int,
    new_start_time: datetime,
    publisher: EventPublisher,
    now: datetime | None = None,
) -> Appointment:
    appointment = get_appointment(db, appointment_id)
    _ensure_owner(appointment, user_id, Role(role))

    with provider_lock(db, appointment.provider_id):
        db.refresh(appointment)
        _ensure_active(appointment)

        duration = appointment.end_time - appointment.start_time
        if duration <= timedelta(0):
            raise InvalidTimeRange('Appointment has no duration to move.')
        new_end_time = new_start_time + duration

        if has_conflict(db, appointment.provider_id, new_start_time, new_end_time,
                        exclude_appointment_id=appointment.id):
            logger.warning('Reschedule of appointment %s to %s rejected: slot taken', appointment.id, new_start_time)
            raise SlotUnavailable('The new time is not available.')

        appointment.previous_start_time = appointment.start_time
        appointment.start_time = new_start_time
        appointment.end_time = new_end_time
        appointment.reschedule_count = (appointment.reschedule_count or 0) + 1
        appointment.rescheduled_at = now or datetime.now()
        appointment.status = AppointmentStatus.SCHEDULED.value
        db.commit()

    db.refresh(appointment)
    logger.info('Appointment %s moved to %s', appointment.id, appointment.start_time)
    publisher.publish(AppointmentEventType.RESCHEDULED, appointment)
    return appointment


# =============================================================================
# History
# =============================================================================

def list_appointments(
    db: Session,
    user_id: int,
    is_provider: bool,
    page: int = 0,
    size: int | None = None,
) -> AppointmentPage:
    size = size or config.DEFAULT_PAGE_SIZE
    size = max(1, min(size, config.MAX_PAGE_SIZE))
    page = max(0, page)

    owner_column = Appointment.provider_id if is_provider else Appointment.consumer_id
    query = db.query(Appointment).filter(owner_column == user_id)
    total = query.count()
    items = query.order_by(Appointment.start_time.desc(), Appointment.id.desc()).offset(page * size).limit(size).all()
    return AppointmentPage(items=items, total=total, page=page, size=size)


def amount_due(appointment: Appointment) -> Decimal:
    return Decimal(appointment.total_price) - Decimal(appointment.amount_paid or 0)
