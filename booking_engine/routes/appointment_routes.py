from datetime import datetime
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from booking_engine.auth.dependencies import Principal, get_current_user, require_consumer, require_provider
from booking_engine.core import config
from booking_engine.models.appointment import Appointment
from booking_engine.models.enums import AppointmentType, PaymentMethod
from booking_engine.routes.calendar_routes import DATABASE_UNAVAILABLE, ensure_database_ready, get_db, to_wall_clock
from booking_engine.services import appointment_service, ledger_service
from booking_engine.services.catalog_client import CatalogClient, get_catalog_client
from booking_engine.services.event_publisher import EventPublisher, get_event_publisher

router = APIRouter(tags=['appointments'])

MAX_NOTES_LENGTH = 2000
DEFAULT_CANCELLATION_REASON = 'No specific reason'


def _normalize_notes(value: str | None) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    if not normalized:
        return None

    if len(normalized) > MAX_NOTES_LENGTH:
        raise ValueError(f'Notes must be {MAX_NOTES_LENGTH} characters or fewer.')

    return normalized


class CreateAppointmentRequest(BaseModel):
    provider_id: int
    service_id: int
    start_time: datetime
    payment_method: PaymentMethod
    appointment_type: AppointmentType = AppointmentType.IN_PERSON
    patient_symptoms: str | None = None

    @field_validator('start_time')
    @classmethod
    def normalize_start_time(cls, value: datetime) -> datetime:
        return to_wall_clock(value)

    @field_validator('payment_method', 'appointment_type', mode='before')
    @classmethod
    def normalize_enum_value(cls, value):
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator('patient_symptoms')
    @classmethod
    def validate_symptoms(cls, value: str | None) -> str | None:
        return _normalize_notes(value)

    def to_booking_request(self) -> appointment_service.BookingRequest:
        return appointment_service.BookingRequest(
            provider_id=self.provider_id,
            service_id=self.service_id,
            start_time=self.start_time,
            payment_method=self.payment_method,
            appointment_type=self.appointment_type,
            patient_symptoms=self.patient_symptoms,
        )


class CompleteAppointmentRequest(BaseModel):
    private_notes: str | None = None

    @field_validator('private_notes')
    @classmethod
    def validate_private_notes(cls, value: str | None) -> str | None:
        return _normalize_notes(value)


class RescheduleRequest(BaseModel):
    new_start_time: datetime

    @field_validator('new_start_time')
    @classmethod
    def normalize_new_start_time(cls, value: datetime) -> datetime:
        return to_wall_clock(value)


class AppointmentResponse(BaseModel):
    id: int
    provider_id: int
    consumer_id: int
    service_id: int
    service_name: str
    price: Decimal
    currency: str | None = None
    start_time: datetime
    end_time: datetime
    duration_minutes: int
    status: str
    type: str
    payment_method: str
    payment_status: str
    amount_paid: Decimal
    amount_due: Decimal
    patient_symptoms: str | None = None
    cancellation_reason: str | None = None
    reschedule_count: int = 0
    previous_start_time: datetime | None = None


class AppointmentPageResponse(BaseModel):
    items: list[AppointmentResponse]
    total: int
    page: int
    size: int


class PackageBalanceResponse(BaseModel):
    id: int
    provider_id: int
    service_id: int
    remaining_credits: int
    expires_at: datetime | None = None

    class Config:
        from_attributes = True


def to_response(appointment: Appointment) -> AppointmentResponse:
    return AppointmentResponse(
        id=appointment.id,
        provider_id=appointment.provider_id,
        consumer_id=appointment.consumer_id,
        service_id=appointment.service_id,
        service_name=appointment.service_name_snapshot,
        price=appointment.total_price,
        currency=appointment.currency,
        start_time=appointment.start_time,
        end_time=appointment.end_time,
        duration_minutes=appointment.duration_minutes,
        status=appointment.status,
        type=appointment.appointment_type,
        payment_method=appointment.payment_method,
        payment_status=appointment.payment_status,
        amount_paid=appointment.amount_paid,
        amount_due=appointment_service.amount_due(appointment),
        patient_symptoms=appointment.patient_symptoms,
        cancellation_reason=appointment.cancellation_reason,
        reschedule_count=appointment.reschedule_count or 0,
        previous_start_time=appointment.previous_start_time,
    )


def _page_response(page: appointment_service.AppointmentPage) -> AppointmentPageResponse:
    return AppointmentPageResponse(
        items=[to_response(appointment) for appointment in page.items],
        total=page.total,
        page=page.page,
        size=page.size,
    )


@router.post('/book', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    current_user: Principal = Depends(require_consumer),
    db: Session = Depends(get_db),
    catalog: CatalogClient = Depends(get_catalog_client),
    publisher: EventPublisher = Depends(get_event_publisher),
):
    ensure_database_ready()

    try:
        appointment = appointment_service.create_appointment(
            db,
            current_user.user_id,
            data.to_booking_request(),
            catalog,
            publisher,
        )
        return to_response(appointment)
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc


@router.get('/consumer', response_model=AppointmentPageResponse)
def list_consumer_appointments(
    page: int = Query(default=0, ge=0),
    size: int = Query(default=config.DEFAULT_PAGE_SIZE, ge=1, le=config.MAX_PAGE_SIZE),
    current_user: Principal = Depends(require_consumer),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return _page_response(appointment_service.list_appointments(db, current_user.user_id, False, page, size))
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc


@router.get('/provider', response_model=AppointmentPageResponse)
def list_provider_appointments(
    page: int = Query(default=0, ge=0),
    size: int = Query(default=config.DEFAULT_PAGE_SIZE, ge=1, le=config.MAX_PAGE_SIZE),
    current_user: Principal = Depends(require_provider),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return _page_response(appointment_service.list_appointments(db, current_user.user_id, True, page, size))
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc


@router.get('/packages', response_model=list[PackageBalanceResponse])
def list_my_packages(
    current_user: Principal = Depends(require_consumer),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return ledger_service.list_balances(db, current_user.user_id)
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc


@router.get('/{appointment_id}', response_model=AppointmentResponse)
def get_appointment(
    appointment_id: int,
    current_user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = appointment_service.get_appointment_for(
            db, current_user.user_id, current_user.role, appointment_id
        )
        return to_response(appointment)
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc


@router.put('/{appointment_id}/complete', response_model=AppointmentResponse)
def complete_appointment(
    appointment_id: int,
    data: CompleteAppointmentRequest,
    current_user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
    publisher: EventPublisher = Depends(get_event_publisher),
):
    ensure_database_ready()

    try:
        appointment = appointment_service.complete_appointment(
            db,
            current_user.user_id,
            current_user.role,
            appointment_id,
            publisher,
            private_notes=data.private_notes,
        )
        return to_response(appointment)
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc


@router.put('/{appointment_id}/cancel', response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: int,
    reason: str = Query(default=DEFAULT_CANCELLATION_REASON, max_length=MAX_NOTES_LENGTH),
    current_user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
    publisher: EventPublisher = Depends(get_event_publisher),
):
    ensure_database_ready()

    try:
        appointment = appointment_service.cancel_appointment(
            db,
            current_user.user_id,
            current_user.role,
            appointment_id,
            publisher,
            reason=reason.strip() or DEFAULT_CANCELLATION_REASON,
        )
        return to_response(appointment)
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc


@router.put('/{appointment_id}/reschedule', response_model=AppointmentResponse)
def reschedule_appointment(
    appointment_id: int,
    data: RescheduleRequest,
    current_user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
    publisher: EventPublisher = Depends(get_event_publisher),
):
    ensure_database_ready()

    try:
        appointment = appointment_service.reschedule_appointment(
            db,
            current_user.user_id,
            current_user.role,
            appointment_id,
            data.new_start_time,
            publisher,
        )
        return to_response(appointment)
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc
