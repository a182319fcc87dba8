"""Appointment model definitions."""

from sqlalchemy import Column, DateTime, Integer, Numeric, String, Text, func

from booking_engine.database import Base
from booking_engine.models.enums import AppointmentStatus, AppointmentType, PaymentStatus


class Appointment(Base):
    """A booked appointment with a frozen snapshot of the service it was booked for."""
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True)
    provider_id = Column(Integer, nullable=False, index=True)
    consumer_id = Column(Integer, nullable=False, index=True)
    service_id = Column(Integer, nullable=False)

    # Snapshot, never re-read from the catalog after booking
    service_name_snapshot = Column(String, nullable=False)
    total_price = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3))

    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    appointment_type = Column(String, nullable=False, default=AppointmentType.IN_PERSON.value)
    status = Column(String, nullable=False, default=AppointmentStatus.SCHEDULED.value, index=True)
    cancellation_reason = Column(String)

    payment_method = Column(String, nullable=False)
    payment_status = Column(String, nullable=False, default=PaymentStatus.PENDING.value)
    amount_paid = Column(Numeric(10, 2), nullable=False, default=0)
    consumer_package_balance_id = Column(Integer)

    patient_symptoms = Column(Text)
    private_notes = Column(Text)

    reschedule_count = Column(Integer, nullable=False, default=0)
    previous_start_time = Column(DateTime)
    rescheduled_at = Column(DateTime)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    @property
    def duration_minutes(self) -> int:
        return int((self.end_time - self.start_time).total_seconds() // 60)
