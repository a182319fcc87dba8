"""Enumerations shared by the booking models."""

from enum import Enum


class AppointmentStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    COMPLETED = "COMPLETED"
    CANCELED_BY_PROVIDER = "CANCELED_BY_PROVIDER"
    CANCELED_BY_PATIENT = "CANCELED_BY_PATIENT"
    # Legacy rows only; a successful reschedule keeps the record SCHEDULED.
    RESCHEDULED = "RESCHEDULED"


ACTIVE_STATUSES = (AppointmentStatus.SCHEDULED.value, AppointmentStatus.RESCHEDULED.value)
CANCELED_STATUSES = (
    AppointmentStatus.CANCELED_BY_PROVIDER.value,
    AppointmentStatus.CANCELED_BY_PATIENT.value,
)


class AppointmentType(str, Enum):
    IN_PERSON = "IN_PERSON"
    ONLINE = "ONLINE"
    HOME_VISIT = "HOME_VISIT"


class PaymentMethod(str, Enum):
    PACKAGE_REDEMPTION = "PACKAGE_REDEMPTION"
    CASH = "CASH"
    INSURANCE = "INSURANCE"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    SETTLED = "SETTLED"
    REFUNDED = "REFUNDED"


class Role(str, Enum):
    PROVIDER = "PROVIDER"
    CONSUMER = "CONSUMER"
