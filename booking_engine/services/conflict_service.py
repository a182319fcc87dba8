"""Conflict detection shared by slot generation and the booking guards."""

from datetime import datetime
from typing import Iterable, NamedTuple

from sqlalchemy.orm import Session

from booking_engine.models.appointment import Appointment
from booking_engine.models.enums import CANCELED_STATUSES
from booking_engine.models.schedule import TimeBlock


class Commitment(NamedTuple):
    """A busy range on a provider's calendar."""
    start: datetime
    end: datetime
    source: str
    source_id: int


def overlaps(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    return start_a < end_b and end_a > start_b


def overlaps_any(start: datetime, end: datetime, commitments: Iterable[Commitment]) -> bool:
    return any(overlaps(start, end, commitment.start, commitment.end) for commitment in commitments)


def load_commitments(
    db: Session,
    provider_id: int,
    range_start: datetime,
    range_end: datetime,
    exclude_appointment_id: int | None = None,
) -> list[Commitment]:
    """Load every non-canceled appointment and time block touching the range."""
    appointment_query = db.query(Appointment.id, Appointment.start_time, Appointment.end_time).filter(
        Appointment.provider_id == provider_id,
        Appointment.status.notin_(CANCELED_STATUSES),
        Appointment.start_time < range_end,
        Appointment.end_time > range_start,
    )
    if exclude_appointment_id is not None:
        appointment_query = appointment_query.filter(Appointment.id != exclude_appointment_id)

    blocks = db.query(TimeBlock.id, TimeBlock.start_datetime, TimeBlock.end_datetime).filter(
        TimeBlock.provider_id == provider_id,
        TimeBlock.start_datetime < range_end,
        TimeBlock.end_datetime > range_start,
    ).all()

    commitments = [
        Commitment(start=start, end=end, source='appointment', source_id=appointment_id)
        for appointment_id, start, end in appointment_query.all()
    ]
    commitments.extend(
        Commitment(start=start, end=end, source='block', source_id=block_id)
        for block_id, start, end in blocks
    )
    return commitments


def has_conflict(
    db: Session,
    provider_id: int,
    start: datetime,
    end: datetime,
    exclude_appointment_id: int | None = None,
) -> bool:
    commitments = load_commitments(db, provider_id, start, end, exclude_appointment_id=exclude_appointment_id)
    return overlaps_any(start, end, commitments)
