"""Availability slot computation.

Slots form a fixed grid per working day: they start at the day's opening time
and step by exactly the requested duration. A slot is dropped when it touches
the day's break, a time block, or a non-canceled appointment, and the grid
keeps stepping from where it was (no backfilling of the freed gap).
"""

from datetime import date, datetime, time, timedelta
from typing import Iterator, NamedTuple

from sqlalchemy.orm import Session

from booking_engine.core.errors import InvalidTimeRange
from booking_engine.models.schedule import OperatingHours
from booking_engine.services.conflict_service import Commitment, load_commitments, overlaps, overlaps_any
from booking_engine.services.schedule_service import get_operating_hours


class DateRange(NamedTuple):
    """Inclusive range of calendar dates."""
    start: date
    end: date

    def days(self) -> Iterator[date]:
        current = self.start
        while current <= self.end:
            yield current
            current += timedelta(days=1)


def is_during_break(slot_start: datetime, slot_end: datetime, hours: OperatingHours) -> bool:
    if hours.break_start is None or hours.break_end is None:
        return False

    break_start = datetime.combine(slot_start.date(), hours.break_start)
    break_end = datetime.combine(slot_start.date(), hours.break_end)
    return overlaps(slot_start, slot_end, break_start, break_end)


def iterate_day_slots(
    slot_date: date,
    hours: OperatingHours,
    duration_minutes: int,
    commitments: list[Commitment],
) -> Iterator[datetime]:
    if duration_minutes <= 0:
        return

    step = timedelta(minutes=duration_minutes)
    slot_start = datetime.combine(slot_date, hours.start_time)
    day_end = datetime.combine(slot_date, hours.end_time)

    while slot_start + step <= day_end:
        slot_end = slot_start + step
        if not is_during_break(slot_start, slot_end, hours) and not overlaps_any(slot_start, slot_end, commitments):
            yield slot_start
        slot_start += step


class AvailableSlots:
    """Lazy, restartable sequence of bookable start times.

    Schedule and commitments are read once when the object is built; each
    iteration replays the grid over that snapshot.
    """

    def __init__(
        self,
        date_range: DateRange,
        duration_minutes: int,
        hours_by_day: dict[int, OperatingHours],
        commitments: list[Commitment],
    ):
        self.date_range = date_range
        self.duration_minutes = duration_minutes
        self.hours_by_day = hours_by_day
        self.commitments = commitments

    def __iter__(self) -> Iterator[datetime]:
        for slot_date in self.date_range.days():
            hours = self.hours_by_day.get(slot_date.weekday())
            if hours is None:
                continue
            yield from iterate_day_slots(slot_date, hours, self.duration_minutes, self.commitments)


def compute_slots(db: Session, provider_id: int, date_range: DateRange, duration_minutes: int) -> AvailableSlots:
    if date_range.end < date_range.start:
        raise InvalidTimeRange('End date must not be before start date.')

    hours_by_day = {hours.day_of_week: hours for hours in get_operating_hours(db, provider_id)}
    for hours in hours_by_day.values():
        db.expunge(hours)

    range_start = datetime.combine(date_range.start, time.min)
    range_end = datetime.combine(date_range.end + timedelta(days=1), time.min)
    commitments = load_commitments(db, provider_id, range_start, range_end) if hours_by_day else []

    return AvailableSlots(date_range, duration_minutes, hours_by_day, commitments)
