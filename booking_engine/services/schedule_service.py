"""Weekly operating hours and time blocks of a provider."""

import logging
from datetime import datetime, time
from typing import NamedTuple, Sequence

from sqlalchemy.orm import Session

from booking_engine.core.errors import Forbidden, InvalidSchedule, InvalidTimeRange, NotFound
from booking_engine.database import provider_lock
from booking_engine.models.schedule import OperatingHours, ProviderScheduleVersion, TimeBlock

logger = logging.getLogger(__name__)


class DayHours(NamedTuple):
    """Submitted working hours for one weekday (0=Monday ... 6=Sunday)."""
    day_of_week: int
    start_time: time
    end_time: time
    break_start: time | None = None
    break_end: time | None = None


def validate_day_hours(hours: DayHours) -> None:
    if not 0 <= hours.day_of_week <= 6:
        raise InvalidSchedule('day_of_week must be between 0 (Monday) and 6 (Sunday).')

    if hours.start_time >= hours.end_time:
        raise InvalidTimeRange('Operating hours must end after they start.')

    if (hours.break_start is None) != (hours.break_end is None):
        raise InvalidSchedule('break_start and break_end must be provided together.')

    if hours.break_start is not None:
        if hours.break_start >= hours.break_end:
            raise InvalidTimeRange('Break must end after it starts.')
        if hours.break_start < hours.start_time or hours.break_end > hours.end_time:
            raise InvalidSchedule('Break must lie within operating hours.')


def get_schedule_version(db: Session, provider_id: int) -> int:
    pointer = db.get(ProviderScheduleVersion, provider_id)
    return pointer.version if pointer else 0


def get_operating_hours(db: Session, provider_id: int) -> list[OperatingHours]:
    version = get_schedule_version(db, provider_id)
    if version == 0:
        return []

    return db.query(OperatingHours).filter(
        OperatingHours.provider_id == provider_id,
        OperatingHours.version == version,
    ).order_by(OperatingHours.day_of_week.asc()).all()


def replace_operating_hours(db: Session, provider_id: int, week: Sequence[DayHours]) -> list[OperatingHours]:
    """Swap the provider's whole week for ``week`` in a single transaction.

    The new rows are written under the next version before the pointer moves,
    so readers see either the old week or the new one, never a mix.
    """
    for hours in week:
        validate_day_hours(hours)

    days = [hours.day_of_week for hours in week]
    if len(days) != len(set(days)):
        raise InvalidSchedule('Each day of the week can only appear once.')

    with provider_lock(db, provider_id):
        pointer = db.get(ProviderScheduleVersion, provider_id)
        if pointer is None:
            pointer = ProviderScheduleVersion(provider_id=provider_id, version=0)
            db.add(pointer)
            db.flush()

        next_version = pointer.version + 1
        db.add_all(
            OperatingHours(
                provider_id=provider_id,
                version=next_version,
                day_of_week=hours.day_of_week,
                start_time=hours.start_time,
                end_time=hours.end_time,
                break_start=hours.break_start,
                break_end=hours.break_end,
            )
            for hours in week
        )
        pointer.version = next_version
        db.flush()

        db.query(OperatingHours).filter(
            OperatingHours.provider_id == provider_id,
            OperatingHours.version < next_version,
        ).delete(synchronize_session=False)
        db.commit()

    logger.info('Replaced weekly schedule for provider %s (version %s, %s days)', provider_id, next_version, len(week))
    return get_operating_hours(db, provider_id)


def create_time_block(
    db: Session,
    provider_id: int,
    start_datetime: datetime,
    end_datetime: datetime,
    reason: str | None = None,
) -> TimeBlock:
    if end_datetime <= start_datetime:
        raise InvalidTimeRange('Time block must end after it starts.')

    block = TimeBlock(
        provider_id=provider_id,
        start_datetime=start_datetime,
        end_datetime=end_datetime,
        reason=reason,
    )
    with provider_lock(db, provider_id):
        db.add(block)
        db.commit()
    db.refresh(block)

    logger.info('Created time block %s for provider %s', block.id, provider_id)
    return block


def delete_time_block(db: Session, provider_id: int, block_id: int) -> None:
    block = db.get(TimeBlock, block_id)
    if block is None:
        raise NotFound('Time block not found.')
    if block.provider_id != provider_id:
        raise Forbidden('Only the provider who owns this block can remove it.')

    with provider_lock(db, provider_id):
        db.delete(block)
        db.commit()


def list_time_blocks(
    db: Session,
    provider_id: int,
    range_start: datetime | None = None,
    range_end: datetime | None = None,
) -> list[TimeBlock]:
    query = db.query(TimeBlock).filter(TimeBlock.provider_id == provider_id)
    if range_start is not None:
        query = query.filter(TimeBlock.end_datetime > range_start)
    if range_end is not None:
        query = query.filter(TimeBlock.start_datetime < range_end)
    return query.order_by(TimeBlock.start_datetime.asc()).all()
