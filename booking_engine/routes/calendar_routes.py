from datetime import date, datetime, time

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator, model_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from booking_engine.auth.dependencies import Principal, require_provider
from booking_engine.core import config
from booking_engine.database import SessionLocal, ensure_booking_schema
from booking_engine.services import availability_service, schedule_service

router = APIRouter(tags=['calendar'])

MAX_AVAILABILITY_RANGE_DAYS = 62
MAX_BLOCK_REASON_LENGTH = 200
DATABASE_UNAVAILABLE = 'Database unavailable. Verify DATABASE_URL and database credentials.'


def to_wall_clock(value: datetime) -> datetime:
    # Calendars are kept in the provider's local wall-clock time
    return value.replace(tzinfo=None, microsecond=0)


class OperatingHoursRequest(BaseModel):
    day_of_week: int
    start_time: time
    end_time: time
    break_start: time | None = None
    break_end: time | None = None

    def to_day_hours(self) -> schedule_service.DayHours:
        return schedule_service.DayHours(
            day_of_week=self.day_of_week,
            start_time=self.start_time,
            end_time=self.end_time,
            break_start=self.break_start,
            break_end=self.break_end,
        )


class OperatingHoursResponse(BaseModel):
    day_of_week: int
    start_time: time
    end_time: time
    break_start: time | None = None
    break_end: time | None = None

    class Config:
        from_attributes = True


class CreateTimeBlockRequest(BaseModel):
    start_datetime: datetime
    end_datetime: datetime
    reason: str | None = None

    @field_validator('start_datetime', 'end_datetime')
    @classmethod
    def normalize_datetimes(cls, value: datetime) -> datetime:
        return to_wall_clock(value)

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > MAX_BLOCK_REASON_LENGTH:
            raise ValueError(f'Reason must be {MAX_BLOCK_REASON_LENGTH} characters or fewer.')

        return normalized


class TimeBlockResponse(BaseModel):
    id: int
    provider_id: int
    start_datetime: datetime
    end_datetime: datetime
    reason: str | None = None

    class Config:
        from_attributes = True


class AvailabilityQuery(BaseModel):
    start: date
    end: date
    duration: int

    @model_validator(mode='after')
    def validate_range(self) -> 'AvailabilityQuery':
        if (self.end - self.start).days > MAX_AVAILABILITY_RANGE_DAYS:
            raise ValueError(f'Availability can be requested for at most {MAX_AVAILABILITY_RANGE_DAYS} days.')
        return self


def ensure_database_ready() -> None:
    try:
        ensure_booking_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@router.get('/availability/provider/{provider_id}', response_model=list[datetime])
def get_availability(
    provider_id: int,
    start: date = Query(...),
    end: date = Query(...),
    duration: int = Query(default=config.DEFAULT_SLOT_DURATION_MINUTES, ge=1, le=24 * 60),
    db: Session = Depends(get_db),
):
    try:
        query = AvailabilityQuery(start=start, end=end, duration=duration)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    ensure_database_ready()

    try:
        slots = availability_service.compute_slots(
            db,
            provider_id,
            availability_service.DateRange(query.start, query.end),
            query.duration,
        )
        return list(slots)
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc


@router.get('/schedule', response_model=list[OperatingHoursResponse])
def get_my_schedule(
    current_user: Principal = Depends(require_provider),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return schedule_service.get_operating_hours(db, current_user.user_id)
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc


@router.put('/schedule', response_model=list[OperatingHoursResponse])
def update_schedule(
    data: list[OperatingHoursRequest],
    current_user: Principal = Depends(require_provider),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return schedule_service.replace_operating_hours(
            db,
            current_user.user_id,
            [entry.to_day_hours() for entry in data],
        )
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc


@router.get('/blocks', response_model=list[TimeBlockResponse])
def list_blocks(
    start: datetime | None = Query(default=None),
    end: datetime | None = Query(default=None),
    current_user: Principal = Depends(require_provider),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return schedule_service.list_time_blocks(db, current_user.user_id, start, end)
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc


@router.post('/blocks', response_model=TimeBlockResponse, status_code=status.HTTP_201_CREATED)
def create_block(
    data: CreateTimeBlockRequest,
    current_user: Principal = Depends(require_provider),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return schedule_service.create_time_block(
            db,
            current_user.user_id,
            data.start_datetime,
            data.end_datetime,
            data.reason,
        )
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc


@router.delete('/blocks/{block_id}', status_code=status.HTTP_204_NO_CONTENT)
def remove_block(
    block_id: int,
    current_user: Principal = Depends(require_provider),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        schedule_service.delete_time_block(db, current_user.user_id, block_id)
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc
