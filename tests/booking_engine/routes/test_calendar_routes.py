from datetime import date, datetime, time, timedelta, timezone

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from booking_engine.auth.dependencies import Principal
from booking_engine.core.errors import InvalidTimeRange
from booking_engine.models.enums import Role
from booking_engine.routes import calendar_routes
from booking_engine.routes.calendar_routes import (
    CreateTimeBlockRequest,
    OperatingHoursRequest,
    create_block,
    get_availability,
    get_my_schedule,
    list_blocks,
    remove_block,
    to_wall_clock,
    update_schedule,
)

PROVIDER = Principal(user_id=1, role=Role.PROVIDER)


@pytest.fixture(autouse=True)
def skip_schema_check(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(calendar_routes, 'ensure_booking_schema', lambda: None)


def test_to_wall_clock_drops_timezone_and_microseconds() -> None:
    value = datetime(2026, 1, 5, 9, 0, 30, 1234, tzinfo=timezone(timedelta(hours=-6)))

    assert to_wall_clock(value) == datetime(2026, 1, 5, 9, 0, 30)


def test_create_time_block_request_normalizes_fields() -> None:
    request = CreateTimeBlockRequest(
        start_datetime='2026-01-05T09:00:00-06:00',
        end_datetime='2026-01-05T10:00:00-06:00',
        reason='  Conference  ',
    )

    assert request.start_datetime == datetime(2026, 1, 5, 9, 0)
    assert request.reason == 'Conference'


def test_create_time_block_request_rejects_long_reason() -> None:
    with pytest.raises(ValidationError):
        CreateTimeBlockRequest(
            start_datetime=datetime(2026, 1, 5, 9, 0),
            end_datetime=datetime(2026, 1, 5, 10, 0),
            reason='x' * 201,
        )


def test_update_schedule_then_query_availability(db) -> None:
    update_schedule(
        [
            OperatingHoursRequest(
                day_of_week=0,
                start_time=time(9, 0),
                end_time=time(12, 0),
                break_start=time(10, 0),
                break_end=time(10, 30),
            ),
        ],
        current_user=PROVIDER,
        db=db,
    )

    schedule = get_my_schedule(current_user=PROVIDER, db=db)
    slots = get_availability(1, start=date(2026, 1, 5), end=date(2026, 1, 5), duration=30, db=db)

    assert [entry.day_of_week for entry in schedule] == [0]
    assert slots == [
        datetime(2026, 1, 5, 9, 0),
        datetime(2026, 1, 5, 9, 30),
        datetime(2026, 1, 5, 10, 30),
        datetime(2026, 1, 5, 11, 0),
        datetime(2026, 1, 5, 11, 30),
    ]


def test_get_availability_rejects_oversized_ranges(db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_availability(1, start=date(2026, 1, 1), end=date(2026, 6, 1), duration=30, db=db)

    assert exception_info.value.status_code == 400


def test_get_availability_rejects_reversed_ranges(db) -> None:
    with pytest.raises(InvalidTimeRange):
        get_availability(1, start=date(2026, 1, 6), end=date(2026, 1, 5), duration=30, db=db)


def test_blocks_round_trip_through_routes(db) -> None:
    block = create_block(
        CreateTimeBlockRequest(
            start_datetime=datetime(2026, 1, 5, 9, 0),
            end_datetime=datetime(2026, 1, 5, 10, 0),
            reason='Conference',
        ),
        current_user=PROVIDER,
        db=db,
    )

    assert [item.id for item in list_blocks(start=None, end=None, current_user=PROVIDER, db=db)] == [block.id]

    remove_block(block.id, current_user=PROVIDER, db=db)

    assert list_blocks(start=None, end=None, current_user=PROVIDER, db=db) == []
