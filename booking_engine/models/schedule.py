"""Provider schedule model definitions."""

from sqlalchemy import Column, DateTime, Integer, String, Time, UniqueConstraint, func

from booking_engine.database import Base


class ProviderScheduleVersion(Base):
    """Points at the live version of a provider's weekly schedule."""
    __tablename__ = "provider_schedule_versions"

    provider_id = Column(Integer, primary_key=True)
    version = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class OperatingHours(Base):
    """Working hours of a provider for one day of the week (0=Monday)."""
    __tablename__ = "provider_schedules"
    __table_args__ = (
        UniqueConstraint("provider_id", "version", "day_of_week", name="uq_schedule_provider_version_day"),
    )

    id = Column(Integer, primary_key=True)
    provider_id = Column(Integer, nullable=False, index=True)
    version = Column(Integer, nullable=False)
    day_of_week = Column(Integer, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    break_start = Column(Time)
    break_end = Column(Time)


class TimeBlock(Base):
    """Ad-hoc unavailability declared by a provider (vacations, errands)."""
    __tablename__ = "time_blocks"

    id = Column(Integer, primary_key=True)
    provider_id = Column(Integer, nullable=False, index=True)
    start_datetime = Column(DateTime, nullable=False)
    end_datetime = Column(DateTime, nullable=False)
    reason = Column(String)
