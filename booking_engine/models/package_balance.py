"""Prepaid package balance model definitions."""

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, func

from booking_engine.database import Base


class PackageBalance(Base):
    """Remaining prepaid credits of a consumer for one provider service."""
    __tablename__ = "consumer_package_balances"
    __table_args__ = (
        CheckConstraint("remaining_credits >= 0", name="ck_cpb_remaining_non_negative"),
    )

    id = Column(Integer, primary_key=True)
    consumer_id = Column(Integer, nullable=False, index=True)
    provider_id = Column(Integer, nullable=False, index=True)
    service_id = Column(Integer, nullable=False)
    package_id_snapshot = Column(Integer)
    remaining_credits = Column(Integer, nullable=False, default=0)
    expires_at = Column(DateTime)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
