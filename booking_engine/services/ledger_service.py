"""Prepaid package credit ledger.

Neither operation commits. They run inside the caller's transaction so the
credit movement lands together with the appointment change that caused it.
"""

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from booking_engine.core.errors import NoCreditsAvailable, NotFound
from booking_engine.models.package_balance import PackageBalance

logger = logging.getLogger(__name__)


def _redeemable_query(db: Session, consumer_id: int, provider_id: int, service_id: int, now: datetime):
    return db.query(PackageBalance).filter(
        PackageBalance.consumer_id == consumer_id,
        PackageBalance.provider_id == provider_id,
        PackageBalance.service_id == service_id,
        PackageBalance.remaining_credits > 0,
        (PackageBalance.expires_at.is_(None)) | (PackageBalance.expires_at > now),
    ).order_by(
        # Earliest expiry first, never-expiring balances last
        PackageBalance.expires_at.is_(None).asc(),
        PackageBalance.expires_at.asc(),
        PackageBalance.id.asc(),
    )


def redeem(
    db: Session,
    consumer_id: int,
    provider_id: int,
    service_id: int,
    now: datetime | None = None,
) -> int:
    """Take one credit from the earliest-expiring eligible balance and return its id."""
    now = now or datetime.now()
    balance = _redeemable_query(db, consumer_id, provider_id, service_id, now).with_for_update().first()
    if balance is None:
        raise NoCreditsAvailable('No package credits are available for this service.')

    updated = db.query(PackageBalance).filter(
        PackageBalance.id == balance.id,
        PackageBalance.remaining_credits > 0,
    ).update(
        {PackageBalance.remaining_credits: PackageBalance.remaining_credits - 1},
        synchronize_session=False,
    )
    if updated != 1:
        raise NoCreditsAvailable('No package credits are available for this service.')

    db.expire(balance, ['remaining_credits'])
    logger.info('Redeemed one credit from package balance %s', balance.id)
    return balance.id


def refund(db: Session, balance_id: int) -> PackageBalance:
    """Give one credit back. Expired balances are refunded too."""
    balance = db.get(PackageBalance, balance_id)
    if balance is None:
        raise NotFound('Package balance not found.')

    db.query(PackageBalance).filter(PackageBalance.id == balance_id).update(
        {PackageBalance.remaining_credits: PackageBalance.remaining_credits + 1},
        synchronize_session=False,
    )
    db.expire(balance, ['remaining_credits'])
    logger.info('Refunded one credit to package balance %s', balance_id)
    return balance


def get_balance(db: Session, balance_id: int) -> PackageBalance:
    balance = db.get(PackageBalance, balance_id)
    if balance is None:
        raise NotFound('Package balance not found.')
    return balance


def list_balances(db: Session, consumer_id: int) -> list[PackageBalance]:
    return db.query(PackageBalance).filter(
        PackageBalance.consumer_id == consumer_id,
    ).order_by(PackageBalance.expires_at.is_(None).asc(), PackageBalance.expires_at.asc(), PackageBalance.id.asc()).all()
