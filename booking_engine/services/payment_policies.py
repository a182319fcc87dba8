"""Payment behaviour per payment method.

The state machine looks a policy up by method and calls its hooks instead of
branching on the method itself.
"""

import logging
from decimal import Decimal
from typing import Callable, NamedTuple

from sqlalchemy.orm import Session

from booking_engine.models.appointment import Appointment
from booking_engine.models.enums import PaymentMethod, PaymentStatus
from booking_engine.models.package_balance import PackageBalance
from booking_engine.services import ledger_service

logger = logging.getLogger(__name__)


class BookingCharge(NamedTuple):
    consumer_id: int
    provider_id: int
    service_id: int
    price: Decimal


class Settlement(NamedTuple):
    payment_status: PaymentStatus
    amount_paid: Decimal
    balance_id: int | None = None


class PaymentPolicy(NamedTuple):
    initial_status: PaymentStatus
    settle: Callable[[Session, BookingCharge], Settlement]
    release: Callable[[Session, Appointment], PaymentStatus | None]


def _redeem_credit(db: Session, charge: BookingCharge) -> Settlement:
    balance_id = ledger_service.redeem(db, charge.consumer_id, charge.provider_id, charge.service_id)
    return Settlement(PaymentStatus.SETTLED, charge.price, balance_id)


def _pay_on_site(db: Session, charge: BookingCharge) -> Settlement:
    return Settlement(PaymentStatus.PENDING, Decimal('0'))


def _refund_credit(db: Session, appointment: Appointment) -> PaymentStatus | None:
    if appointment.consumer_package_balance_id is None:
        return None
    balance_id = appointment.consumer_package_balance_id
    if db.get(PackageBalance, balance_id) is None:
        logger.warning('Package balance %s is gone; canceling appointment %s without a refund', balance_id, appointment.id)
        return PaymentStatus.REFUNDED
    ledger_service.refund(db, balance_id)
    return PaymentStatus.REFUNDED


def _nothing_to_release(db: Session, appointment: Appointment) -> PaymentStatus | None:
    return None


PAYMENT_POLICIES: dict[PaymentMethod, PaymentPolicy] = {
    PaymentMethod.PACKAGE_REDEMPTION: PaymentPolicy(PaymentStatus.SETTLED, _redeem_credit, _refund_credit),
    PaymentMethod.CASH: PaymentPolicy(PaymentStatus.PENDING, _pay_on_site, _nothing_to_release),
    PaymentMethod.INSURANCE: PaymentPolicy(PaymentStatus.PENDING, _pay_on_site, _nothing_to_release),
}


def get_policy(method: PaymentMethod | str) -> PaymentPolicy:
    return PAYMENT_POLICIES[PaymentMethod(method)]
