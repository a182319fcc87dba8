from decimal import Decimal

import pytest

from booking_engine.models.appointment import Appointment
from booking_engine.models.enums import PaymentMethod, PaymentStatus
from booking_engine.services import ledger_service
from booking_engine.services.payment_policies import BookingCharge, get_policy


@pytest.mark.parametrize('method', [PaymentMethod.CASH, PaymentMethod.INSURANCE, 'CASH'])
def test_on_site_methods_leave_payment_pending(db, method) -> None:
    policy = get_policy(method)

    settlement = policy.settle(db, BookingCharge(7, 1, 1, Decimal('500.00')))

    assert settlement.payment_status == PaymentStatus.PENDING
    assert settlement.amount_paid == Decimal('0')
    assert settlement.balance_id is None
    assert policy.release(db, Appointment(payment_method='CASH')) is None


def test_package_redemption_settles_and_refunds(db, add_balance) -> None:
    balance = add_balance(remaining_credits=2)
    policy = get_policy(PaymentMethod.PACKAGE_REDEMPTION)

    settlement = policy.settle(db, BookingCharge(7, 1, 1, Decimal('500.00')))
    db.commit()

    assert settlement == (PaymentStatus.SETTLED, Decimal('500.00'), balance.id)
    assert ledger_service.get_balance(db, balance.id).remaining_credits == 1

    released = policy.release(db, Appointment(consumer_package_balance_id=balance.id))
    db.commit()

    assert released == PaymentStatus.REFUNDED
    assert ledger_service.get_balance(db, balance.id).remaining_credits == 2


def test_get_policy_rejects_unknown_methods() -> None:
    with pytest.raises(ValueError):
        get_policy('BITCOIN')


def test_package_release_skips_refund_for_missing_balance(db) -> None:
    policy = get_policy(PaymentMethod.PACKAGE_REDEMPTION)

    assert policy.release(db, Appointment(id=5, consumer_package_balance_id=999)) == PaymentStatus.REFUNDED
