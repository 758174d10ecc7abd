"""
Tests for repayment intake, failure marking and payment listing.
"""
import pytest
from datetime import timedelta
from decimal import Decimal
from chainmove.core.config import settings
from chainmove.core.exceptions import NotFoundError, StateError, ValidationError
from chainmove.models import DriverPayment, PaymentStatus, HirePurchaseContract, ContractStatus
from chainmove.services.payment_store import (
    create_payment, mark_failed, list_payments, require_id
)


def test_create_payment_records_pending(db, ledger):
    payment = create_payment(db, ledger.contract_id, ledger.driver_id, Decimal("5000"),
                             payer_email="  Driver1@Example.COM ")

    assert payment.status == PaymentStatus.PENDING
    assert payment.amount == Decimal("5000.00")
    assert payment.applied_amount == Decimal("0.00")
    assert payment.payer_email == "driver1@example.com"
    assert payment.external_ref.startswith(f"{settings.PAYMENT_REFERENCE_PREFIX}_")


def test_generated_references_are_unique(db, ledger):
    first = create_payment(db, ledger.contract_id, ledger.driver_id, 1000)
    second = create_payment(db, ledger.contract_id, ledger.driver_id, 1000)
    assert first.external_ref != second.external_ref


@pytest.mark.parametrize("amount", [0, -5, "nan", "inf", "abc", None])
def test_create_payment_rejects_invalid_amounts(db, ledger, amount):
    with pytest.raises(ValidationError):
        create_payment(db, ledger.contract_id, ledger.driver_id, amount)
    assert db.query(DriverPayment).count() == 0


def test_create_payment_rejects_malformed_ids(db, ledger):
    with pytest.raises(ValidationError):
        create_payment(db, "not-an-id", ledger.driver_id, 1000)
    with pytest.raises(ValidationError):
        create_payment(db, ledger.contract_id, 0, 1000)


def test_create_payment_requires_contract_owned_by_driver(db, ledger):
    with pytest.raises(NotFoundError):
        create_payment(db, ledger.contract_id, ledger.other_driver_id, 1000)
    with pytest.raises(NotFoundError):
        create_payment(db, 9999, ledger.driver_id, 1000)


def test_create_payment_rejects_amount_over_remaining_balance(db, ledger):
    with pytest.raises(ValidationError):
        create_payment(db, ledger.contract_id, ledger.driver_id, Decimal("100000.01"))


def test_create_payment_rejects_inactive_contract(db, ledger):
    contract = db.get(HirePurchaseContract, ledger.contract_id)
    contract.status = ContractStatus.DEFAULTED
    db.commit()

    with pytest.raises(StateError):
        create_payment(db, ledger.contract_id, ledger.driver_id, 1000)


def test_supplied_reference_is_idempotent_for_same_intake(db, ledger):
    first = create_payment(db, ledger.contract_id, ledger.driver_id, 1000, external_ref="gw_ref_1")
    again = create_payment(db, ledger.contract_id, ledger.driver_id, 1000, external_ref="gw_ref_1")

    assert again.id == first.id
    assert db.query(DriverPayment).count() == 1


def test_supplied_reference_cannot_be_reused_by_another_driver(db, ledger):
    create_payment(db, ledger.contract_id, ledger.driver_id, 1000, external_ref="gw_ref_2")

    from chainmove.models import User, InvestmentPool
    from conftest import add_contract
    other_contract = add_contract(
        db, db.get(User, ledger.other_driver_id), db.get(InvestmentPool, ledger.pool_id)
    )
    db.commit()

    with pytest.raises(ValidationError):
        create_payment(db, other_contract.id, ledger.other_driver_id, 1000, external_ref="gw_ref_2")


def test_mark_failed_only_from_pending(db, ledger):
    payment = create_payment(db, ledger.contract_id, ledger.driver_id, 1000)

    failed = mark_failed(db, payment.external_ref, "Card declined")
    assert failed.status == PaymentStatus.FAILED
    assert failed.failed_reason == "Card declined"

    # Second failure notification does not overwrite the reason
    again = mark_failed(db, payment.external_ref, "Timeout")
    assert again.status == PaymentStatus.FAILED
    assert again.failed_reason == "Card declined"


def test_mark_failed_leaves_confirmed_payment_untouched(db, ledger):
    payment = create_payment(db, ledger.contract_id, ledger.driver_id, 1000)
    row = db.get(DriverPayment, payment.id)
    row.status = PaymentStatus.CONFIRMED
    db.commit()

    result = mark_failed(db, payment.external_ref, "Late failure")
    assert result.status == PaymentStatus.CONFIRMED
    assert result.failed_reason is None


def test_mark_failed_unknown_reference(db, ledger):
    with pytest.raises(NotFoundError):
        mark_failed(db, "does_not_exist", "whatever")
    with pytest.raises(ValidationError):
        mark_failed(db, "   ", "whatever")


def test_list_payments_newest_first(db, ledger):
    refs = [
        create_payment(db, ledger.contract_id, ledger.driver_id, 100 * (i + 1)).external_ref
        for i in range(3)
    ]

    payments = list_payments(db, ledger.driver_id)
    assert [p.external_ref for p in payments] == list(reversed(refs))
    assert list_payments(db, ledger.other_driver_id) == []
    assert len(list_payments(db, ledger.driver_id, contract_id=ledger.contract_id, limit=2)) == 2


def test_list_payments_caps_page_size(db, ledger, monkeypatch):
    monkeypatch.setattr(settings, "PAYMENTS_PAGE_SIZE_CAP", 3)
    for _ in range(5):
        create_payment(db, ledger.contract_id, ledger.driver_id, 100)

    assert len(list_payments(db, ledger.driver_id, limit=1000)) == 3
    assert len(list_payments(db, ledger.driver_id, limit=0)) == 1


def test_list_payments_since(db, ledger):
    old = create_payment(db, ledger.contract_id, ledger.driver_id, 100)
    row = db.get(DriverPayment, old.id)
    row.created_at = row.created_at - timedelta(days=30)
    db.commit()
    recent = create_payment(db, ledger.contract_id, ledger.driver_id, 100)

    since = recent.created_at - timedelta(days=1)
    assert [p.id for p in list_payments(db, ledger.driver_id, since=since)] == [recent.id]


def test_require_id():
    assert require_id(7, "id") == 7
    assert require_id("12", "id") == 12
    for bad in (True, -1, "1.5", "x", None):
        with pytest.raises(ValidationError):
            require_id(bad, "id")
