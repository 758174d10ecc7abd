"""
Payment record store: repayment intake, status transitions and listing.
"""
import logging
import time
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from chainmove.core.config import settings
from chainmove.core.exceptions import NotFoundError, StateError, ValidationError
from chainmove.core.money import as_decimal, to_decimal
from chainmove.db.base import utcnow
from chainmove.models.contract import HirePurchaseContract, ContractStatus
from chainmove.models.payment import DriverPayment, PaymentStatus
from chainmove.schemas.payment import PaymentSnapshot
from chainmove.services.contract_ledger import remaining_balance

logger = logging.getLogger(__name__)


def require_id(value: Any, field_label: str) -> int:
    """Reject identifiers that are not positive integers."""
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {field_label}.")
    try:
        identifier = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field_label}.")
    if identifier <= 0 or str(identifier) != str(value).strip():
        raise ValidationError(f"Invalid {field_label}.")
    return identifier


def normalize_reference(external_ref: Optional[str]) -> str:
    reference = (external_ref or "").strip()
    if not reference:
        raise ValidationError("Payment reference is required.")
    return reference


def generate_reference() -> str:
    """Locally generated gateway reference, unique per attempt."""
    return f"{settings.PAYMENT_REFERENCE_PREFIX}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:6]}"


def payment_snapshot(payment: DriverPayment) -> PaymentSnapshot:
    return PaymentSnapshot(
        id=payment.id,
        contract_id=payment.contract_id,
        driver_id=payment.driver_id,
        amount=as_decimal(payment.amount),
        applied_amount=as_decimal(payment.applied_amount),
        method=payment.method,
        external_ref=payment.external_ref,
        payer_email=payment.payer_email,
        status=payment.status,
        confirmed_at=payment.confirmed_at,
        failed_reason=payment.failed_reason,
        created_at=payment.created_at,
    )


def get_payment_by_reference(db: Session, external_ref: str) -> Optional[DriverPayment]:
    return db.query(DriverPayment).filter(DriverPayment.external_ref == external_ref).first()


def _resolve_existing_reference(
    existing: DriverPayment,
    contract_id: int,
    driver_id: int
) -> PaymentSnapshot:
    """A reference already on file is only reusable by the same intake."""
    if existing.contract_id != contract_id or existing.driver_id != driver_id:
        raise ValidationError("Payment reference is already in use.")
    logger.info(f"Payment intake replayed for reference {existing.external_ref}")
    return payment_snapshot(existing)


def create_payment(
    db: Session,
    contract_id: Any,
    driver_id: Any,
    amount: Any,
    payer_email: Optional[str] = None,
    external_ref: Optional[str] = None
) -> PaymentSnapshot:
    """
    Record a PENDING repayment attempt against an ACTIVE contract.

    With a caller-supplied reference the insert is conditional: a reference
    already on file for the same contract and driver returns that payment
    instead of a second row.
    """
    contract_id = require_id(contract_id, "contract id")
    driver_id = require_id(driver_id, "driver user id")
    amount = to_decimal(amount)

    contract = db.query(HirePurchaseContract).filter(
        HirePurchaseContract.id == contract_id,
        HirePurchaseContract.driver_id == driver_id
    ).first()
    if not contract:
        raise NotFoundError("Contract not found.")
    if contract.status != ContractStatus.ACTIVE:
        raise StateError("This hire-purchase contract is not active.")

    remaining = remaining_balance(contract)
    if remaining <= 0:
        raise StateError("This contract is already fully paid.")
    if amount > remaining:
        raise ValidationError(f"Amount exceeds remaining balance of NGN {remaining:,.2f}.")

    reference = external_ref.strip() if external_ref and external_ref.strip() else generate_reference()

    existing = get_payment_by_reference(db, reference)
    if existing:
        return _resolve_existing_reference(existing, contract_id, driver_id)

    payment = DriverPayment(
        contract_id=contract.id,
        driver_id=driver_id,
        amount=amount,
        applied_amount=Decimal("0.00"),
        method="PAYSTACK",
        external_ref=reference,
        payer_email=payer_email.strip().lower() if payer_email and payer_email.strip() else None,
        status=PaymentStatus.PENDING,
    )
    db.add(payment)
    try:
        db.commit()
    except IntegrityError:
        # Lost an intake race on the same reference; read the winner's row
        db.rollback()
        existing = get_payment_by_reference(db, reference)
        if not existing:
            raise
        return _resolve_existing_reference(existing, contract_id, driver_id)
    db.refresh(payment)

    logger.info(f"Created pending payment {reference} of NGN {amount} on contract {contract.id}")
    return payment_snapshot(payment)


def claim_pending_payment(
    db: Session,
    payment: DriverPayment,
    verified_amount: Decimal,
    applied_amount: Decimal,
    details: Dict[str, Any]
) -> bool:
    """
    Compare-and-swap PENDING -> CONFIRMED.

    Returns False when another transaction already moved the payment out of
    PENDING; the caller then takes the replay path.
    """
    result = db.execute(
        update(DriverPayment)
        .where(
            DriverPayment.id == payment.id,
            DriverPayment.status == PaymentStatus.PENDING
        )
        .values(
            status=PaymentStatus.CONFIRMED,
            amount=verified_amount,
            applied_amount=applied_amount,
            confirmed_at=utcnow(),
            failed_reason=None,
            details=details,
            updated_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return False
    db.refresh(payment)
    return True


def mark_failed(db: Session, external_ref: str, reason: str) -> PaymentSnapshot:
    """
    Move a PENDING payment to FAILED with ``reason``.

    A payment already CONFIRMED or FAILED is left untouched.
    """
    reference = normalize_reference(external_ref)
    reason = (reason or "").strip() or "Payment failed."

    result = db.execute(
        update(DriverPayment)
        .where(
            DriverPayment.external_ref == reference,
            DriverPayment.status == PaymentStatus.PENDING
        )
        .values(status=PaymentStatus.FAILED, failed_reason=reason, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    db.commit()

    payment = get_payment_by_reference(db, reference)
    if not payment:
        raise NotFoundError("Driver payment record not found.")

    if result.rowcount == 1:
        logger.info(f"Payment {reference} marked failed: {reason}")
    else:
        logger.info(f"Ignored failure for payment {reference} already {payment.status.value}")
    return payment_snapshot(payment)


def list_payments(
    db: Session,
    driver_id: Any,
    contract_id: Any = None,
    limit: int = settings.PAYMENTS_DEFAULT_LIMIT,
    since: Optional[datetime] = None
) -> List[PaymentSnapshot]:
    """A driver's payments newest first, capped at PAYMENTS_PAGE_SIZE_CAP rows."""
    driver_id = require_id(driver_id, "driver user id")
    query = db.query(DriverPayment).filter(DriverPayment.driver_id == driver_id)

    if contract_id is not None:
        query = query.filter(DriverPayment.contract_id == require_id(contract_id, "contract id"))
    if since is not None:
        query = query.filter(DriverPayment.created_at >= since)

    page_size = max(1, min(int(limit), settings.PAYMENTS_PAGE_SIZE_CAP))
    payments = query.order_by(
        DriverPayment.created_at.desc(),
        DriverPayment.id.desc()
    ).limit(page_size).all()

    return [payment_snapshot(payment) for payment in payments]
