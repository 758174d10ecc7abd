"""
Confirmation orchestrator: the entry point for gateway payment notifications.

A notification may arrive more than once, possibly concurrently. The payment's
external reference is the idempotency key: the first delivery moves the payment
PENDING -> CONFIRMED through a compare-and-swap and applies every effect in one
unit of work; any later or losing delivery re-reads the committed payment and
returns the same result flagged as already processed.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, Optional
from sqlalchemy.exc import IntegrityError
from chainmove.core.exceptions import ConflictError, NotFoundError, StateError
from chainmove.core.money import as_decimal, to_decimal
from chainmove.db.unit_of_work import UnitOfWork
from chainmove.models.contract import ContractStatus
from chainmove.models.payment import DriverPayment, PaymentStatus
from chainmove.models.transaction import ActorType, TransactionKind
from chainmove.models.user import User
from chainmove.schemas.payment import ConfirmationResult
from chainmove.services import journal_service
from chainmove.services.contract_ledger import apply_payment, contract_snapshot, get_contract, remaining_balance
from chainmove.services.distribution_service import distribute_payment
from chainmove.services.payment_store import (
    claim_pending_payment, get_payment_by_reference, normalize_reference, payment_snapshot
)

logger = logging.getLogger(__name__)


def _load_payment(uow: UnitOfWork, reference: str) -> DriverPayment:
    payment = get_payment_by_reference(uow.session, reference)
    if not payment:
        raise NotFoundError("Driver payment record not found.")
    return payment


def _replay(uow: UnitOfWork, payment: DriverPayment) -> ConfirmationResult:
    """Result for a payment that is already CONFIRMED. No contract mutation."""
    db = uow.session
    contract = get_contract(db, payment.contract_id)
    # Distribution is idempotent; re-running it completes any partial earlier attempt
    distribution = distribute_payment(db, payment, contract)
    uow.commit()

    return ConfirmationResult(
        already_processed=True,
        payment=payment_snapshot(payment),
        contract=contract_snapshot(contract),
        distribution=distribution,
    )


def _apply_confirmation(
    uow: UnitOfWork,
    payment: DriverPayment,
    verified_amount: Optional[Any],
    channel: Optional[str],
    metadata: Optional[Dict[str, Any]]
) -> ConfirmationResult:
    """Confirm a PENDING payment and apply all of its effects, then commit."""
    db = uow.session
    reference = payment.external_ref

    contract = get_contract(db, payment.contract_id, for_update=True)
    # The contract lock orders racing deliveries; the payment read before it may be stale
    db.refresh(payment, with_for_update=True)
    if payment.status != PaymentStatus.PENDING:
        raise ConflictError(f"Payment {reference} was {payment.status.value.lower()} concurrently.")

    if contract.status != ContractStatus.ACTIVE:
        raise StateError("This contract is not active.")

    verified = to_decimal(verified_amount, "verified payment amount") if verified_amount is not None \
        else as_decimal(payment.amount)

    remaining_before = remaining_balance(contract)
    if remaining_before <= 0:
        raise StateError("This contract has already been settled.")

    applied = min(verified, remaining_before)
    unapplied = max(verified - applied, Decimal("0.00"))

    details = dict(payment.details or {})
    details.update(metadata or {})
    details["channel"] = channel or details.get("channel")
    details["unapplied_amount"] = str(unapplied)

    if not claim_pending_payment(db, payment, verified, applied, details):
        raise ConflictError(f"Payment {reference} was confirmed concurrently.")

    apply_payment(contract, applied)

    if not journal_service.find_by_external_ref(db, reference, TransactionKind.REPAYMENT):
        journal_service.record(
            db,
            actor_id=payment.driver_id,
            actor_type=ActorType.DRIVER,
            kind=TransactionKind.REPAYMENT,
            amount=applied,
            external_ref=reference,
            contract_id=contract.id,
            pool_id=contract.pool_id,
            method="paystack",
            description=f"Hire-purchase repayment for {contract.vehicle_display_name}",
            details={
                "source": "driver_repayment",
                "payment_id": payment.id,
                "unapplied_amount": str(unapplied),
            },
        )

    if unapplied > 0:
        driver = db.query(User).filter(User.id == payment.driver_id).with_for_update().first()
        driver.available_balance = as_decimal(driver.available_balance) + unapplied
        journal_service.record(
            db,
            actor_id=payment.driver_id,
            actor_type=ActorType.DRIVER,
            kind=TransactionKind.WALLET_FUNDING,
            amount=unapplied,
            external_ref=f"{reference}_unapplied",
            contract_id=contract.id,
            pool_id=contract.pool_id,
            description="Unapplied repayment amount credited to internal wallet.",
            details={"source": "driver_repayment", "payment_id": payment.id},
        )
        logger.info(f"Payment {reference}: NGN {unapplied} over remaining balance credited to driver wallet")

    distribution = distribute_payment(db, payment, contract)
    uow.commit()

    logger.info(
        f"Confirmed payment {reference}: applied NGN {applied} to contract {contract.id} "
        f"({contract.status.value})"
    )
    return ConfirmationResult(
        already_processed=False,
        payment=payment_snapshot(payment),
        contract=contract_snapshot(contract),
        distribution=distribution,
    )


def confirm_payment(
    uow: UnitOfWork,
    external_ref: str,
    verified_amount: Optional[Any] = None,
    channel: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> ConfirmationResult:
    """
    Confirm the payment identified by ``external_ref``.

    Safe to call repeatedly with identical arguments: the second and later
    calls return ``already_processed=True`` with the committed state. Raises
    NotFoundError for an unknown reference and StateError for a FAILED
    payment or a contract that can no longer accept money.
    """
    reference = normalize_reference(external_ref)

    try:
        with uow:
            payment = _load_payment(uow, reference)

            if payment.status == PaymentStatus.CONFIRMED:
                logger.info(f"Payment {reference} already confirmed, replaying")
                return _replay(uow, payment)

            if payment.status == PaymentStatus.FAILED:
                raise StateError(payment.failed_reason or "This payment has already failed.")

            return _apply_confirmation(uow, payment, verified_amount, channel, metadata)
    except (ConflictError, IntegrityError) as e:
        logger.warning(f"Confirmation of {reference} lost a race ({e}); re-reading committed payment")

    # Fallback read path after a lost compare-and-swap or uniqueness conflict
    with uow:
        payment = _load_payment(uow, reference)
        if payment.status == PaymentStatus.CONFIRMED:
            return _replay(uow, payment)
        if payment.status == PaymentStatus.FAILED:
            raise StateError(payment.failed_reason or "This payment has already failed.")
        raise ConflictError(f"Payment {reference} could not be confirmed; retry the notification.")
