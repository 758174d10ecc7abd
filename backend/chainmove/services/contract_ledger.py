"""
Contract ledger: balance arithmetic and payment application for hire-purchase contracts.

Nothing here commits; mutations run inside the caller's transaction.
"""
import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional
from sqlalchemy.orm import Session
from chainmove.core.exceptions import NotFoundError, StateError, ValidationError
from chainmove.core.money import as_decimal, to_decimal
from chainmove.models.contract import HirePurchaseContract, ContractStatus
from chainmove.schemas.contract import ContractSnapshot

logger = logging.getLogger(__name__)


def remaining_balance(contract: HirePurchaseContract) -> Decimal:
    """Amount still owed, never negative."""
    return max(as_decimal(contract.total_payable) - as_decimal(contract.amount_paid), Decimal("0.00"))


def progress_ratio(contract: HirePurchaseContract) -> float:
    """Paid-to-date as a fraction of total payable, clamped to [0, 1]."""
    total_payable = as_decimal(contract.total_payable)
    if total_payable <= 0:
        return 0.0
    ratio = float(as_decimal(contract.amount_paid) / total_payable)
    return min(max(ratio, 0.0), 1.0)


def calculate_next_due_date(contract: HirePurchaseContract) -> Optional[date]:
    """
    Due date of the first installment not yet covered by amount_paid.

    Returns None when the contract has no usable schedule or is fully paid.
    """
    weekly_payment = as_decimal(contract.weekly_payment)
    duration_weeks = int(contract.duration_weeks or 0)

    if weekly_payment <= 0 or duration_weeks <= 0:
        return None
    if as_decimal(contract.amount_paid) >= as_decimal(contract.total_payable):
        return None

    paid_installments = int(as_decimal(contract.amount_paid) // weekly_payment)
    if paid_installments >= duration_weeks:
        return None

    return contract.start_date + timedelta(days=7 * (paid_installments + 1))


def apply_payment(contract: HirePurchaseContract, amount) -> HirePurchaseContract:
    """
    Add ``amount`` to the contract's paid-to-date balance.

    Moves the contract to COMPLETED when nothing remains. Terminal contracts
    and amounts above the remaining balance are rejected untouched.
    """
    if contract.status != ContractStatus.ACTIVE:
        raise StateError("This hire-purchase contract is not active.")

    amount = to_decimal(amount)
    remaining = remaining_balance(contract)
    if remaining <= 0:
        raise StateError("This contract is already fully paid.")
    if amount > remaining:
        raise ValidationError(f"Amount exceeds remaining balance of NGN {remaining:,.2f}.")

    contract.amount_paid = as_decimal(contract.amount_paid) + amount

    if remaining_balance(contract) <= 0:
        contract.status = ContractStatus.COMPLETED
        contract.next_due_date = None
        logger.info(f"Contract {contract.id} completed")
    else:
        contract.next_due_date = calculate_next_due_date(contract)

    return contract


def contract_snapshot(contract: HirePurchaseContract) -> ContractSnapshot:
    """Build the presentation-safe snapshot with derived balance fields."""
    remaining = remaining_balance(contract)
    weekly_payment = as_decimal(contract.weekly_payment)
    return ContractSnapshot(
        id=contract.id,
        driver_id=contract.driver_id,
        pool_id=contract.pool_id,
        asset_type=contract.asset_type,
        vehicle_display_name=contract.vehicle_display_name,
        principal=as_decimal(contract.principal),
        deposit=as_decimal(contract.deposit),
        total_payable=as_decimal(contract.total_payable),
        duration_weeks=int(contract.duration_weeks or 0),
        weekly_payment=weekly_payment,
        start_date=contract.start_date,
        status=contract.status,
        amount_paid=as_decimal(contract.amount_paid),
        remaining_balance=remaining,
        progress_ratio=progress_ratio(contract),
        next_due_date=calculate_next_due_date(contract) if contract.status == ContractStatus.ACTIVE else None,
        next_payment_amount=min(weekly_payment, remaining),
    )


def get_contract(db: Session, contract_id: int, for_update: bool = False) -> HirePurchaseContract:
    """Load a contract, optionally row-locked for the rest of the transaction."""
    query = db.query(HirePurchaseContract).filter(HirePurchaseContract.id == contract_id)
    if for_update:
        query = query.with_for_update().populate_existing()
    contract = query.first()
    if not contract:
        raise NotFoundError("Hire-purchase contract not found.")
    return contract


def get_active_contract(db: Session, driver_id: int) -> Optional[ContractSnapshot]:
    """
    The driver's current contract.

    Falls back to the most recently updated COMPLETED or DEFAULTED contract
    so a driver who has finished paying still sees their history.
    """
    active = db.query(HirePurchaseContract).filter(
        HirePurchaseContract.driver_id == driver_id,
        HirePurchaseContract.status == ContractStatus.ACTIVE
    ).order_by(HirePurchaseContract.created_at.desc(), HirePurchaseContract.id.desc()).first()

    if active:
        return contract_snapshot(active)

    historical = db.query(HirePurchaseContract).filter(
        HirePurchaseContract.driver_id == driver_id,
        HirePurchaseContract.status.in_([ContractStatus.COMPLETED, ContractStatus.DEFAULTED])
    ).order_by(HirePurchaseContract.updated_at.desc(), HirePurchaseContract.id.desc()).first()

    return contract_snapshot(historical) if historical else None
