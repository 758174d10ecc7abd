"""
Distribution engine: splits a confirmed driver payment across the investors of
the contract's pool, pro rata to their confirmed contributions.

All allocation arithmetic is integer kobo. Flooring leaves a rounding remainder
that goes to the largest contributor; ties on contribution go to the lowest
investor id. A pool with no contributions credits nobody and the whole amount
is recorded as unallocated on the payment for reconciliation.
"""
import logging
from typing import List, Tuple
from sqlalchemy import func
from sqlalchemy.orm import Session
from chainmove.core.exceptions import StateError
from chainmove.core.money import as_decimal, from_minor_units, to_minor_units
from chainmove.db.base import utcnow
from chainmove.models.contract import HirePurchaseContract
from chainmove.models.investor_credit import InvestorCredit
from chainmove.models.payment import DriverPayment, PaymentStatus
from chainmove.models.transaction import ActorType, TransactionKind
from chainmove.models.user import User
from chainmove.schemas.payment import DistributionResult
from chainmove.services import journal_service
from chainmove.services.ownership_service import OwnershipShare, resolve_ownership

logger = logging.getLogger(__name__)


class CreditAllocation:
    """Integer credit computed for one investor."""
    def __init__(self, investor_id: int, ownership_bps: int, credit_minor: int):
        self.investor_id = investor_id
        self.ownership_bps = ownership_bps
        self.credit_minor = credit_minor


def allocate_pro_rata(total_minor: int, shares: List[OwnershipShare]) -> Tuple[List[CreditAllocation], int]:
    """
    Split ``total_minor`` across ``shares``.

    Returns the non-zero allocations and the unallocated remainder. The
    allocations plus the remainder always sum to ``total_minor``.
    """
    if total_minor <= 0:
        return [], 0

    total_contributed = sum(share.contribution_minor for share in shares if share.contribution_minor > 0)
    if not shares or total_contributed <= 0:
        return [], total_minor

    funded = [share for share in shares if share.contribution_minor > 0]
    allocations = [
        CreditAllocation(
            share.investor_id,
            share.ownership_bps,
            (total_minor * share.contribution_minor) // total_contributed
        )
        for share in funded
    ]

    rounding_remainder = total_minor - sum(a.credit_minor for a in allocations)
    if rounding_remainder > 0:
        largest = min(
            range(len(funded)),
            key=lambda i: (-funded[i].contribution_minor, funded[i].investor_id)
        )
        allocations[largest].credit_minor += rounding_remainder

    return [a for a in allocations if a.credit_minor > 0], 0


def _stored_result(db: Session, payment: DriverPayment, pool_id: int) -> DistributionResult:
    count, total = db.query(
        func.count(InvestorCredit.id),
        func.coalesce(func.sum(InvestorCredit.amount), 0)
    ).filter(InvestorCredit.payment_id == payment.id).one()

    return DistributionResult(
        payment_id=payment.id,
        pool_id=pool_id,
        distributed_amount=as_decimal(total),
        investor_credits_count=int(count),
        remainder=as_decimal(payment.unallocated_amount),
        already_distributed=True,
    )


def distribute_payment(db: Session, payment: DriverPayment, contract: HirePurchaseContract) -> DistributionResult:
    """
    Credit every investor of the contract's pool with their share of the
    payment's applied amount.

    Runs once per payment: if credits exist or the payment already carries a
    distribution outcome, the stored totals are returned and nothing is written.
    Must run inside the confirming unit of work.
    """
    if payment.status != PaymentStatus.CONFIRMED:
        raise StateError("Only confirmed payments can be distributed.")

    has_credits = db.query(InvestorCredit.id).filter(
        InvestorCredit.payment_id == payment.id
    ).first() is not None
    if has_credits or payment.distributed_at is not None:
        return _stored_result(db, payment, contract.pool_id)

    total_minor = to_minor_units(as_decimal(payment.applied_amount))
    shares = resolve_ownership(db, contract.pool_id)
    allocations, remainder_minor = allocate_pro_rata(total_minor, shares)

    for allocation in allocations:
        amount = from_minor_units(allocation.credit_minor)
        db.add(InvestorCredit(
            payment_id=payment.id,
            pool_id=contract.pool_id,
            investor_id=allocation.investor_id,
            amount=amount,
            ownership_bps=allocation.ownership_bps,
            status="POSTED",
        ))

        investor = db.query(User).filter(User.id == allocation.investor_id).with_for_update().first()
        investor.available_balance = as_decimal(investor.available_balance) + amount
        investor.total_returns = as_decimal(investor.total_returns) + amount

        journal_service.record(
            db,
            actor_id=allocation.investor_id,
            actor_type=ActorType.INVESTOR,
            kind=TransactionKind.RETURN_CREDIT,
            amount=amount,
            external_ref=f"{payment.external_ref}_{allocation.investor_id}",
            contract_id=contract.id,
            pool_id=contract.pool_id,
            description=f"Driver repayment credit from {contract.vehicle_display_name}",
            details={
                "source": "driver_repayment",
                "contract_id": contract.id,
                "payment_id": payment.id,
                "ownership_bps": allocation.ownership_bps,
            },
        )

    payment.distributed_at = utcnow()
    payment.unallocated_amount = from_minor_units(remainder_minor)
    db.flush()

    distributed_minor = sum(a.credit_minor for a in allocations)
    if remainder_minor > 0:
        logger.warning(
            f"Payment {payment.external_ref}: no investors to credit in pool {contract.pool_id}, "
            f"NGN {from_minor_units(remainder_minor)} left unallocated"
        )
    logger.info(
        f"Distributed NGN {from_minor_units(distributed_minor)} of payment {payment.external_ref} "
        f"to {len(allocations)} investor(s)"
    )

    return DistributionResult(
        payment_id=payment.id,
        pool_id=contract.pool_id,
        distributed_amount=from_minor_units(distributed_minor),
        investor_credits_count=len(allocations),
        remainder=from_minor_units(remainder_minor),
        already_distributed=False,
    )
