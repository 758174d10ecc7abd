"""
Ownership resolver: confirmed pool contributions aggregated per investor.

Reads pool_investments only; that table belongs to the pool-investment flow.
"""
from typing import Dict, List
from sqlalchemy.orm import Session
from chainmove.core.money import ownership_bps, to_minor_units
from chainmove.models.pool import PoolInvestment, PoolInvestmentStatus


class OwnershipShare:
    """One investor's aggregated stake in a pool."""
    def __init__(self, investor_id: int, contribution_minor: int, ownership_bps: int):
        self.investor_id = investor_id
        self.contribution_minor = contribution_minor
        self.ownership_bps = ownership_bps

    def __repr__(self):
        return (
            f"OwnershipShare(investor_id={self.investor_id}, "
            f"contribution_minor={self.contribution_minor}, ownership_bps={self.ownership_bps})"
        )


def aggregate_shares(contributions: List[tuple]) -> List[OwnershipShare]:
    """
    Sum (investor_id, contribution_minor) pairs per investor and attach basis points.

    Non-positive contributions are ignored. Result is ordered by contribution
    descending, then investor id ascending.
    """
    totals: Dict[int, int] = {}
    for investor_id, contribution_minor in contributions:
        if contribution_minor <= 0:
            continue
        totals[investor_id] = totals.get(investor_id, 0) + contribution_minor

    pool_total = sum(totals.values())
    shares = [
        OwnershipShare(investor_id, amount, ownership_bps(amount, pool_total))
        for investor_id, amount in totals.items()
    ]
    shares.sort(key=lambda share: (-share.contribution_minor, share.investor_id))
    return shares


def resolve_ownership(db: Session, pool_id: int) -> List[OwnershipShare]:
    """Current ownership shares for a pool from its CONFIRMED investments."""
    rows = db.query(PoolInvestment.investor_id, PoolInvestment.amount).filter(
        PoolInvestment.pool_id == pool_id,
        PoolInvestment.status == PoolInvestmentStatus.CONFIRMED
    ).order_by(PoolInvestment.id).all()

    return aggregate_shares([(investor_id, to_minor_units(amount or 0)) for investor_id, amount in rows])
