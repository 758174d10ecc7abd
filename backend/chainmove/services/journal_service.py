"""
Transaction journal. Append-only: there is no update or delete here, corrections
are new entries.
"""
from decimal import Decimal
from typing import Any, Dict, Optional
from sqlalchemy.orm import Session
from chainmove.core.config import settings
from chainmove.models.transaction import Transaction, TransactionKind, ActorType


def record(
    db: Session,
    actor_id: int,
    actor_type: ActorType,
    kind: TransactionKind,
    amount: Decimal,
    external_ref: str,
    contract_id: Optional[int] = None,
    pool_id: Optional[int] = None,
    method: str = "system",
    description: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None
) -> Transaction:
    """Append one journal entry inside the caller's transaction."""
    entry = Transaction(
        actor_id=actor_id,
        actor_type=actor_type,
        kind=kind,
        amount=amount,
        currency=settings.CURRENCY,
        method=method,
        status="Completed",
        external_ref=external_ref,
        contract_id=contract_id,
        pool_id=pool_id,
        description=description,
        details=details or {},
    )
    db.add(entry)
    db.flush()
    return entry


def find_by_external_ref(db: Session, external_ref: str, kind: TransactionKind) -> Optional[Transaction]:
    """Existing entry for a reference, used to skip re-posting on replay."""
    return db.query(Transaction).filter(
        Transaction.external_ref == external_ref,
        Transaction.kind == kind
    ).first()
