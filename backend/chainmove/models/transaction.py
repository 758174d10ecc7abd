"""
Journal transaction model. Rows are append-only.
"""
from sqlalchemy import Column, String, Numeric, ForeignKey, Integer, Text, JSON, Enum as SQLEnum, UniqueConstraint
from chainmove.db.base import BaseModel
import enum


class ActorType(str, enum.Enum):
    DRIVER = "driver"
    INVESTOR = "investor"


class TransactionKind(str, enum.Enum):
    """Kinds of money movement recorded in the journal."""
    REPAYMENT = "repayment"
    RETURN_CREDIT = "return"
    WALLET_FUNDING = "wallet_funding"


class Transaction(BaseModel):
    """Immutable record of a single money movement."""
    __tablename__ = "transactions"

    actor_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    actor_type = Column(SQLEnum(ActorType), nullable=False)
    kind = Column(SQLEnum(TransactionKind), nullable=False, index=True)
    amount = Column(Numeric(15, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="NGN")
    method = Column(String(20), nullable=False, default="system")
    status = Column(String(20), nullable=False, default="Completed")
    external_ref = Column(String(160), nullable=False, index=True)
    contract_id = Column(Integer, ForeignKey("hire_purchase_contracts.id"), nullable=True, index=True)
    pool_id = Column(Integer, ForeignKey("investment_pools.id"), nullable=True, index=True)
    description = Column(Text, nullable=True)
    details = Column(JSON, nullable=True)

    # One journal line per reference and kind; replays cannot double-post
    __table_args__ = (
        UniqueConstraint('external_ref', 'kind', name='uq_transaction_ref_kind'),
    )
