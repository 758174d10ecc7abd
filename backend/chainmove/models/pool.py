"""
Investment pool and the ownership records investors hold in it.

Pool investments are written by the pool-investment subsystem; the ledger
only reads confirmed rows.
"""
from sqlalchemy import Column, String, Numeric, ForeignKey, Integer, Enum as SQLEnum
from sqlalchemy.orm import relationship
from chainmove.db.base import BaseModel
import enum


class PoolInvestmentStatus(str, enum.Enum):
    """Pool investment status enumeration."""
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    FAILED = "FAILED"


class InvestmentPool(BaseModel):
    """A set of investor contributions backing one vehicle."""
    __tablename__ = "investment_pools"

    name = Column(String(200), nullable=False)
    target_amount = Column(Numeric(15, 2), nullable=False, default=0)

    # Relationships
    investments = relationship("PoolInvestment", back_populates="pool")
    contracts = relationship("HirePurchaseContract", back_populates="pool")


class PoolInvestment(BaseModel):
    """One investor contribution into a pool."""
    __tablename__ = "pool_investments"

    pool_id = Column(Integer, ForeignKey("investment_pools.id"), nullable=False, index=True)
    investor_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    amount = Column(Numeric(15, 2), nullable=False)
    tx_ref = Column(String(120), nullable=False, index=True)
    status = Column(SQLEnum(PoolInvestmentStatus), default=PoolInvestmentStatus.CONFIRMED, nullable=False, index=True)

    # Relationships
    pool = relationship("InvestmentPool", back_populates="investments")
    investor = relationship("User", back_populates="pool_investments")
