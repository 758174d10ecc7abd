"""
Investor credit model: one pro-rata share of a confirmed driver payment.
"""
from sqlalchemy import Column, String, Numeric, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import relationship
from chainmove.db.base import BaseModel


class InvestorCredit(BaseModel):
    """Credit posted to an investor for one driver payment."""
    __tablename__ = "investor_credits"

    payment_id = Column(Integer, ForeignKey("driver_payments.id"), nullable=False, index=True)
    pool_id = Column(Integer, ForeignKey("investment_pools.id"), nullable=False, index=True)
    investor_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    amount = Column(Numeric(15, 2), nullable=False)
    ownership_bps = Column(Integer, nullable=False)  # 0..10000 at time of credit
    status = Column(String(20), nullable=False, default="POSTED")

    # Relationships
    payment = relationship("DriverPayment", back_populates="investor_credits")
    investor = relationship("User", back_populates="investor_credits")

    # At most one credit per investor per payment
    __table_args__ = (
        UniqueConstraint('payment_id', 'investor_id', name='uq_payment_investor_credit'),
    )
