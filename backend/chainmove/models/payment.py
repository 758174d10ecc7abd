"""
Driver repayment model.
"""
from sqlalchemy import Column, String, Numeric, DateTime, ForeignKey, Integer, Text, JSON, Enum as SQLEnum
from sqlalchemy.orm import relationship
from chainmove.db.base import BaseModel
import enum


class PaymentStatus(str, enum.Enum):
    """Payment status. Only PENDING -> CONFIRMED or PENDING -> FAILED."""
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    FAILED = "FAILED"


class DriverPayment(BaseModel):
    """One repayment attempt against a hire-purchase contract."""
    __tablename__ = "driver_payments"

    contract_id = Column(Integer, ForeignKey("hire_purchase_contracts.id"), nullable=False, index=True)
    driver_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    amount = Column(Numeric(15, 2), nullable=False)  # Requested, then the gateway-verified amount
    applied_amount = Column(Numeric(15, 2), nullable=False, default=0)
    method = Column(String(20), nullable=False, default="PAYSTACK")
    external_ref = Column(String(120), unique=True, nullable=False, index=True)
    payer_email = Column(String(100), nullable=True)
    status = Column(SQLEnum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False, index=True)
    confirmed_at = Column(DateTime, nullable=True)
    failed_reason = Column(Text, nullable=True)
    details = Column(JSON, nullable=True)  # Gateway channel, unapplied amount, raw metadata

    # Distribution outcome, set once when investors are credited
    distributed_at = Column(DateTime, nullable=True)
    unallocated_amount = Column(Numeric(15, 2), nullable=False, default=0)

    # Relationships
    contract = relationship("HirePurchaseContract", back_populates="payments")
    driver = relationship("User", back_populates="payments")
    investor_credits = relationship("InvestorCredit", back_populates="payment")
