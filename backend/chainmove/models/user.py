"""
User model for drivers and investors.
"""
from sqlalchemy import Column, String, Boolean, Numeric, Enum as SQLEnum
from sqlalchemy.orm import relationship
from chainmove.db.base import BaseModel
import enum


class UserRole(str, enum.Enum):
    """User role enumeration."""
    DRIVER = "driver"
    INVESTOR = "investor"
    ADMIN = "admin"


class User(BaseModel):
    """User model carrying the internal wallet balances."""
    __tablename__ = "users"

    username = Column(String(50), unique=True, nullable=False, index=True)
    email = Column(String(100), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    role = Column(SQLEnum(UserRole), default=UserRole.DRIVER, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    available_balance = Column(Numeric(15, 2), nullable=False, default=0)  # Internal wallet, NGN
    total_returns = Column(Numeric(15, 2), nullable=False, default=0)  # Lifetime repayment credits, NGN

    # Relationships
    contracts = relationship("HirePurchaseContract", back_populates="driver")
    payments = relationship("DriverPayment", back_populates="driver")
    pool_investments = relationship("PoolInvestment", back_populates="investor")
    investor_credits = relationship("InvestorCredit", back_populates="investor")
