"""
Hire-purchase contract model.
"""
from sqlalchemy import Column, String, Numeric, Date, ForeignKey, Integer, Enum as SQLEnum, Index
from sqlalchemy.orm import relationship
from chainmove.db.base import BaseModel
import enum


class ContractStatus(str, enum.Enum):
    """Contract status enumeration. COMPLETED and DEFAULTED are terminal."""
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    DEFAULTED = "DEFAULTED"


class AssetType(str, enum.Enum):
    SHUTTLE = "SHUTTLE"
    KEKE = "KEKE"


class HirePurchaseContract(BaseModel):
    """Financing agreement a driver repays in weekly installments."""
    __tablename__ = "hire_purchase_contracts"

    driver_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    pool_id = Column(Integer, ForeignKey("investment_pools.id"), nullable=False, index=True)
    asset_type = Column(SQLEnum(AssetType), nullable=False)
    vehicle_display_name = Column(String(200), nullable=False)
    principal = Column(Numeric(15, 2), nullable=False)
    deposit = Column(Numeric(15, 2), nullable=False, default=0)
    total_payable = Column(Numeric(15, 2), nullable=False)  # Principal + financing cost
    duration_weeks = Column(Integer, nullable=False)
    weekly_payment = Column(Numeric(15, 2), nullable=False)
    start_date = Column(Date, nullable=False)
    status = Column(SQLEnum(ContractStatus), default=ContractStatus.ACTIVE, nullable=False, index=True)
    amount_paid = Column(Numeric(15, 2), nullable=False, default=0)
    next_due_date = Column(Date, nullable=True)

    # Relationships
    driver = relationship("User", back_populates="contracts")
    pool = relationship("InvestmentPool", back_populates="contracts")
    payments = relationship("DriverPayment", back_populates="contract")

    __table_args__ = (
        Index("ix_contract_driver_status", "driver_id", "status"),
    )
