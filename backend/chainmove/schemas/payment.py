"""
Pydantic schemas for driver payments and confirmation results.
"""
from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal
from chainmove.models.payment import PaymentStatus
from chainmove.schemas.contract import ContractSnapshot


class PaymentCreate(BaseModel):
    """Schema for driver repayment intake."""
    contract_id: int
    amount: Decimal = Field(gt=0)
    email: Optional[EmailStr] = None


class PaymentSnapshot(BaseModel):
    """Presentation-safe view of a repayment attempt."""
    id: int
    contract_id: int
    driver_id: int
    amount: Decimal
    applied_amount: Decimal
    method: str
    external_ref: str
    payer_email: Optional[str] = None
    status: PaymentStatus
    confirmed_at: Optional[datetime] = None
    failed_reason: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class DistributionResult(BaseModel):
    """Outcome of splitting one payment across a pool's investors."""
    payment_id: int
    pool_id: int
    distributed_amount: Decimal
    investor_credits_count: int
    remainder: Decimal  # Unallocated amount kept for reconciliation
    already_distributed: bool


class ConfirmationResult(BaseModel):
    """Result of a gateway confirmation, identical shape on replay."""
    already_processed: bool
    payment: PaymentSnapshot
    contract: ContractSnapshot
    distribution: DistributionResult


class PaymentInitializeResponse(BaseModel):
    """Created payment plus the gateway's checkout payload."""
    payment: PaymentSnapshot
    authorization_url: Optional[str] = None
    access_code: Optional[str] = None
    message: str


