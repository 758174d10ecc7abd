"""
Pydantic schemas for hire-purchase contracts.
"""
from pydantic import BaseModel
from typing import Optional
from datetime import date
from decimal import Decimal
from chainmove.models.contract import ContractStatus, AssetType


class ContractSnapshot(BaseModel):
    """Presentation-safe view of a contract with derived balance fields."""
    id: int
    driver_id: int
    pool_id: int
    asset_type: AssetType
    vehicle_display_name: str
    principal: Decimal
    deposit: Decimal
    total_payable: Decimal
    duration_weeks: int
    weekly_payment: Decimal
    start_date: date
    status: ContractStatus
    amount_paid: Decimal
    remaining_balance: Decimal
    progress_ratio: float  # 0..1
    next_due_date: Optional[date] = None
    next_payment_amount: Decimal
