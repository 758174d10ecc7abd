"""
Driver-facing repayment routes: current contract, payment history, repayment intake.
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import datetime
from chainmove.api.dependencies import get_current_driver
from chainmove.core.config import settings
from chainmove.core.exceptions import GatewayError
from chainmove.db.session import get_db
from chainmove.models.user import User
from chainmove.schemas.contract import ContractSnapshot
from chainmove.schemas.payment import PaymentCreate, PaymentSnapshot, PaymentInitializeResponse
from chainmove.services import gateway_service
from chainmove.services.contract_ledger import get_active_contract
from chainmove.services.payment_store import create_payment, list_payments, mark_failed

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/driver", tags=["driver"])


@router.get("/contract", response_model=Optional[ContractSnapshot])
async def get_contract(
    current_user: User = Depends(get_current_driver),
    db: Session = Depends(get_db)
):
    """Get the driver's active contract, or the latest finished one."""
    return get_active_contract(db, current_user.id)


@router.get("/payments", response_model=List[PaymentSnapshot])
async def get_payments(
    contract_id: Optional[int] = None,
    limit: int = Query(settings.PAYMENTS_DEFAULT_LIMIT, ge=1),
    since: Optional[datetime] = None,
    current_user: User = Depends(get_current_driver),
    db: Session = Depends(get_db)
):
    """List the driver's payments, newest first."""
    return list_payments(db, current_user.id, contract_id=contract_id, limit=limit, since=since)


@router.post("/payments", response_model=PaymentInitializeResponse, status_code=status.HTTP_201_CREATED)
async def initialize_payment(
    payment_data: PaymentCreate,
    current_user: User = Depends(get_current_driver),
    db: Session = Depends(get_db)
):
    """Create a pending repayment and open a gateway checkout for it."""
    payer_email = str(payment_data.email or current_user.email or "").strip().lower()
    if not payer_email:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="An email is required for Paystack repayment."
        )

    payment = create_payment(
        db,
        contract_id=payment_data.contract_id,
        driver_id=current_user.id,
        amount=payment_data.amount,
        payer_email=payer_email,
    )

    try:
        checkout = gateway_service.initialize_transaction(payment, payer_email)
    except GatewayError as e:
        logger.warning(f"Gateway refused payment {payment.external_ref}: {e.message}")
        mark_failed(db, payment.external_ref, e.message)
        raise

    return PaymentInitializeResponse(
        payment=payment,
        authorization_url=checkout.get("authorization_url"),
        access_code=checkout.get("access_code"),
        message=checkout.get("message", "Payment initialized."),
    )
