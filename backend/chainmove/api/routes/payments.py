"""
Gateway-facing payment routes: webhook notifications and callback verification.
"""
import json
import logging
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session
from chainmove.api.dependencies import get_current_driver, get_unit_of_work
from chainmove.core.exceptions import NotFoundError
from chainmove.db.session import get_db
from chainmove.db.unit_of_work import UnitOfWork
from chainmove.models.user import User
from chainmove.services import gateway_service
from chainmove.services.confirmation_service import confirm_payment
from chainmove.services.payment_store import get_payment_by_reference, mark_failed, normalize_reference

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])

FAILED_GATEWAY_STATUSES = {"failed", "abandoned", "reversed"}


@router.post("/webhook")
async def gateway_webhook(
    request: Request,
    db: Session = Depends(get_db),
    uow: UnitOfWork = Depends(get_unit_of_work)
):
    """
    Paystack notification callback.

    charge.success confirms the driver repayment, charge.failed marks it
    failed; anything else is acknowledged and ignored. Deliveries may repeat.
    """
    body = await request.body()
    if not gateway_service.verify_webhook_signature(body, request.headers.get("x-paystack-signature")):
        logger.warning("Rejected gateway webhook with invalid signature")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid signature."
        )

    try:
        event = json.loads(body)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Malformed webhook payload."
        )

    charge = event.get("data") or {}
    metadata = charge.get("metadata") or {}
    if str(metadata.get("paymentType", "")).lower() != "driver_repayment":
        return {"status": "ignored"}

    reference = charge.get("reference")
    if not reference:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing transaction reference."
        )

    if event.get("event") == "charge.success":
        amount = gateway_service.charge_amount(charge)
        if amount is None or amount <= 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid payment amount."
            )
        result = confirm_payment(
            uow,
            reference,
            verified_amount=amount,
            channel=charge.get("channel") if isinstance(charge.get("channel"), str) else None,
            metadata=metadata,
        )
        return {
            "message": "Driver repayment processed.",
            "already_processed": result.already_processed,
        }

    if event.get("event") == "charge.failed":
        mark_failed(db, reference, charge.get("gateway_response") or "Charge failed at gateway.")
        return {"message": "Driver repayment marked failed."}

    return {"status": "ignored"}


@router.post("/verify/{reference}")
async def verify_payment(
    reference: str,
    current_user: User = Depends(get_current_driver),
    db: Session = Depends(get_db),
    uow: UnitOfWork = Depends(get_unit_of_work)
):
    """Verify a repayment with the gateway after checkout redirect."""
    reference = normalize_reference(reference)
    payment = get_payment_by_reference(db, reference)
    if not payment or payment.driver_id != current_user.id:
        raise NotFoundError("Driver payment record not found.")
    # Release the read session before the unit of work locks the same rows
    db.rollback()

    verification = gateway_service.verify_transaction(reference)
    if verification["status"] in FAILED_GATEWAY_STATUSES:
        failed = mark_failed(db, reference, verification.get("gateway_response") or "Payment was not successful.")
        return {"message": "Payment verification failed.", "payment": failed}
    if verification["status"] != "success":
        return {"message": "Payment is still being processed.", "status": verification["status"]}

    result = confirm_payment(
        uow,
        reference,
        verified_amount=verification["amount"],
        channel=verification.get("channel"),
        metadata=verification.get("metadata"),
    )
    return {"message": "Payment verified.", **result.model_dump(mode="json")}
