"""
Paystack gateway client.

The gateway charges the driver and later notifies us; this module only
initializes checkouts, verifies transactions by reference and checks webhook
signatures. Amounts go over the wire in kobo.
"""
import hashlib
import hmac
import logging
from decimal import Decimal
from typing import Any, Dict, Optional
import httpx
from chainmove.core.config import settings
from chainmove.core.exceptions import GatewayError
from chainmove.core.money import from_minor_units, to_minor_units
from chainmove.schemas.payment import PaymentSnapshot

logger = logging.getLogger(__name__)


def _headers() -> Dict[str, str]:
    if not settings.PAYSTACK_SECRET_KEY:
        logger.error("PAYSTACK_SECRET_KEY is not configured. Please set it in .env file.")
        raise GatewayError("Paystack is not configured.")
    return {
        "Authorization": f"Bearer {settings.PAYSTACK_SECRET_KEY}",
        "Content-Type": "application/json",
    }


def _request(method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    url = f"{settings.PAYSTACK_API_URL.rstrip('/')}{path}"
    try:
        response = httpx.request(
            method, url, headers=_headers(), json=payload, timeout=settings.GATEWAY_TIMEOUT_SECONDS
        )
        response.raise_for_status()
        data = response.json()
    except httpx.HTTPStatusError as e:
        error_text = e.response.text if e.response is not None else str(e)
        logger.error(f"Paystack HTTP error on {path}: {e.response.status_code} - {error_text}")
        message = None
        try:
            message = e.response.json().get("message")
        except ValueError:
            pass
        raise GatewayError(message or f"Paystack HTTP error: {e.response.status_code}")
    except httpx.HTTPError as e:
        logger.error(f"Paystack network error on {path}: {e}")
        raise GatewayError(f"Paystack network error: {str(e)}")

    if settings.DEBUG:
        logger.debug(f"Paystack response for {path}: {data}")

    if data.get("status") is False:
        raise GatewayError(data.get("message") or "Paystack rejected the request.")
    return data


def initialize_transaction(payment: PaymentSnapshot, email: str) -> Dict[str, Any]:
    """Open a Paystack checkout for a freshly created PENDING payment."""
    payload = {
        "amount": to_minor_units(payment.amount),
        "email": email,
        "reference": payment.external_ref,
        "callback_url": settings.PAYSTACK_CALLBACK_URL,
        "metadata": {
            "paymentType": "driver_repayment",
            "contractId": payment.contract_id,
            "driverPaymentId": payment.id,
            "userId": payment.driver_id,
            "amountNgn": str(payment.amount),
            "payerEmail": email,
        },
    }
    logger.info(f"Initializing Paystack transaction {payment.external_ref}")
    data = _request("POST", "/transaction/initialize", payload)
    return {"message": data.get("message") or "Payment initialized.", **(data.get("data") or {})}


def verify_transaction(reference: str) -> Dict[str, Any]:
    """
    Look a transaction up by reference.

    Returns the gateway's status, channel, metadata and the paid amount
    converted back to NGN.
    """
    data = _request("GET", f"/transaction/verify/{reference}").get("data") or {}
    amount_minor = data.get("amount")
    return {
        "status": data.get("status"),
        "reference": data.get("reference") or reference,
        "amount": from_minor_units(int(amount_minor)) if amount_minor is not None else None,
        "channel": data.get("channel"),
        "gateway_response": data.get("gateway_response"),
        "metadata": data.get("metadata") or {},
    }


def verify_webhook_signature(body: bytes, signature: Optional[str]) -> bool:
    """Check the x-paystack-signature header: HMAC-SHA512 of the raw body."""
    if not signature or not settings.PAYSTACK_SECRET_KEY:
        return False
    expected = hmac.new(settings.PAYSTACK_SECRET_KEY.encode("utf-8"), body, hashlib.sha512).hexdigest()
    return hmac.compare_digest(expected, signature)


def charge_amount(charge: Dict[str, Any]) -> Optional[Decimal]:
    """NGN amount of a webhook charge payload, or None when absent or malformed."""
    try:
        return from_minor_units(int(charge.get("amount")))
    except (TypeError, ValueError):
        return None
