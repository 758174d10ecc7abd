"""
Tests for the HTTP surface: auth, driver repayment routes and gateway callbacks.
"""
import hashlib
import hmac
import json
import pytest
from datetime import timedelta
from decimal import Decimal
from fastapi.testclient import TestClient
from chainmove.main import app
from chainmove.api.dependencies import get_unit_of_work
from chainmove.core.config import settings
from chainmove.core.exceptions import GatewayError
from chainmove.core.security import create_access_token, get_password_hash
from chainmove.db.session import get_db
from chainmove.db.unit_of_work import UnitOfWork
from chainmove.models import DriverPayment, PaymentStatus, HirePurchaseContract
from chainmove.services import gateway_service
from chainmove.services.payment_store import create_payment
from conftest import START_DATE, add_user

SECRET = "sk_test_webhook_secret"


@pytest.fixture
def client(session_factory, monkeypatch):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_unit_of_work] = lambda: UnitOfWork(session_factory)
    monkeypatch.setattr(settings, "PAYSTACK_SECRET_KEY", SECRET)
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth_headers(user_id, username="driver1"):
    token = create_access_token(data={"sub": username, "user_id": user_id})
    return {"Authorization": f"Bearer {token}"}


def send_webhook(client, event, secret=SECRET):
    body = json.dumps(event).encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), body, hashlib.sha512).hexdigest()
    return client.post(
        "/api/payments/webhook",
        content=body,
        headers={"x-paystack-signature": signature, "Content-Type": "application/json"}
    )


def charge_event(reference, amount_kobo, event="charge.success", payment_type="driver_repayment"):
    return {
        "event": event,
        "data": {
            "reference": reference,
            "amount": amount_kobo,
            "channel": "card",
            "gateway_response": "Declined" if event == "charge.failed" else "Approved",
            "metadata": {"paymentType": payment_type},
        },
    }


def test_login(client, db):
    add_user(db, "login_driver", hashed_password=get_password_hash("s3cret-pass"))
    db.commit()

    response = client.post("/api/auth/login", json={"username": "login_driver", "password": "s3cret-pass"})
    assert response.status_code == 200
    assert "access_token" in response.json()

    response = client.post("/api/auth/login", json={"username": "login_driver", "password": "wrong"})
    assert response.status_code == 401


def test_get_contract(client, ledger):
    response = client.get("/api/driver/contract", headers=auth_headers(ledger.driver_id))

    assert response.status_code == 200
    body = response.json()
    assert body["id"] == ledger.contract_id
    assert Decimal(body["remaining_balance"]) == Decimal("100000")
    assert body["next_due_date"] == (START_DATE + timedelta(days=7)).isoformat()
    assert body["status"] == "ACTIVE"


def test_driver_routes_require_driver_token(client, ledger):
    assert client.get("/api/driver/contract").status_code == 401
    assert client.get("/api/driver/contract", headers={"Authorization": "Bearer junk"}).status_code == 401

    response = client.get("/api/driver/contract", headers=auth_headers(ledger.investor_a_id, "investor_a"))
    assert response.status_code == 403


def test_initialize_payment(client, db, ledger, monkeypatch):
    calls = []

    def fake_initialize(payment, email):
        calls.append((payment.external_ref, email))
        return {"message": "Authorization URL created", "authorization_url": "https://checkout.test/abc",
                "access_code": "abc"}

    monkeypatch.setattr(gateway_service, "initialize_transaction", fake_initialize)

    response = client.post(
        "/api/driver/payments",
        json={"contract_id": ledger.contract_id, "amount": "5000"},
        headers=auth_headers(ledger.driver_id)
    )

    assert response.status_code == 201
    body = response.json()
    assert body["payment"]["status"] == "PENDING"
    assert Decimal(body["payment"]["amount"]) == Decimal("5000")
    assert body["authorization_url"] == "https://checkout.test/abc"
    assert calls == [(body["payment"]["external_ref"], "driver1@example.com")]


def test_initialize_payment_marks_failed_when_gateway_refuses(client, db, ledger, monkeypatch):
    def refusing_initialize(payment, email):
        raise GatewayError("Invalid key")

    monkeypatch.setattr(gateway_service, "initialize_transaction", refusing_initialize)

    response = client.post(
        "/api/driver/payments",
        json={"contract_id": ledger.contract_id, "amount": "5000", "email": "payer@example.com"},
        headers=auth_headers(ledger.driver_id)
    )

    assert response.status_code == 502
    assert response.json()["detail"] == "Invalid key"
    payment = db.query(DriverPayment).one()
    assert payment.status == PaymentStatus.FAILED
    assert payment.failed_reason == "Invalid key"
    assert payment.payer_email == "payer@example.com"


def test_initialize_payment_validation(client, ledger):
    headers = auth_headers(ledger.driver_id)

    response = client.post("/api/driver/payments", json={"contract_id": ledger.contract_id, "amount": "0"},
                           headers=headers)
    assert response.status_code == 422

    response = client.post("/api/driver/payments", json={"contract_id": ledger.contract_id, "amount": "200000"},
                           headers=headers)
    assert response.status_code == 400
    assert "remaining balance" in response.json()["detail"]


def test_list_payments(client, db, ledger):
    for amount in ("1000", "2000"):
        create_payment(db, ledger.contract_id, ledger.driver_id, Decimal(amount))

    response = client.get("/api/driver/payments", params={"limit": 500}, headers=auth_headers(ledger.driver_id))

    assert response.status_code == 200
    assert [Decimal(p["amount"]) for p in response.json()] == [Decimal("2000"), Decimal("1000")]


def test_webhook_rejects_bad_signature(client, db, ledger):
    payment = create_payment(db, ledger.contract_id, ledger.driver_id, Decimal("5000"))

    response = send_webhook(client, charge_event(payment.external_ref, 500000), secret="wrong-secret")

    assert response.status_code == 401
    db.expire_all()
    assert db.get(DriverPayment, payment.id).status == PaymentStatus.PENDING


def test_webhook_confirms_once(client, db, ledger):
    payment = create_payment(db, ledger.contract_id, ledger.driver_id, Decimal("5000"))

    first = send_webhook(client, charge_event(payment.external_ref, 500000))
    second = send_webhook(client, charge_event(payment.external_ref, 500000))

    assert first.status_code == 200
    assert first.json()["already_processed"] is False
    assert second.status_code == 200
    assert second.json()["already_processed"] is True

    db.expire_all()
    assert db.get(HirePurchaseContract, ledger.contract_id).amount_paid == Decimal("5000.00")
    assert db.get(DriverPayment, payment.id).status == PaymentStatus.CONFIRMED


def test_webhook_failed_charge(client, db, ledger):
    payment = create_payment(db, ledger.contract_id, ledger.driver_id, Decimal("5000"))

    response = send_webhook(client, charge_event(payment.external_ref, 500000, event="charge.failed"))

    assert response.status_code == 200
    db.expire_all()
    row = db.get(DriverPayment, payment.id)
    assert row.status == PaymentStatus.FAILED
    assert row.failed_reason == "Declined"

    response = send_webhook(client, charge_event(payment.external_ref, 500000))
    assert response.status_code == 409
    assert response.json()["detail"] == "Declined"


def test_webhook_ignores_other_payment_types(client, ledger):
    response = send_webhook(client, charge_event("wallet_ref", 100000, payment_type="wallet_funding"))

    assert response.status_code == 200
    assert response.json() == {"status": "ignored"}


def test_webhook_unknown_reference(client, ledger):
    response = send_webhook(client, charge_event("nobody_knows_this", 100000))
    assert response.status_code == 404


def test_verify_payment(client, db, ledger, monkeypatch):
    payment = create_payment(db, ledger.contract_id, ledger.driver_id, Decimal("5000"))

    monkeypatch.setattr(gateway_service, "verify_transaction", lambda reference: {
        "status": "success",
        "reference": reference,
        "amount": Decimal("5000.00"),
        "channel": "bank_transfer",
        "gateway_response": "Approved",
        "metadata": {},
    })

    response = client.post(f"/api/payments/verify/{payment.external_ref}", headers=auth_headers(ledger.driver_id))

    assert response.status_code == 200
    body = response.json()
    assert body["already_processed"] is False
    assert body["distribution"]["investor_credits_count"] == 2
    assert Decimal(body["contract"]["amount_paid"]) == Decimal("5000")


def test_verify_payment_of_another_driver_is_hidden(client, db, ledger):
    payment = create_payment(db, ledger.contract_id, ledger.driver_id, Decimal("5000"))

    response = client.post(
        f"/api/payments/verify/{payment.external_ref}",
        headers=auth_headers(ledger.other_driver_id, "driver2")
    )
    assert response.status_code == 404


def test_verify_abandoned_payment_marks_failed(client, db, ledger, monkeypatch):
    payment = create_payment(db, ledger.contract_id, ledger.driver_id, Decimal("5000"))
    monkeypatch.setattr(gateway_service, "verify_transaction", lambda reference: {
        "status": "abandoned", "reference": reference, "amount": None,
        "channel": None, "gateway_response": "Customer abandoned checkout", "metadata": {},
    })

    response = client.post(f"/api/payments/verify/{payment.external_ref}", headers=auth_headers(ledger.driver_id))

    assert response.status_code == 200
    assert response.json()["payment"]["status"] == "FAILED"


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}
