from urllib.parse import urlparse

import pytest
from fastapi.testclient import TestClient

from application.dtos.payments import CreditCardOrderInput
from application.services.payment_service import PaymentService


ITEMS = [{"name": "A", "unit_price": 100, "quantity": 2}]


@pytest.fixture
def client():
    from main import app
    return TestClient(app)


def test_service_prepare_returns_summary(ecpay):
    service = PaymentService(gateway=ecpay)
    summary = service.prepare_order(CreditCardOrderInput(id="SVC1", items=ITEMS))
    assert summary.id == "SVC1"
    assert summary.provider == "ecpay"
    assert summary.total_price == 200
    assert summary.state == "pending"
    assert summary.commitable
    assert summary.checkout_url == "http://localhost:3000/payments/ecpay/checkout/SVC1"


def test_prepare_order_endpoint_and_checkout_page(client):
    resp = client.post("/api/v1/payments/ecpay/orders", json={"items": ITEMS, "channel": "credit_card"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["code"] == 0
    data = body["data"]
    assert data["total_price"] == 200
    assert data["state"] == "pending"

    checkout = client.get(urlparse(data["checkout_url"]).path)
    assert checkout.status_code == 200
    assert "AioCheckOut/V5" in checkout.text


def test_prepare_order_endpoint_validation_error(client):
    resp = client.post(
        "/api/v1/payments/ecpay/orders",
        json={"items": ITEMS, "channel": "virtual_account", "memory": True, "member_id": "m1"},
    )
    assert resp.status_code == 422
    body = resp.json()
    assert body["error"]["type"] == "DomainValidationError"
    assert body["error"]["field"] == "memory"


def test_request_validation_error_envelope(client):
    resp = client.post("/api/v1/payments/ecpay/orders", json={"items": []})
    assert resp.status_code == 422
    assert resp.json()["error"]["type"] == "ValidationError"


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["data"] == {"status": "healthy"}
