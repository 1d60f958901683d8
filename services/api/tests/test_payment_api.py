from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from services.api.app.services.payment_base import (
    PaymentConfigError,
    PaymentGatewayError,
    PaymentGatewayResponseError,
)

PIN = {"x-kitchen-pin": "4321"}


class _RaisingAdapter:
    provider = "payrexx"

    def __init__(self, exc: Exception) -> None:
        self._exc = exc

    def create_session(self, order_id: str, amount_cents: int, currency: str) -> object:
        del order_id, amount_cents, currency
        raise self._exc


@pytest.fixture()
def client(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[TestClient]:
    db_path = tmp_path / "shop_payments.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite+pysqlite:///{db_path}")
    monkeypatch.setenv("SHOP_DB_AUTO_CREATE", "true")
    monkeypatch.setenv("SHOP_KITCHEN_PIN", "4321")
    monkeypatch.setenv("SHOP_PAYMENT_ADAPTER", "mock")
    monkeypatch.setenv("APP_BASE_URL", "https://shop.example.ch")

    from services.api.app.main import app

    with TestClient(app) as c:
        yield c


def _create(client: TestClient) -> str:
    resp = client.post(
        "/orders", json={"lines": [{"item": "Döner", "qty": 1}], "total_cents": 1250}
    )
    assert resp.status_code == 201
    return resp.json()["id"]


def _kitchen_view(client: TestClient, order_id: str) -> dict:
    orders = client.get("/orders", headers=PIN).json()
    return next(o for o in orders if o["id"] == order_id)


def _payment_status(client: TestClient, order_id: str) -> str:
    return client.get(f"/orders/{order_id}").json()["payment_status"]


def test_start_payment_with_mock_gateway(client: TestClient) -> None:
    order_id = _create(client)

    resp = client.post("/payments/start", json={"orderId": order_id})
    assert resp.status_code == 200
    assert resp.json() == {
        "redirectUrl": f"https://shop.example.ch/checkout/success?order={order_id}"
    }

    view = _kitchen_view(client, order_id)
    assert view["payment_provider"] == "mock"
    assert view["payment_ref"].startswith("mock_")
    assert view["payment_status"] == "unpaid"


def test_start_payment_requires_order_id(client: TestClient) -> None:
    assert client.post("/payments/start", json={}).status_code == 400


def test_start_payment_unknown_order(client: TestClient) -> None:
    assert client.post("/payments/start", json={"orderId": "nope"}).status_code == 404


def test_start_payment_for_paid_order_conflicts(client: TestClient) -> None:
    order_id = _create(client)
    client.post(
        "/payments/webhook",
        json={"transaction": {"status": "confirmed", "referenceId": order_id, "id": 7}},
    )

    assert client.post("/payments/start", json={"orderId": order_id}).status_code == 409


@pytest.mark.parametrize(
    ("exc", "status"),
    [
        (PaymentGatewayError("connection refused"), 502),
        (PaymentGatewayResponseError("HTTP 500", status_code=500), 502),
        (PaymentConfigError(["PAYREXX_API_KEY"]), 500),
    ],
)
def test_start_payment_maps_gateway_errors(
    client: TestClient, monkeypatch: pytest.MonkeyPatch, exc: Exception, status: int
) -> None:
    import services.api.app.routers.payment as payment_router

    monkeypatch.setattr(payment_router, "get_payment_adapter", lambda: _RaisingAdapter(exc))
    order_id = _create(client)

    resp = client.post("/payments/start", json={"orderId": order_id})
    assert resp.status_code == status
    assert _kitchen_view(client, order_id)["payment_ref"] is None


def test_unknown_payment_adapter_is_server_error(
    client: TestClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("SHOP_PAYMENT_ADAPTER", "paypal")
    order_id = _create(client)

    assert client.post("/payments/start", json={"orderId": order_id}).status_code == 500


def test_webhook_marks_paid_and_is_idempotent(client: TestClient) -> None:
    order_id = _create(client)
    event = {"transaction": {"status": "confirmed", "referenceId": order_id, "id": 991}}

    for _ in range(2):
        resp = client.post("/payments/webhook", json=event)
        assert resp.status_code == 200
        assert resp.json() == {"ok": True}

    assert _payment_status(client, order_id) == "paid"
    assert _kitchen_view(client, order_id)["payment_ref"] == "991"


def test_webhook_accepts_form_encoding(client: TestClient) -> None:
    order_id = _create(client)

    resp = client.post(
        "/payments/webhook",
        data={
            "transaction[status]": "confirmed",
            "transaction[referenceId]": order_id,
            "transaction[id]": "55",
        },
    )
    assert resp.status_code == 200
    assert _payment_status(client, order_id) == "paid"


def test_webhook_failure_then_success(client: TestClient) -> None:
    order_id = _create(client)

    client.post(
        "/payments/webhook",
        json={"transaction": {"status": "error", "referenceId": order_id, "id": 1}},
    )
    assert _payment_status(client, order_id) == "failed"

    client.post(
        "/payments/webhook",
        json={"transaction": {"status": "confirmed", "referenceId": order_id, "id": 2}},
    )
    assert _payment_status(client, order_id) == "paid"


def test_webhook_late_failure_keeps_paid(client: TestClient) -> None:
    order_id = _create(client)

    client.post(
        "/payments/webhook",
        json={"transaction": {"status": "confirmed", "referenceId": order_id, "id": 1}},
    )
    client.post(
        "/payments/webhook",
        json={"transaction": {"status": "error", "referenceId": order_id, "id": 2}},
    )

    assert _payment_status(client, order_id) == "paid"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"content": b"not json at all", "headers": {"content-type": "application/json"}},
        {"json": []},
        {"json": {"transaction": {"status": "confirmed"}}},
        {"json": {"transaction": {"status": "confirmed", "referenceId": "unknown"}}},
        {"json": {"transaction": {"status": "waiting", "referenceId": "unknown"}}},
    ],
)
def test_webhook_always_acknowledges(client: TestClient, kwargs: dict) -> None:
    resp = client.post("/payments/webhook", **kwargs)
    assert resp.status_code == 200
    assert resp.json() == {"ok": True}


def test_pending_webhook_leaves_order_unpaid(client: TestClient) -> None:
    order_id = _create(client)

    client.post(
        "/payments/webhook",
        json={"transaction": {"status": "waiting", "referenceId": order_id, "id": 3}},
    )
    assert _payment_status(client, order_id) == "unpaid"
