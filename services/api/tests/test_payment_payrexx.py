from __future__ import annotations

from urllib.parse import parse_qs

import httpx
import pytest
from services.api.app.services.payment_base import (
    PaymentConfigError,
    PaymentGatewayError,
    PaymentGatewayResponseError,
)
from services.api.app.services.payment_factory import get_payment_adapter
from services.api.app.services.payment_mock import MockPaymentAdapter
from services.api.app.services.payment_payrexx import PayrexxPaymentAdapter, parse_webhook


@pytest.fixture(autouse=True)
def _payrexx_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PAYREXX_INSTANCE", "doner-shop")
    monkeypatch.setenv("PAYREXX_API_KEY", "key-123")
    monkeypatch.setenv("APP_BASE_URL", "https://shop.example.ch/")
    monkeypatch.delenv("PAYREXX_BASE_URL", raising=False)
    monkeypatch.delenv("PAYREXX_PAYMENT_METHODS", raising=False)


def test_create_session_posts_gateway_form() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={"status": "success", "data": [{"id": 42, "link": "https://pay.example/42"}]},
        )

    adapter = PayrexxPaymentAdapter.from_env(transport=httpx.MockTransport(handler))
    session = adapter.create_session("order-1", 2500, "CHF")

    assert session.gateway_id == "42"
    assert session.redirect_url == "https://pay.example/42"

    request = seen[0]
    assert request.url.path == "/v1.0/Gateway"
    assert request.url.params["instance"] == "doner-shop"
    assert request.headers["authorization"] == "Bearer key-123"

    form = parse_qs(request.content.decode())
    assert form["amount"] == ["2500"]
    assert form["referenceId"] == ["order-1"]
    assert form["paymentMethods[]"] == ["twint"]
    assert form["successRedirectUrl"] == [
        "https://shop.example.ch/checkout/success?order=order-1"
    ]


def test_create_session_without_config(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("PAYREXX_API_KEY")
    monkeypatch.delenv("APP_BASE_URL")

    with pytest.raises(PaymentConfigError) as exc_info:
        PayrexxPaymentAdapter.from_env().create_session("order-1", 2500, "CHF")
    assert exc_info.value.missing == ["PAYREXX_API_KEY", "APP_BASE_URL"]


def test_gateway_http_error() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(503, text="maintenance"))

    with pytest.raises(PaymentGatewayResponseError) as exc_info:
        PayrexxPaymentAdapter.from_env(transport=transport).create_session("o", 100, "CHF")
    assert exc_info.value.status_code == 503


def test_gateway_response_without_link() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"data": []}))

    with pytest.raises(PaymentGatewayResponseError):
        PayrexxPaymentAdapter.from_env(transport=transport).create_session("o", 100, "CHF")


def test_gateway_timeout() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    adapter = PayrexxPaymentAdapter.from_env(transport=httpx.MockTransport(handler))
    with pytest.raises(PaymentGatewayError):
        adapter.create_session("o", 100, "CHF")


@pytest.mark.parametrize(
    ("body", "outcome"),
    [
        ({"transaction": {"status": "confirmed", "referenceId": "o1", "id": 5}}, "paid"),
        ({"transaction": {"status": "authorized", "referenceId": "o1"}}, "paid"),
        ({"event": "payment.succeeded", "data": {"reference_id": "o1"}}, "paid"),
        ({"transaction": {"status": "error", "referenceId": "o1"}}, "failed"),
        ({"event": "payment.failed", "data": {"referenceId": "o1"}}, "failed"),
        ({"transaction": {"status": "waiting", "referenceId": "o1"}}, None),
    ],
)
def test_parse_webhook_outcomes(body: dict, outcome: str | None) -> None:
    event = parse_webhook(body)
    assert event.reference_id == "o1"
    assert event.outcome == outcome


def test_parse_webhook_tolerates_garbage() -> None:
    event = parse_webhook({"transaction": "nope", "event": 3})
    assert event.reference_id is None
    assert event.transaction_id is None
    assert event.outcome is None


def test_factory_selects_adapter(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("SHOP_PAYMENT_ADAPTER", raising=False)
    assert isinstance(get_payment_adapter(), MockPaymentAdapter)

    monkeypatch.setenv("SHOP_PAYMENT_ADAPTER", "payrexx")
    assert isinstance(get_payment_adapter(), PayrexxPaymentAdapter)

    monkeypatch.setenv("SHOP_PAYMENT_ADAPTER", "stripe")
    with pytest.raises(ValueError):
        get_payment_adapter()
