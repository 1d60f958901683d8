from __future__ import annotations

import logging
import os
from dataclasses import dataclass

import httpx
from services.api.app.services.payment_base import (
    PaymentConfigError,
    PaymentGatewayError,
    PaymentGatewayResponseError,
    PaymentSession,
    PaymentWebhookEvent,
)
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class _PayrexxConfig:
    base_url: str
    instance: str
    api_key: str
    app_base_url: str
    payment_methods: tuple[str, ...]
    timeout_seconds: float


class PayrexxPaymentAdapter:
    """Creates Payrexx gateway sessions (TWINT by default).

    The gateway redirects the customer back to APP_BASE_URL/checkout/{success,failed,cancel}.
    The outcome arrives later through the payment webhook, keyed by referenceId = order id.

    Env vars:
    - SHOP_PAYMENT_ADAPTER=payrexx
    - PAYREXX_INSTANCE, PAYREXX_API_KEY, APP_BASE_URL (required)
    - PAYREXX_BASE_URL (default: https://api.payrexx.com/v1.0)
    - PAYREXX_PAYMENT_METHODS (default: twint, comma separated)
    - SHOP_PAYMENT_TIMEOUT_SECONDS (default: 5)
    """

    provider = "payrexx"

    def __init__(self, cfg: _PayrexxConfig, transport: httpx.BaseTransport | None = None) -> None:
        self._cfg = cfg
        self._transport = transport

    @classmethod
    def from_env(cls, transport: httpx.BaseTransport | None = None) -> "PayrexxPaymentAdapter":
        methods = os.getenv("PAYREXX_PAYMENT_METHODS", "twint")
        base_url = os.getenv("PAYREXX_BASE_URL", "https://api.payrexx.com/v1.0")
        return cls(
            _PayrexxConfig(
                base_url=base_url.rstrip("/"),
                instance=os.getenv("PAYREXX_INSTANCE", "").strip(),
                api_key=os.getenv("PAYREXX_API_KEY", "").strip(),
                app_base_url=os.getenv("APP_BASE_URL", "").strip().rstrip("/"),
                payment_methods=tuple(m.strip() for m in methods.split(",") if m.strip()),
                timeout_seconds=float(os.getenv("SHOP_PAYMENT_TIMEOUT_SECONDS", "5")),
            ),
            transport=transport,
        )

    def create_session(self, order_id: str, amount_cents: int, currency: str) -> PaymentSession:
        missing = [
            name
            for name, value in (
                ("PAYREXX_INSTANCE", self._cfg.instance),
                ("PAYREXX_API_KEY", self._cfg.api_key),
                ("APP_BASE_URL", self._cfg.app_base_url),
            )
            if not value
        ]
        if missing:
            raise PaymentConfigError(missing)

        base = self._cfg.app_base_url
        form: dict[str, str | list[str]] = {
            "amount": str(max(1, round(amount_cents))),
            "currency": currency or "CHF",
            "referenceId": order_id,
            "purpose": f"Bestellung {order_id}",
            "successRedirectUrl": f"{base}/checkout/success?order={order_id}",
            "failedRedirectUrl": f"{base}/checkout/failed?order={order_id}",
            "cancelRedirectUrl": f"{base}/checkout/cancel?order={order_id}",
            "paymentMethods[]": list(self._cfg.payment_methods),
        }

        try:
            response = self._post(form)
        except httpx.HTTPError as e:
            raise PaymentGatewayError(f"Payrexx request failed: {type(e).__name__}: {e}") from e

        if not response.is_success:
            logger.error("Payrexx gateway error %s: %s", response.status_code, response.text[:500])
            raise PaymentGatewayResponseError(
                f"Payrexx gateway returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise PaymentGatewayResponseError("Payrexx returned a non-JSON body") from e

        data = body.get("data") if isinstance(body, dict) else None
        gateway = data[0] if isinstance(data, list) and data else {}
        link = gateway.get("link") if isinstance(gateway, dict) else None
        gateway_id = gateway.get("id") if isinstance(gateway, dict) else None

        if not link or gateway_id is None:
            logger.error("Unexpected Payrexx response: %s", body)
            raise PaymentGatewayResponseError("Payrexx response is missing the gateway link")

        return PaymentSession(gateway_id=str(gateway_id), redirect_url=str(link))

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        retry=retry_if_exception_type(httpx.ConnectError),
        reraise=True,
    )
    def _post(self, form: dict[str, str | list[str]]) -> httpx.Response:
        with httpx.Client(timeout=self._cfg.timeout_seconds, transport=self._transport) as client:
            return client.post(
                f"{self._cfg.base_url}/Gateway",
                params={"instance": self._cfg.instance},
                headers={"Authorization": f"Bearer {self._cfg.api_key}"},
                data=form,
            )


_SUCCESS_STATUSES = {"confirmed", "authorized"}


def parse_webhook(body: dict) -> PaymentWebhookEvent:
    """Read a Payrexx webhook body.

    Payrexx nests the payload under `transaction`, `gateway` or `data` depending on the
    event type; the order id travels as referenceId.
    """

    event = body.get("event")
    event = event if isinstance(event, str) else ""

    data = body.get("data") or body.get("transaction") or body.get("gateway") or {}
    if not isinstance(data, dict):
        data = {}

    reference_id = data.get("referenceId") or data.get("reference_id")
    transaction_id = data.get("id")
    status = data.get("status")

    outcome: str | None = None
    if "succeeded" in event or status in _SUCCESS_STATUSES:
        outcome = "paid"
    elif status == "error" or "failed" in event:
        outcome = "failed"

    return PaymentWebhookEvent(
        reference_id=str(reference_id) if reference_id else None,
        transaction_id=str(transaction_id) if transaction_id is not None else None,
        outcome=outcome,
    )
