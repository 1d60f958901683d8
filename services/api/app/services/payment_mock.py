from __future__ import annotations

import os
from uuid import uuid4

from services.api.app.services.payment_base import PaymentSession


class MockPaymentAdapter:
    """Skips the gateway and sends the customer straight to the success page."""

    provider = "mock"

    def __init__(self, app_base_url: str | None = None) -> None:
        base = app_base_url or os.getenv("APP_BASE_URL", "http://localhost:3000")
        self._app_base_url = base.rstrip("/")

    def create_session(self, order_id: str, amount_cents: int, currency: str) -> PaymentSession:
        del amount_cents, currency

        return PaymentSession(
            gateway_id=f"mock_{uuid4().hex[:10]}",
            redirect_url=f"{self._app_base_url}/checkout/success?order={order_id}",
        )
