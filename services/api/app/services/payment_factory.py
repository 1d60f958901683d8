from __future__ import annotations

import os

from services.api.app.services.payment_base import PaymentGatewayAdapter
from services.api.app.services.payment_mock import MockPaymentAdapter


def get_payment_adapter() -> PaymentGatewayAdapter:
    """Select the payment gateway.

    Defaults to the mock adapter so tests and local dev never open real payment sessions.
    Set SHOP_PAYMENT_ADAPTER=payrexx plus the PAYREXX_* variables for production.
    """

    mode = os.getenv("SHOP_PAYMENT_ADAPTER", "mock").strip().lower()

    if mode == "mock":
        return MockPaymentAdapter()

    if mode == "payrexx":
        from services.api.app.services.payment_payrexx import PayrexxPaymentAdapter

        return PayrexxPaymentAdapter.from_env()

    raise ValueError(f"Unknown SHOP_PAYMENT_ADAPTER={mode!r}. Expected mock or payrexx.")
