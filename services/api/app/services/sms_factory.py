from __future__ import annotations

import os

from services.api.app.services.sms_base import SmsAdapter
from services.api.app.services.sms_mock import MockSmsAdapter


def get_sms_adapter() -> SmsAdapter:
    """Select the SMS gateway.

    Defaults to the mock adapter so tests and local dev never text real customers.
    Set SHOP_SMS_ADAPTER=bulkgate plus the BULKGATE_* credentials for production.
    """

    mode = os.getenv("SHOP_SMS_ADAPTER", "mock").strip().lower()

    if mode == "mock":
        return MockSmsAdapter()

    if mode == "bulkgate":
        from services.api.app.services.sms_bulkgate import BulkGateSmsAdapter

        return BulkGateSmsAdapter.from_env()

    raise ValueError(f"Unknown SHOP_SMS_ADAPTER={mode!r}. Expected mock or bulkgate.")
