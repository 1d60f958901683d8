from __future__ import annotations

import logging
from uuid import uuid4

from services.api.app.services.sms_base import SmsAdapterError, SmsResult

logger = logging.getLogger(__name__)


class MockSmsAdapter:
    """Records messages instead of sending them. Used for local dev and tests."""

    vendor = "SMS_MOCK"

    def __init__(self, fail_with: Exception | None = None) -> None:
        self._fail_with = fail_with
        self.sent: list[tuple[str, str]] = []
        self.attempts = 0

    def send(self, number: str, text: str) -> SmsResult:
        self.attempts += 1
        if self._fail_with is not None:
            raise self._fail_with

        if not number.startswith("+"):
            raise SmsAdapterError(f"Invalid destination number: {number!r}")

        self.sent.append((number, text))
        logger.info("Mock SMS to %s: %s", number, text)
        return SmsResult(number=number, provider_message_id=f"mock_{uuid4().hex[:10]}")
