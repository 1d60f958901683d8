from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


class SmsAdapterError(Exception):
    """Base class for SMS gateway errors."""


class SmsConfigError(SmsAdapterError):
    def __init__(self, missing: list[str]) -> None:
        super().__init__(f"SMS gateway not configured. Missing env: {', '.join(missing)}")
        self.missing = missing


class SmsRejectedError(SmsAdapterError):
    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"SMS gateway rejected the message: HTTP {status_code}: {body[:200]}")
        self.status_code = status_code
        self.body = body


@dataclass(frozen=True, slots=True)
class SmsResult:
    number: str
    provider_message_id: str | None = None


class SmsAdapter(Protocol):
    vendor: str

    def send(self, number: str, text: str) -> SmsResult: ...
