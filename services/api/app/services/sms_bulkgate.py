from __future__ import annotations

import logging
import os
from dataclasses import dataclass

import httpx
from services.api.app.services.sms_base import (
    SmsAdapterError,
    SmsConfigError,
    SmsRejectedError,
    SmsResult,
)
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

logger = logging.getLogger(__name__)

BULKGATE_API_URL = "https://portal.bulkgate.com/api/1.0/simple/transactional"


@dataclass(frozen=True, slots=True)
class _BulkGateConfig:
    api_url: str
    application_id: str
    application_token: str
    sender_id: str
    sender_id_value: str
    timeout_seconds: float


class BulkGateSmsAdapter:
    """SMS adapter for the BulkGate simple transactional API.

    Only connection failures are retried: the request never reached BulkGate, so a retry
    cannot produce a second message. Timeouts and HTTP errors fail immediately.

    Env vars:
    - SHOP_SMS_ADAPTER=bulkgate
    - BULKGATE_APP_ID, BULKGATE_APP_TOKEN (required)
    - BULKGATE_SENDER_ID (default: gText)
    - BULKGATE_SENDER_VALUE (default: DonerShop, max ~11 ASCII chars for gText)
    - BULKGATE_API_URL (default: the public BulkGate endpoint)
    - SHOP_SMS_TIMEOUT_SECONDS (default: 5)
    """

    vendor = "BULKGATE"

    def __init__(self, cfg: _BulkGateConfig, transport: httpx.BaseTransport | None = None) -> None:
        self._cfg = cfg
        self._transport = transport

    @classmethod
    def from_env(cls, transport: httpx.BaseTransport | None = None) -> "BulkGateSmsAdapter":
        return cls(
            _BulkGateConfig(
                api_url=os.getenv("BULKGATE_API_URL", BULKGATE_API_URL),
                application_id=os.getenv("BULKGATE_APP_ID", "").strip(),
                application_token=os.getenv("BULKGATE_APP_TOKEN", "").strip(),
                sender_id=os.getenv("BULKGATE_SENDER_ID", "gText"),
                sender_id_value=os.getenv("BULKGATE_SENDER_VALUE", "DonerShop"),
                timeout_seconds=float(os.getenv("SHOP_SMS_TIMEOUT_SECONDS", "5")),
            ),
            transport=transport,
        )

    def send(self, number: str, text: str) -> SmsResult:
        missing = [
            name
            for name, value in (
                ("BULKGATE_APP_ID", self._cfg.application_id),
                ("BULKGATE_APP_TOKEN", self._cfg.application_token),
            )
            if not value
        ]
        if missing:
            raise SmsConfigError(missing)

        payload = {
            "application_id": self._cfg.application_id,
            "application_token": self._cfg.application_token,
            "number": number,
            "text": text,
            "sender_id": self._cfg.sender_id,
            "sender_id_value": self._cfg.sender_id_value,
        }

        try:
            response = self._post(payload)
        except httpx.HTTPError as e:
            raise SmsAdapterError(f"BulkGate request failed: {type(e).__name__}: {e}") from e

        if not response.is_success:
            raise SmsRejectedError(response.status_code, response.text)

        return SmsResult(number=number, provider_message_id=_extract_sms_id(response))

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        retry=retry_if_exception_type(httpx.ConnectError),
        reraise=True,
    )
    def _post(self, payload: dict) -> httpx.Response:
        with httpx.Client(timeout=self._cfg.timeout_seconds, transport=self._transport) as client:
            return client.post(self._cfg.api_url, json=payload)


def _extract_sms_id(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        logger.warning("BulkGate returned a non-JSON body: %s", response.text[:200])
        return None

    data = body.get("data") if isinstance(body, dict) else None
    if isinstance(data, dict) and data.get("sms_id") is not None:
        return str(data["sms_id"])
    return None
