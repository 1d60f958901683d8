from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


class PaymentGatewayError(Exception):
    """Base class for payment gateway errors."""


class PaymentConfigError(PaymentGatewayError):
    def __init__(self, missing: list[str]) -> None:
        super().__init__(f"Payment gateway not configured. Missing env: {', '.join(missing)}")
        self.missing = missing


class PaymentAlreadyPaidError(Exception):
    def __init__(self, order_id: str) -> None:
        super().__init__(f"Order {order_id} is already paid")
        self.order_id = order_id


class PaymentGatewayResponseError(PaymentGatewayError):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True, slots=True)
class PaymentSession:
    gateway_id: str
    redirect_url: str


class PaymentGatewayAdapter(Protocol):
    provider: str

    def create_session(
        self,
        order_id: str,
        amount_cents: int,
        currency: str,
    ) -> PaymentSession: ...


@dataclass(frozen=True, slots=True)
class PaymentWebhookEvent:
    reference_id: str | None
    transaction_id: str | None
    # "paid", "failed" or None when the event carries no final outcome.
    outcome: str | None
