from __future__ import annotations

from packages.shared.schemas.order_v1 import OrderLineV1, OrderStatusV1
from pydantic import BaseModel, StrictInt


class OrderCreateRequest(BaseModel):
    # Emptiness and positivity are checked by the order store so the API and direct
    # callers share one set of rules.
    lines: list[OrderLineV1]
    total_cents: StrictInt
    customer_email: str | None = None
    customer_phone: str | None = None


class OrderCreateResponse(BaseModel):
    id: str
    status: OrderStatusV1


class OrderStatusUpdateRequest(BaseModel):
    status: str
