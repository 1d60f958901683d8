"""Shared order schema (v1).

These models are shared between the backend, the customer client and the kitchen
dashboard. They should remain stable and backwards compatible once shipped.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictInt


class OrderStatusV1(str, Enum):
    IN_QUEUE = "in_queue"
    PREPARING = "preparing"
    READY = "ready"
    PICKED_UP = "picked_up"


# Order of the kitchen workflow. Used by the forward-only status policy.
STATUS_SEQUENCE: tuple[OrderStatusV1, ...] = (
    OrderStatusV1.IN_QUEUE,
    OrderStatusV1.PREPARING,
    OrderStatusV1.READY,
    OrderStatusV1.PICKED_UP,
)


class PaymentStatusV1(str, Enum):
    UNPAID = "unpaid"
    PAID = "paid"
    FAILED = "failed"


class OptionChoiceV1(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    label: str


class OptionGroupV1(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    label: str
    type: str = "single"
    required: bool | None = None
    choices: list[OptionChoiceV1] = Field(default_factory=list)


class MenuItemSnapshotV1(BaseModel):
    """The menu item as the customer saw it when ordering."""

    model_config = ConfigDict(extra="allow")

    id: str | None = None
    name: str
    price_cents: int | None = None
    emoji: str | None = None
    options: list[OptionGroupV1] | None = None


class OrderLineV1(BaseModel):
    """One menu item selection within an order.

    Unknown keys are kept so a stored line reads back exactly as submitted.
    `item` is either a full menu item snapshot or a bare item name.
    """

    model_config = ConfigDict(extra="allow")

    id: str | None = None
    item: MenuItemSnapshotV1 | str | None = None
    qty: StrictInt = Field(..., ge=1)

    # Option group id -> selected choice ids.
    specs: dict[str, list[str]] | None = None
    note: str | None = None


class OrderV1(BaseModel):
    """Public order view, used for customer polling.

    `lines` carries the stored documents unchanged: the shape a client submitted (validated
    as OrderLineV1 on create) is the shape it reads back.
    """

    id: str
    lines: list[dict[str, Any]]
    total_cents: int
    currency: str
    status: OrderStatusV1
    payment_status: PaymentStatusV1
    created_at: str
    updated_at: str


class KitchenOrderV1(OrderV1):
    """Order view for PIN-holding kitchen staff, including contact and payment details."""

    customer_email: str | None = None
    customer_phone: str | None = None
    sms_notified: bool = False
    payment_provider: str | None = None
    payment_ref: str | None = None
