from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class PaymentStartRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    order_id: str | None = Field(default=None, alias="orderId")


class PaymentStartResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    redirect_url: str = Field(..., serialization_alias="redirectUrl")


class WebhookAck(BaseModel):
    ok: bool = True
