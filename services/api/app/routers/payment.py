from __future__ import annotations

import json
import logging
import re
from typing import Any, NoReturn

from fastapi import APIRouter, Depends, HTTPException, Request
from packages.shared.schemas.order_v1 import PaymentStatusV1
from services.api.app.db.database import db_session
from services.api.app.db.deps import get_db
from services.api.app.models.payment import PaymentStartRequest, PaymentStartResponse, WebhookAck
from services.api.app.services.order_store import OrderNotFoundError, OrderStore
from services.api.app.services.payment_base import (
    PaymentAlreadyPaidError,
    PaymentConfigError,
    PaymentGatewayError,
    PaymentWebhookEvent,
)
from services.api.app.services.payment_factory import get_payment_adapter
from services.api.app.services.payment_payrexx import parse_webhook
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

router = APIRouter()
logger = logging.getLogger(__name__)

_FORM_KEY = re.compile(r"^(\w+)\[(\w+)\]")


def _raise_payment_http_error(e: Exception) -> NoReturn:
    if isinstance(e, OrderNotFoundError):
        raise HTTPException(status_code=404, detail="Order not found") from e

    if isinstance(e, PaymentAlreadyPaidError):
        raise HTTPException(status_code=409, detail="Order is already paid") from e

    if isinstance(e, PaymentConfigError):
        raise HTTPException(status_code=500, detail="Payment provider not configured") from e

    if isinstance(e, PaymentGatewayError):
        raise HTTPException(status_code=502, detail="Payment gateway failed") from e

    raise HTTPException(status_code=500, detail="Internal Server Error") from e


@router.post("/payments/start", response_model=PaymentStartResponse)
def start_payment(
    payload: PaymentStartRequest, db: Session = Depends(get_db)
) -> PaymentStartResponse:
    if not payload.order_id:
        raise HTTPException(status_code=400, detail="orderId required")

    try:
        adapter = get_payment_adapter()
    except ValueError as e:
        raise HTTPException(status_code=500, detail=str(e)) from e

    store = OrderStore(db)
    try:
        order = store.get(payload.order_id)
        if order.payment_status == PaymentStatusV1.PAID.value:
            raise PaymentAlreadyPaidError(order.id)
        session = adapter.create_session(order.id, order.total_cents, order.currency)
    except PaymentGatewayError as e:
        logger.error("Payment session for order %s failed: %s", payload.order_id, e)
        _raise_payment_http_error(e)
    except (OrderNotFoundError, PaymentAlreadyPaidError) as e:
        _raise_payment_http_error(e)

    store.set_payment_ref(order.id, adapter.provider, session.gateway_id)
    logger.info("Payment session %s started for order %s", session.gateway_id, order.id)

    return PaymentStartResponse(redirect_url=session.redirect_url)


@router.post("/payments/webhook", response_model=WebhookAck)
async def payment_webhook(request: Request) -> WebhookAck:
    """Always acknowledges, so the gateway does not keep redelivering.

    Redelivery of the same event only overwrites the payment fields with the same values.
    """

    try:
        body = await _read_body(request)
        event = parse_webhook(body)
        await run_in_threadpool(_apply_payment_event, event)
    except Exception:
        logger.exception("Payment webhook could not be processed")

    return WebhookAck()


async def _read_body(request: Request) -> dict[str, Any]:
    content_type = request.headers.get("content-type", "")

    if "form" in content_type:
        form = await request.form()
        return _unflatten_form(form.multi_items())

    raw = await request.body()
    if not raw:
        return {}
    try:
        body = json.loads(raw)
    except ValueError:
        logger.warning("Payment webhook body is not JSON: %r", raw[:200])
        return {}
    return body if isinstance(body, dict) else {}


def _unflatten_form(items: list[tuple[str, Any]]) -> dict[str, Any]:
    """Turn `transaction[status]=confirmed` style keys into one level of nesting."""

    out: dict[str, Any] = {}
    for key, value in items:
        if not isinstance(value, str):
            continue
        m = _FORM_KEY.match(key)
        if m is None:
            out[key] = value
            continue
        group = out.setdefault(m.group(1), {})
        if isinstance(group, dict):
            group.setdefault(m.group(2), value)
    return out


def _apply_payment_event(event: PaymentWebhookEvent) -> None:
    if not event.reference_id:
        logger.info("Payment webhook without referenceId; nothing to do")
        return

    if event.outcome is None:
        logger.info("Payment webhook for order %s carries no final outcome", event.reference_id)
        return

    db = db_session()
    try:
        store = OrderStore(db)
        if event.outcome == "paid":
            store.mark_paid(event.reference_id, event.transaction_id or "payrexx")
        else:
            store.mark_failed(event.reference_id, event.transaction_id)
    except OrderNotFoundError:
        logger.warning("Payment webhook for unknown order %s", event.reference_id)
    finally:
        db.close()
