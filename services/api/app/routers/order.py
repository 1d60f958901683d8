from __future__ import annotations

import logging
from typing import NoReturn

from fastapi import APIRouter, Depends, Header, HTTPException, Response
from fastapi.responses import JSONResponse
from packages.shared.schemas.order_v1 import KitchenOrderV1, OrderStatusV1, OrderV1
from services.api.app.db.deps import get_db
from services.api.app.db.models import Order, as_utc
from services.api.app.models.order import (
    OrderCreateRequest,
    OrderCreateResponse,
    OrderStatusUpdateRequest,
)
from services.api.app.security import KITCHEN_PIN_HEADER, kitchen_pin_matches, require_kitchen_pin
from services.api.app.services.notifier import ReadyNotifier
from services.api.app.services.order_store import (
    InvalidInputError,
    InvalidStatusError,
    OrderNotFoundError,
    OrderStore,
    OrderStoreError,
    StatusTransitionError,
)
from services.api.app.services.sms_factory import get_sms_adapter
from sqlalchemy.orm import Session

router = APIRouter()
logger = logging.getLogger(__name__)

NO_STORE = {"Cache-Control": "no-store"}


def _raise_store_http_error(e: OrderStoreError) -> NoReturn:
    if isinstance(e, (InvalidInputError, InvalidStatusError)):
        raise HTTPException(status_code=400, detail=str(e)) from e

    if isinstance(e, OrderNotFoundError):
        raise HTTPException(status_code=404, detail="Order not found") from e

    if isinstance(e, StatusTransitionError):
        raise HTTPException(status_code=409, detail=str(e)) from e

    raise HTTPException(status_code=500, detail="Internal Server Error") from e


def order_view(order: Order) -> OrderV1:
    return OrderV1(
        id=order.id,
        lines=order.lines,
        total_cents=order.total_cents,
        currency=order.currency,
        status=order.status,
        payment_status=order.payment_status,
        created_at=as_utc(order.created_at).isoformat(),
        updated_at=as_utc(order.updated_at).isoformat(),
    )


def kitchen_order_view(order: Order) -> KitchenOrderV1:
    return KitchenOrderV1(
        **order_view(order).model_dump(),
        customer_email=order.customer_email,
        customer_phone=order.customer_phone,
        sms_notified=order.sms_notified,
        payment_provider=order.payment_provider,
        payment_ref=order.payment_ref,
    )


def _ready_notifier() -> ReadyNotifier | None:
    # A broken SMS setup must not block the kitchen.
    try:
        return ReadyNotifier(get_sms_adapter())
    except ValueError:
        logger.exception("SMS adapter misconfigured; ready notifications are disabled")
        return None


def _is_truthy(value: str | None) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "y"}


@router.post("/orders", response_model=OrderCreateResponse, status_code=201)
def create_order(
    payload: OrderCreateRequest, db: Session = Depends(get_db)
) -> OrderCreateResponse:
    try:
        order = OrderStore(db).create(
            lines=payload.lines,
            total_cents=payload.total_cents,
            customer_email=payload.customer_email,
            customer_phone=payload.customer_phone,
        )
    except OrderStoreError as e:
        _raise_store_http_error(e)

    return OrderCreateResponse(id=order.id, status=OrderStatusV1(order.status))


@router.get("/orders")
def list_orders(
    archived: str | None = None,
    limit: int | None = None,
    x_kitchen_pin: str | None = Header(default=None, alias=KITCHEN_PIN_HEADER),
    db: Session = Depends(get_db),
) -> JSONResponse:
    """Without a PIN: the most recent orders (public view). With a PIN: the kitchen views."""

    store = OrderStore(db)
    want_archive = _is_truthy(archived)

    if x_kitchen_pin is None and not want_archive:
        orders = store.list_recent(limit=limit)
        content = [order_view(o).model_dump(mode="json") for o in orders]
        return JSONResponse(content=content, headers=NO_STORE)

    if not kitchen_pin_matches(x_kitchen_pin):
        raise HTTPException(status_code=403, detail="Invalid kitchen PIN")

    orders = store.list_archive(limit=limit) if want_archive else store.list_active(limit=limit)
    content = [kitchen_order_view(o).model_dump(mode="json") for o in orders]
    return JSONResponse(content=content, headers=NO_STORE)


@router.get("/orders/{order_id}", response_model=OrderV1)
def get_order(order_id: str, response: Response, db: Session = Depends(get_db)) -> OrderV1:
    response.headers.update(NO_STORE)

    try:
        order = OrderStore(db).get(order_id)
    except OrderStoreError as e:
        _raise_store_http_error(e)

    return order_view(order)


@router.patch(
    "/orders/{order_id}",
    response_model=KitchenOrderV1,
    dependencies=[Depends(require_kitchen_pin)],
)
def update_order_status(
    order_id: str,
    payload: OrderStatusUpdateRequest,
    response: Response,
    db: Session = Depends(get_db),
) -> KitchenOrderV1:
    response.headers.update(NO_STORE)

    notifier = _ready_notifier() if payload.status == OrderStatusV1.READY.value else None
    try:
        store = OrderStore(db, notifier=notifier)
        order = store.set_status(order_id, payload.status)
    except OrderStoreError as e:
        _raise_store_http_error(e)
    except ValueError as e:
        raise HTTPException(status_code=500, detail=str(e)) from e

    return kitchen_order_view(order)
