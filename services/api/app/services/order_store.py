from __future__ import annotations

import logging
import os
import re
from collections.abc import Sequence
from datetime import datetime, timedelta
from typing import Any
from uuid import uuid4

from packages.shared.schemas.order_v1 import (
    STATUS_SEQUENCE,
    OrderLineV1,
    OrderStatusV1,
    PaymentStatusV1,
)
from pydantic import ValidationError
from services.api.app.db.models import Order, as_utc, utcnow
from services.api.app.services.notifier import ReadyNotifier
from services.api.app.services.phone import normalize_e164
from sqlalchemy import and_, not_, select
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

DEFAULT_ARCHIVE_GRACE = timedelta(minutes=3)
MAX_LIST_LIMIT = 200

_EMAIL_SHAPE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class OrderStoreError(Exception):
    """Base class for order store errors."""


class InvalidInputError(OrderStoreError):
    pass


class OrderNotFoundError(OrderStoreError):
    def __init__(self, order_id: str) -> None:
        super().__init__(f"Order not found: {order_id}")
        self.order_id = order_id


class InvalidStatusError(OrderStoreError):
    def __init__(self, status: object) -> None:
        allowed = ", ".join(s.value for s in OrderStatusV1)
        super().__init__(f"Invalid status {status!r}. Expected one of: {allowed}")
        self.status = status


class StatusTransitionError(OrderStoreError):
    def __init__(self, current: str, requested: str) -> None:
        super().__init__(f"Status may not move backwards from {current} to {requested}")
        self.current = current
        self.requested = requested


def status_policy() -> str:
    """`any` accepts every allowed status (kitchen UI decides). `forward` rejects moving back."""

    policy = os.getenv("SHOP_STATUS_POLICY", "any").strip().lower()
    if policy not in {"any", "forward"}:
        raise ValueError(f"Unknown SHOP_STATUS_POLICY={policy!r}. Expected any or forward.")
    return policy


def archive_grace() -> timedelta:
    raw = os.getenv("SHOP_ARCHIVE_GRACE_SECONDS", "").strip()
    if not raw:
        return DEFAULT_ARCHIVE_GRACE
    try:
        seconds = int(raw)
    except ValueError:
        seconds = -1
    if seconds < 0:
        logger.warning(
            "Ignoring SHOP_ARCHIVE_GRACE_SECONDS=%r; expected a non-negative integer", raw
        )
        return DEFAULT_ARCHIVE_GRACE
    return timedelta(seconds=seconds)


def default_currency() -> str:
    return os.getenv("SHOP_CURRENCY", "CHF").strip().upper() or "CHF"


def clamp_limit(limit: int | None, default: int = 50) -> int:
    if limit is None:
        return default
    return min(max(int(limit), 1), MAX_LIST_LIMIT)


def is_archived(order: Order, now: datetime, grace: timedelta = DEFAULT_ARCHIVE_GRACE) -> bool:
    """Python twin of the archive query predicate."""

    if order.status != OrderStatusV1.PICKED_UP.value:
        return False
    return as_utc(order.updated_at) <= as_utc(now) - grace


def _archived_clause(cutoff: datetime):
    return and_(Order.status == OrderStatusV1.PICKED_UP.value, Order.updated_at <= cutoff)


def _parse_status(value: object) -> OrderStatusV1:
    if isinstance(value, OrderStatusV1):
        return value
    try:
        return OrderStatusV1(value)
    except ValueError as e:
        raise InvalidStatusError(value) from e


def _validate_lines(lines: Sequence[Any]) -> list[dict]:
    if isinstance(lines, (str, bytes)) or not isinstance(lines, Sequence) or not lines:
        raise InvalidInputError("lines must be a non-empty list")

    out: list[dict] = []
    for i, raw in enumerate(lines):
        try:
            line = raw if isinstance(raw, OrderLineV1) else OrderLineV1.model_validate(raw)
        except ValidationError as e:
            raise InvalidInputError(f"lines[{i}] is invalid: {e.errors()[0]['msg']}") from e
        out.append(line.model_dump(mode="json", exclude_unset=True))
    return out


def _validate_total(total_cents: object) -> int:
    if isinstance(total_cents, bool) or not isinstance(total_cents, int) or total_cents <= 0:
        raise InvalidInputError("total_cents must be a positive integer")
    return total_cents


def _validate_email(email: str | None) -> str | None:
    if email is None or not email.strip():
        return None
    email = email.strip()
    if not _EMAIL_SHAPE.match(email):
        raise InvalidInputError("customer_email is not a valid email address")
    return email


def _validate_phone(phone: str | None) -> str | None:
    if phone is None or not phone.strip():
        return None
    number = normalize_e164(phone)
    if number is None:
        raise InvalidInputError("customer_phone is not a valid international phone number")
    return number


class OrderStore:
    """The canonical order record and its status transitions.

    `notifier` is invoked after every committed transition into ready. Its outcome never
    changes what set_status returns or whether the status change sticks.
    """

    def __init__(
        self,
        db: Session,
        notifier: ReadyNotifier | None = None,
        policy: str | None = None,
    ) -> None:
        self._db = db
        self._notifier = notifier
        self._policy = policy

    def create(
        self,
        lines: Sequence[Any],
        total_cents: int,
        customer_email: str | None = None,
        customer_phone: str | None = None,
        currency: str | None = None,
    ) -> Order:
        order = Order(
            id=uuid4().hex,
            lines=_validate_lines(lines),
            total_cents=_validate_total(total_cents),
            currency=currency or default_currency(),
            status=OrderStatusV1.IN_QUEUE.value,
            customer_email=_validate_email(customer_email),
            customer_phone=_validate_phone(customer_phone),
            sms_notified=False,
            payment_status=PaymentStatusV1.UNPAID.value,
        )
        now = utcnow()
        order.created_at = now
        order.updated_at = now

        self._db.add(order)
        self._db.commit()

        logger.info(
            "Order %s created (%s lines, %s cents)", order.id, len(order.lines), order.total_cents
        )
        return order

    def get(self, order_id: str) -> Order:
        order = self._db.get(Order, order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    def list_recent(self, limit: int | None = None) -> list[Order]:
        stmt = select(Order).order_by(Order.created_at.desc()).limit(clamp_limit(limit))
        return list(self._db.scalars(stmt))

    def list_active(
        self,
        limit: int | None = None,
        grace: timedelta | None = None,
        now: datetime | None = None,
    ) -> list[Order]:
        cutoff = (now or utcnow()) - (grace if grace is not None else archive_grace())
        stmt = (
            select(Order)
            .where(not_(_archived_clause(cutoff)))
            .order_by(Order.created_at.desc())
            .limit(clamp_limit(limit))
        )
        return list(self._db.scalars(stmt))

    def list_archive(
        self,
        limit: int | None = None,
        grace: timedelta | None = None,
        now: datetime | None = None,
    ) -> list[Order]:
        cutoff = (now or utcnow()) - (grace if grace is not None else archive_grace())
        stmt = (
            select(Order)
            .where(_archived_clause(cutoff))
            .order_by(Order.created_at.desc())
            .limit(clamp_limit(limit))
        )
        return list(self._db.scalars(stmt))

    def set_status(self, order_id: str, new_status: object) -> Order:
        status = _parse_status(new_status)
        order = self.get(order_id)

        if (self._policy or status_policy()) == "forward":
            current = _parse_status(order.status)
            if STATUS_SEQUENCE.index(status) < STATUS_SEQUENCE.index(current):
                raise StatusTransitionError(current.value, status.value)

        previous = order.status
        order.status = status.value
        order.updated_at = utcnow()
        self._db.commit()

        logger.info("Order %s status %s -> %s", order_id, previous, status.value)

        if status is OrderStatusV1.READY and self._notifier is not None:
            self._notifier.notify_ready(self._db, order_id)

        self._db.refresh(order)
        return order

    def set_payment_ref(self, order_id: str, provider: str, ref: str) -> Order:
        order = self.get(order_id)
        order.payment_provider = provider
        order.payment_ref = ref
        self._db.commit()
        return order

    def mark_paid(self, order_id: str, ref: str) -> Order:
        order = self.get(order_id)
        order.payment_status = PaymentStatusV1.PAID.value
        order.payment_ref = ref
        self._db.commit()

        logger.info("Order %s marked paid (ref %s)", order_id, ref)
        return order

    def mark_failed(self, order_id: str, ref: str | None) -> Order:
        order = self.get(order_id)
        if order.payment_status == PaymentStatusV1.PAID.value:
            # A late failure event never undoes a confirmed payment.
            logger.warning(
                "Ignoring payment failure for already paid order %s (ref %s)", order_id, ref
            )
            return order

        order.payment_status = PaymentStatusV1.FAILED.value
        order.payment_ref = ref
        self._db.commit()

        logger.info("Order %s marked failed (ref %s)", order_id, ref)
        return order
