from __future__ import annotations

import logging
import os

from services.api.app.db.models import Order
from services.api.app.services.phone import normalize_e164
from services.api.app.services.sms_base import SmsAdapter, SmsAdapterError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

DEFAULT_READY_TEXT = "Deine Bestellung ist bereit zur Abholung. Guten Appetit! 🥙"


def ready_text() -> str:
    return os.getenv("SHOP_READY_SMS_TEXT", "").strip() or DEFAULT_READY_TEXT


class ReadyNotifier:
    """Sends the at-most-once "order ready" SMS.

    The check of `sms_notified`, the send and the flag update run under a row lock
    (SELECT ... FOR UPDATE on backends that support it), so two concurrent transitions to
    ready cannot both send. Failures are logged and swallowed: the caller's status change
    is already committed and stays that way.
    """

    def __init__(self, sms: SmsAdapter, text: str | None = None) -> None:
        self._sms = sms
        self._text = text or ready_text()

    def notify_ready(self, db: Session, order_id: str) -> bool:
        """Returns True only when this call delivered the message."""

        try:
            stmt = (
                select(Order)
                .where(Order.id == order_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            order = db.execute(stmt).scalar_one_or_none()

            if order is None or not order.customer_phone or order.sms_notified:
                db.rollback()
                return False

            number = normalize_e164(order.customer_phone)
            if number is None:
                raise SmsAdapterError(f"Invalid destination number: {order.customer_phone!r}")

            result = self._sms.send(number, self._text)
        except Exception:
            db.rollback()
            logger.exception("Ready SMS failed for order %s via %s", order_id, self._sms.vendor)
            return False

        order.sms_notified = True
        try:
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            # The flag stays false, so the next transition into ready sends a second message.
            logger.exception(
                "Ready SMS for order %s was delivered via %s but sms_notified could not be saved",
                order_id,
                self._sms.vendor,
            )
            return True

        logger.info(
            "Ready SMS sent for order %s via %s (message id %s)",
            order_id,
            self._sms.vendor,
            result.provider_message_id,
        )
        return True
