from __future__ import annotations

import hmac
import logging
import os

from fastapi import Header, HTTPException

logger = logging.getLogger(__name__)

KITCHEN_PIN_HEADER = "x-kitchen-pin"


def kitchen_pin_matches(candidate: str | None) -> bool:
    expected = os.getenv("SHOP_KITCHEN_PIN", "").strip()
    if not expected:
        logger.warning("SHOP_KITCHEN_PIN is not set; kitchen endpoints are locked")
        return False
    if not candidate:
        return False
    return hmac.compare_digest(candidate.strip().encode(), expected.encode())


def require_kitchen_pin(
    x_kitchen_pin: str | None = Header(default=None, alias=KITCHEN_PIN_HEADER),
) -> None:
    if not kitchen_pin_matches(x_kitchen_pin):
        raise HTTPException(status_code=403, detail="Invalid kitchen PIN")
