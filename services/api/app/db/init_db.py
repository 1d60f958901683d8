from __future__ import annotations

import logging
import os

from services.api.app.db.database import get_engine
from services.api.app.db.models import Base

logger = logging.getLogger(__name__)


def auto_create_enabled() -> bool:
    return os.getenv("SHOP_DB_AUTO_CREATE", "true").strip().lower() in {"1", "true", "yes", "y"}


def init_db() -> None:
    if not auto_create_enabled():
        logger.info("SHOP_DB_AUTO_CREATE is off; expecting the orders table to exist")
        return

    engine = get_engine()
    Base.metadata.create_all(bind=engine)
    logger.info("Database schema ready at %s", engine.url.render_as_string(hide_password=True))
