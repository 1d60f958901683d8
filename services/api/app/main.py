"""Takeaway order API service entrypoint."""

import logging
import os

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from services.api.app.db.database import get_engine
from services.api.app.db.init_db import init_db
from services.api.app.routers.order import router as order_router
from services.api.app.routers.payment import router as payment_router

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    level = os.getenv("SHOP_LOG_LEVEL", "INFO").strip().upper() or "INFO"
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


configure_logging()

app = FastAPI(title="Takeaway Orders API")

app.include_router(order_router)
app.include_router(payment_router)


@app.on_event("startup")
def _startup() -> None:
    init_db()


@app.exception_handler(RequestValidationError)
async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Malformed request bodies are a client error like any other invalid input.
    errors = exc.errors()
    first = errors[0] if errors else {}
    where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = first.get("msg", "Invalid request")
    detail = f"{where}: {message}" if where else message
    return JSONResponse(status_code=400, content={"detail": detail})


@app.get("/health")
def health() -> JSONResponse:
    try:
        with get_engine().connect() as conn:
            db_time = conn.execute(text("SELECT CURRENT_TIMESTAMP")).scalar()
    except SQLAlchemyError:
        logger.exception("Health check could not reach the database")
        return JSONResponse(status_code=500, content={"status": "error"})

    return JSONResponse(content={"status": "ok", "db_time": str(db_time)})
