from __future__ import annotations

import logging
from typing import Callable, Optional

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from sqlalchemy import text as sql_text
from sqlalchemy.exc import SQLAlchemyError

from rankd.config import AppConfig, load_config
from rankd.db.base import get_engine
from rankd.db.migrations_runner import apply_migrations
from rankd.http.problem import (
    handle_http_exception,
    handle_ordering_error,
    handle_request_validation_error,
    handle_unexpected_error,
)
from rankd.http.request_id import RequestIdMiddleware
from rankd.logging_setup import configure_logging
from rankd.logic.errors import OrderingError
from rankd.logic.order_store import OrderStore
from rankd.middleware.cors import apply_cors
from rankd.routes import api_router

logger = logging.getLogger(__name__)


def _health_check(store: OrderStore) -> Callable[[], dict]:
    def check() -> dict:
        try:
            with store.engine.connect() as conn:
                conn.execute(sql_text("SELECT 1"))
            return {"status": "ok", "db": True}
        except SQLAlchemyError as e:
            logger.error("Health DB check failed", exc_info=True)
            return {"status": "degraded", "db": False, "reason": str(e)}

    return check


def create_app(config: Optional[AppConfig] = None, store: Optional[OrderStore] = None) -> FastAPI:
    """Build the ordered collections API.

    ``config`` defaults to ``load_config()``; ``store`` defaults to an
    ``OrderStore`` over the configured database. Migrations are applied on
    startup so the schema exists before the first request.
    """
    configure_logging()
    config = config or load_config()
    store = store or OrderStore(get_engine(config.database.dsn))

    app = FastAPI(title="rankd", version="0.1.0")
    app.state.config = config
    app.state.order_store = store

    app.add_exception_handler(HTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(OrderingError, handle_ordering_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
    apply_cors(app)
    app.add_middleware(RequestIdMiddleware)

    @app.on_event("startup")
    def _apply_migrations() -> None:
        try:
            applied = apply_migrations(store.engine)
        except SQLAlchemyError:
            logger.error("Failed to apply migrations at startup", exc_info=True)
            raise
        logger.info("startup_migrations_applied count=%s", len(applied))

    app.include_router(api_router, prefix="/api/v1")

    health_check = _health_check(store)

    @app.get("/health")
    def health() -> dict:
        return health_check()

    return app


# Intentionally do not instantiate the app at import time to prevent side effects.
