"""
FastAPI application factory.

The app owns its engine and session factory through ``app.state``; nothing
business-related lives at module level, so tests can build as many apps as
they need against separate databases.
"""

import logging
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from workjunction.api import bookings, workers
from workjunction.config import AppConfig, settings
from workjunction.errors import (
    BookingRejected,
    IllegalTransition,
    NotFound,
    PermissionDenied,
    RejectionReason,
    StoreUnavailable,
    Unauthenticated,
    ValidationError,
    WorkJunctionError,
)
from workjunction.logging_context import get_request_logger, new_request_id, set_request_id
from workjunction.store.database import build_engine, build_session_factory, init_db

logger = get_request_logger(__name__)

REQUEST_ID_HEADER = "X-Request-Id"

# Most specific first
ERROR_STATUS: list[tuple[type, int]] = [
    (Unauthenticated, 401),
    (ValidationError, 400),
    (NotFound, 404),
    (PermissionDenied, 403),
    (IllegalTransition, 409),
    (BookingRejected, 409),
    (StoreUnavailable, 503),
]


def status_for(error: WorkJunctionError) -> int:
    for error_type, status in ERROR_STATUS:
        if isinstance(error, error_type):
            return status
    return 500


async def handle_domain_error(request: Request, exc: WorkJunctionError) -> JSONResponse:
    status = status_for(exc)
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s -> %d %s", request.method, request.url.path, status, exc.code.value)
    return JSONResponse(status_code=status, content=exc.to_dict())


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', 'invalid')}"
        for err in exc.errors()
    )
    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "code": RejectionReason.VALIDATION_FAILED.value,
            "message": problems or "Invalid request",
        },
    )


def create_app(
    engine: Optional[Engine] = None,
    config: Optional[AppConfig] = None,
    clock: Optional[Callable] = None,
) -> FastAPI:
    """Build the booking API bound to ``engine`` (a new one from config by default)."""
    config = config or settings
    engine = engine or build_engine(config.store.database_url, config.store.echo)
    init_db(engine)

    app = FastAPI(title=config.app_name)
    app.state.config = config
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.clock = clock

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or new_request_id()
        set_request_id(request_id)
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    app.add_exception_handler(WorkJunctionError, handle_domain_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)

    app.include_router(bookings.router)
    app.include_router(workers.router)

    @app.get("/health")
    def health():
        try:
            with app.state.session_factory() as db:
                db.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.warning("Health check could not reach the database: %s", e)
            return JSONResponse(status_code=503, content={"status": "degraded", "database": False})
        return {"status": "ok", "database": True}

    logger.info("%s ready on %s", config.app_name, engine.url.render_as_string(hide_password=True))
    return app
