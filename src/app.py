"""PawPantry FastAPI application.

Checkout, order management, pricing quotes and stock availability over HTTP.
Domain errors are rendered as JSON bodies carrying their stable error code.

The ordering domain is initialized at import time; every request runs inside
its domain context so order commands can be processed synchronously.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

from contextlib import asynccontextmanager
from uuid import uuid4

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from protean.exceptions import ValidationError as DomainValidationError
from sqlalchemy import text

from inventory.api import inventory_router
from notifications.notification.dispatch import Notifier, ThreadPoolRunner
from ordering.api.routes import order_router
from ordering.domain import ordering
from pricing.api.routes import pricing_router
from shared.config import get_settings
from shared.database import build_engine, build_session_factory
from shared.exceptions import ShopError
from shared.logging import bind_request_context, clear_request_context, configure_logging
from shared.services import Services, build_services, reset_services, set_services

ordering.init()

logger = structlog.get_logger(__name__)


def create_app(services: Services | None = None) -> FastAPI:
    """Build the application; ``services`` defaults to the configured database."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = app.state.services is None
        if owned:
            configure_logging()
            settings = get_settings()
            session_factory = build_session_factory(build_engine())
            app.state.services = build_services(
                session_factory,
                notifier=Notifier(runner=ThreadPoolRunner(settings.notification_workers)),
            )
        set_services(app.state.services)
        yield
        reset_services()
        if owned:
            app.state.services.shutdown()

    app = FastAPI(
        title="PawPantry API",
        description="Order fulfillment: checkout, inventory, pricing and order lifecycle",
        lifespan=lifespan,
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid4().hex
        clear_request_context()
        bind_request_context(request_id=request_id, method=request.method, path=request.url.path)
        with ordering.domain_context():
            response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    @app.exception_handler(ShopError)
    async def shop_error_handler(request: Request, exc: ShopError) -> JSONResponse:
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            "Request failed",
            path=request.url.path,
            error_code=exc.error_code,
            error=exc.message,
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(DomainValidationError)
    async def command_validation_handler(request: Request, exc: DomainValidationError) -> JSONResponse:
        logger.warning("Command rejected", path=request.url.path, errors=exc.messages)
        return JSONResponse(
            status_code=400,
            content={"error": "VALIDATION_ERROR", "message": "Invalid input", "context": {"errors": exc.messages}},
        )

    app.include_router(order_router)
    app.include_router(pricing_router)
    app.include_router(inventory_router)

    @app.get("/health")
    def health(request: Request):
        database = "ok"
        try:
            with request.app.state.services.session_factory() as session:
                session.execute(text("SELECT 1"))
        except Exception as e:
            logger.error("Health check database query failed", error=str(e))
            database = "unavailable"
        return JSONResponse(
            status_code=200 if database == "ok" else 503,
            content={"status": "ok" if database == "ok" else "degraded", "database": database},
        )

    return app


app = create_app()
