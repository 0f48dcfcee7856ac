"""Entry point for the FastAPI application.

``create_app`` constructs the FastAPI app, wires the bill services and
registers routers and exception handlers. The database engine, the
document store and the recognition gateway are created once in the
lifespan handler and disposed on shutdown; pass ``gateway`` (and a
``Settings`` instance pointing at a scratch database) to substitute
them in tests. When run with uvicorn the module-level ``app`` uses the
default settings from ``expense_tracker.core.config``.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from expense_tracker.api.error_handlers import (
    domain_exception_handler,
    generic_exception_handler,
    validation_exception_handler,
)
from expense_tracker.api.routes.bills import router as bills_router
from expense_tracker.core.config import Settings, settings as default_settings
from expense_tracker.core.database import build_engine, build_session_factory, init_db
from expense_tracker.core.errors import ExpenseTrackerError
from expense_tracker.core.observability import init_sentry
from expense_tracker.services.bill_service import BillService
from expense_tracker.services.confirmation_service import ConfirmationService
from expense_tracker.services.document_store import DocumentStore
from expense_tracker.services.recognition_service import OpenAIRecognitionGateway, RecognitionGateway

logger = logging.getLogger(__name__)


def _cors_origins(settings: Settings) -> list[str]:
    """Wildcard in development, otherwise the configured origins (deduplicated)."""
    if settings.is_development:
        return ["*"]
    seen: set[str] = set()
    return [o for o in settings.BACKEND_CORS_ORIGINS if not (o in seen or seen.add(o))]


def create_app(settings: Optional[Settings] = None, gateway: Optional[RecognitionGateway] = None) -> FastAPI:
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifecycle."""
        logger.info("Starting up...")
        if init_sentry(settings, "api"):
            logger.info("Sentry SDK initialized (api)")
        engine = build_engine(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)
        await init_db(engine)
        store = DocumentStore(build_session_factory(engine))
        recognition = gateway or OpenAIRecognitionGateway.from_settings(settings)
        app.state.bill_service = BillService(
            store, recognition, recognition_timeout=settings.RECOGNITION_TIMEOUT_SECONDS
        )
        app.state.confirmation_service = ConfirmationService(store)
        try:
            yield
        finally:
            logger.info("Shutting down...")
            await engine.dispose()

    app = FastAPI(title=settings.PROJECT_NAME, version="1.0.0", lifespan=lifespan)
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(settings),
        allow_credentials=not settings.is_development,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register custom exception handlers
    app.add_exception_handler(ExpenseTrackerError, domain_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    app.include_router(bills_router, prefix=settings.API_PREFIX)

    @app.api_route("/health", methods=["GET", "HEAD"])
    async def health_check():
        """Health check endpoint (supports GET & HEAD)."""
        return {"status": "healthy"}

    return app


# Configure logging
logging.basicConfig(level=logging.INFO)

app = create_app()
