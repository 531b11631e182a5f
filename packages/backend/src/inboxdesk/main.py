"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Lifespan manages startup/shutdown. Middleware, CORS, and
routers are all registered here.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from inboxdesk import __version__
from inboxdesk.api import api_router
from inboxdesk.config import settings
from inboxdesk.crypto import get_secret_codec
from inboxdesk.log import configure_logging

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    logger.info(
        "inboxdesk.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    # Settings validation already refuses to start outside development
    # without a passphrase; in development we only warn.
    if not get_secret_codec().keys.available:
        logger.warning("inboxdesk.secret_storage_unconfigured")

    yield

    logger.info("inboxdesk.shutdown")

    from inboxdesk.db.engine import engine
    await engine.dispose()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    configure_logging(settings)

    app = FastAPI(
        title="inboxdesk",
        description="Multi-tenant support inbox backend",
        version=__version__,
        lifespan=lifespan,
    )

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: RequestId → Security → CORS → handler

    from inboxdesk.middleware.request_id import RequestIdMiddleware
    from inboxdesk.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIdMiddleware)

    app.include_router(api_router)

    return app


# Default app instance (used by uvicorn: inboxdesk.main:app)
app = create_app()
