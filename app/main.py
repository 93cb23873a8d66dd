"""
FastAPI application for the OTP service.

The lifespan sets up console logging, opens the shared TTL store, builds
the OTP manager on top of it and closes the store on shutdown.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import RedirectResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.config import APP_VERSION, ENVIRONMENT, LOG_LEVEL
from app.rate_limit import limiter
from app.routers import health, otp
from app.services.otp import OtpLifecycleManager
from app.store import build_store

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    """Attach a console handler to the root logger unless one is already set up."""
    logging.basicConfig(level=getattr(logging, LOG_LEVEL, logging.INFO), format=LOG_FORMAT)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    store = build_store()
    app.state.store = store
    app.state.otp_manager = OtpLifecycleManager(store)
    logger.info("OTP service started")
    try:
        yield
    finally:
        await store.close()
        logger.info("OTP service stopped")


# Interactive docs are served outside production only.
_DOCS_ENABLED = ENVIRONMENT != "production"

app = FastAPI(
    title="OTP Web API",
    description="API for requesting and verifying OTP codes",
    version=APP_VERSION,
    lifespan=lifespan,
    docs_url="/docs" if _DOCS_ENABLED else None,
    redoc_url="/redoc" if _DOCS_ENABLED else None,
    openapi_url="/openapi.json" if _DOCS_ENABLED else None,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.include_router(health.router)
app.include_router(otp.router)


if _DOCS_ENABLED:

    @app.get("/", include_in_schema=False)
    async def root() -> RedirectResponse:
        return RedirectResponse(url="/docs")
