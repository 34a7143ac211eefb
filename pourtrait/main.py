"""FastAPI application entry point for Pourtrait."""

import asyncio
import logging
import os
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from pourtrait import __version__
from pourtrait.config import settings
from pourtrait.database import close_db, init_db
from pourtrait.models.login_attempt import LoginAttempt
from pourtrait.models.token_blacklist import RevokedToken
from pourtrait.services.analytics import posthog_service

logger = logging.getLogger(__name__)

HOUSEKEEPING_INTERVAL_SECONDS = 3600
MIN_SECRET_KEY_LENGTH = 32

_housekeeping_task: asyncio.Task | None = None

limiter = Limiter(key_func=get_remote_address)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to every API response."""

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = "camera=(self), geolocation=(), microphone=()"
        # JSON only; nothing here is ever framed or runs scripts
        response.headers["Content-Security-Policy"] = (
            "default-src 'none'; frame-ancestors 'none'; base-uri 'none';"
        )
        if settings.enforce_https:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


def _is_production() -> bool:
    """True unless running in debug mode or under pytest."""
    return not settings.debug and not os.getenv("PYTEST_CURRENT_TEST")


async def _purge_revoked_tokens() -> int:
    return await RevokedToken.cleanup_expired()


async def _purge_login_attempts() -> int:
    return await LoginAttempt.cleanup_old_attempts(older_than_hours=24)


HOUSEKEEPING_JOBS: list[tuple[str, Callable[[], Awaitable[int]]]] = [
    ("expired revoked tokens", _purge_revoked_tokens),
    ("stale login attempts", _purge_login_attempts),
]


async def run_housekeeping() -> dict[str, int]:
    """Run each housekeeping job once; one failing job does not stop the rest."""
    removed: dict[str, int] = {}
    for label, job in HOUSEKEEPING_JOBS:
        try:
            removed[label] = await job()
        except Exception:
            logger.exception("Housekeeping job failed: %s", label)
            continue
        if removed[label]:
            logger.info("Housekeeping removed %d %s", removed[label], label)
    return removed


async def _housekeeping_loop() -> None:
    while True:
        await asyncio.sleep(HOUSEKEEPING_INTERVAL_SECONDS)
        await run_housekeeping()


def configuration_problems() -> tuple[list[str], list[str]]:
    """Return ``(errors, warnings)`` for the loaded configuration.

    Errors block startup in production. Warnings name features that will
    not work with the current secrets.
    """
    errors: list[str] = []
    warnings: list[str] = []

    if len(settings.secret_key) < MIN_SECRET_KEY_LENGTH:
        errors.append(
            f"Secret key is shorter than {MIN_SECRET_KEY_LENGTH} characters. "
            "Set POURTRAIT_SECRET_KEY."
        )

    if not settings.cron_secret:
        warnings.append("No cron secret; POST /api/notifications/process will reject every call.")
    if not settings.metrics_ingest_key:
        warnings.append("No metrics ingest key; mapping-run ingestion is disabled.")
    if not settings.anthropic_api_key:
        warnings.append("No Anthropic API key; profile mapping and wine-list scans are unavailable.")

    if _is_production():
        if "localhost" in settings.mongodb_url or "127.0.0.1" in settings.mongodb_url:
            warnings.append("MongoDB URL points to localhost in production.")
        if not settings.enforce_https:
            warnings.append("HTTPS enforcement is disabled.")

    return errors, warnings


def _validate_configuration() -> None:
    """Log configuration problems; refuse to start on errors in production.

    Raises:
        RuntimeError: If a blocking problem is found in production.
    """
    errors, warnings = configuration_problems()
    for warning in warnings:
        logger.warning("CONFIGURATION WARNING: %s", warning)

    if not errors:
        return
    if _is_production():
        for error in errors:
            logger.error("CONFIGURATION ERROR: %s", error)
        raise RuntimeError("Startup blocked by configuration errors. See logs for details.")
    for error in errors:
        logger.warning("CONFIGURATION WARNING (development mode): %s", error)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    global _housekeeping_task

    _validate_configuration()
    await init_db()

    _housekeeping_task = asyncio.create_task(_housekeeping_loop())
    logger.info("Pourtrait %s started", __version__)

    yield

    if _housekeeping_task:
        _housekeeping_task.cancel()
        try:
            await _housekeeping_task
        except asyncio.CancelledError:
            pass

    posthog_service.shutdown()
    await close_db()


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log unexpected failures; expose the message only in debug mode."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    content = {"error": "Internal server error"}
    if settings.debug:
        content["message"] = str(exc)
    return JSONResponse(status_code=500, content=content)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies and out-of-range fields are client errors (400), one entry per field."""
    errors = [
        {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
        for err in exc.errors()
    ]
    logger.debug("Rejected %s %s: %s", request.method, request.url.path, errors)
    return JSONResponse(status_code=400, content={"detail": errors})


app = FastAPI(
    title=settings.app_name,
    description="Wine cellar, taste profile and recommendation API",
    version=__version__,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_exception_handler(RequestValidationError, validation_error_handler)
app.add_exception_handler(Exception, unhandled_error_handler)

# Empty origin list means same-origin only
if settings.cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH"],
        allow_headers=["Authorization", "Content-Type", "X-Ingest-Key"],
        max_age=600,
    )

app.add_middleware(SecurityHeadersMiddleware)


@app.get("/health", tags=["Health"])
async def health_check() -> JSONResponse:
    return JSONResponse(
        content={
            "status": "healthy",
            "version": __version__,
            "app_name": settings.app_name,
        }
    )


from pourtrait.routers import (  # noqa: E402
    auth,
    metrics,
    notifications,
    partners,
    profile,
    recommendations,
    wines,
)

app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(wines.router, prefix="/api/wines", tags=["Wines"])
app.include_router(profile.router, prefix="/api/profile", tags=["Profile"])
app.include_router(recommendations.router, prefix="/api/recommendations", tags=["Recommendations"])
app.include_router(notifications.router, prefix="/api/notifications", tags=["Notifications"])
app.include_router(metrics.router, prefix="/api/metrics", tags=["Metrics"])
app.include_router(partners.router, prefix="/api/partners", tags=["Partners"])
