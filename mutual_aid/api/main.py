"""
FastAPI application for the Mutual Aid directory service.

This module initializes and configures the FastAPI application that serves
the submission and authentication endpoints.
"""

import logging
import time
import traceback
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from mutual_aid.api.endpoints import auth, submissions
from mutual_aid.api.middleware import (
    ApiRateLimitMiddleware,
    RequestLoggingMiddleware,
    RequestTimeoutMiddleware,
    SecurityHeadersMiddleware,
)
from mutual_aid.config.settings import settings
from mutual_aid.core.errors import AppError, FieldError, InternalError, ValidationError
from mutual_aid.core.login_throttle import LoginThrottle, ThrottleSweeper
from mutual_aid.integrations.geocoder import GeocodingClient, RetryPolicy
from mutual_aid.utils.logging_utils import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager for startup and shutdown events.

    Starts the periodic login-throttle sweep on startup and releases the
    geocoder's HTTP connections on shutdown.
    """
    setup_logging()
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    sweeper = ThrottleSweeper(app.state.login_throttle, interval_seconds=settings.LOGIN_SWEEP_INTERVAL_SECONDS)
    sweeper.start()

    yield

    # Shutdown
    logger.info("Shutting down application")
    await sweeper.stop()
    await app.state.geocoder.close()


def _error_response(error: AppError) -> JSONResponse:
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


def register_exception_handlers(app: FastAPI) -> None:
    """Convert every raised error into the shared JSON error shape."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        logger.warning(
            f"{request.method} {request.url.path} failed with {exc.status_code}: {exc.message}",
            extra={"user_id": getattr(request.state, "user_id", None)},
        )
        return _error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [
            FieldError(field=".".join(str(part) for part in err["loc"][1:]) or "body", message=err["msg"])
            for err in exc.errors()
        ]
        return await app_error_handler(request, ValidationError(errors))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        message = "Route not found" if exc.status_code == 404 else str(exc.detail)
        return await app_error_handler(request, AppError(message, status_code=exc.status_code))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            f"Unhandled error on {request.method} {request.url.path}: {exc}",
            exc_info=exc,
            extra={
                "path": request.url.path,
                "method": request.method,
                "body": getattr(request.state, "sanitized_body", None),
                "user_id": getattr(request.state, "user_id", None),
            },
        )
        error = InternalError(str(exc) if settings.DEBUG else None)
        content = error.to_dict()
        if settings.DEBUG:
            content["stack"] = traceback.format_exception(type(exc), exc, exc.__traceback__)
        return JSONResponse(status_code=error.status_code, content=content)


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured FastAPI application instance.
    """
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="""Community mutual-aid resource directory.

        Anyone can browse verified resources and submit new ones; coordinators
        review submissions and upload batches.""",
        lifespan=lifespan,
        docs_url="/docs" if settings.DEBUG else None,  # Disable docs in production
        redoc_url="/redoc" if settings.DEBUG else None,
        openapi_tags=[
            {"name": "auth", "description": "Login and registration"},
            {"name": "submissions", "description": "Resource submissions and review"},
            {"name": "health", "description": "Health check and monitoring"},
        ],
    )

    # Shared services live on app.state so tests can swap them out
    app.state.login_throttle = LoginThrottle(
        max_attempts=settings.LOGIN_MAX_ATTEMPTS,
        window_seconds=settings.LOGIN_WINDOW_SECONDS,
    )
    app.state.geocoder = GeocodingClient(
        base_url=settings.GEOCODER_URL,
        user_agent=settings.GEOCODER_USER_AGENT,
        timeout=settings.GEOCODER_TIMEOUT_SECONDS,
        policy=RetryPolicy(
            max_attempts=settings.GEOCODER_MAX_ATTEMPTS,
            base_delay=settings.GEOCODER_BASE_DELAY_SECONDS,
        ),
    )
    app.state.started_at = time.monotonic()

    # Last added runs first: CORS, logging, security headers, rate limit, deadline
    app.add_middleware(RequestTimeoutMiddleware, timeout_seconds=settings.REQUEST_TIMEOUT_SECONDS)
    if settings.API_RATE_LIMIT_ENABLED:
        app.add_middleware(
            ApiRateLimitMiddleware,
            max_requests=settings.API_RATE_LIMIT_MAX_REQUESTS,
            window_seconds=settings.API_RATE_LIMIT_WINDOW_SECONDS,
        )
    app.add_middleware(SecurityHeadersMiddleware, content_security_policy=settings.CONTENT_SECURITY_POLICY)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
        allow_methods=settings.CORS_ALLOW_METHODS,
        allow_headers=settings.CORS_ALLOW_HEADERS,
    )

    register_exception_handlers(app)

    app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
    app.include_router(submissions.router, prefix="/api/submissions", tags=["submissions"])

    @app.get("/health", tags=["health"], summary="Health Check")
    async def health_check():
        """Liveness check with process uptime in seconds."""
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime": round(time.monotonic() - app.state.started_at, 3),
        }

    return app


# Create the application instance
app = create_app()
