"""
FastAPI middleware for request logging, security headers, the per-client API
rate limit and the global request deadline.
"""
import asyncio
import logging
import time
import uuid
from typing import Callable, Dict, Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from limits import RateLimitItemPerSecond
from limits.storage import MemoryStorage
from limits.strategies import FixedWindowRateLimiter
from starlette.middleware.base import BaseHTTPMiddleware

from mutual_aid.core.errors import RateLimitedError, RequestTimeoutError

logger = logging.getLogger(__name__)

_REDACTED_HEADERS = frozenset({"authorization", "cookie"})


def sanitize_headers(headers) -> dict:
    return {key: value for key, value in headers.items() if key.lower() not in _REDACTED_HEADERS}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Assigns a request id and logs each request and its response."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        start_time = time.time()

        logger.info(
            f"[REQUEST] [{request_id}] {request.method} {request.url.path}",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "query_params": str(request.query_params),
                "client_ip": request.client.host if request.client else None,
                "headers": sanitize_headers(request.headers),
            },
        )

        response = await call_next(request)

        duration_ms = int((time.time() - start_time) * 1000)
        if response.status_code >= 500:
            level = logging.ERROR
        elif response.status_code >= 400:
            level = logging.WARNING
        else:
            level = logging.INFO
        logger.log(
            level,
            f"[RESPONSE] [{request_id}] {request.method} {request.url.path} -> {response.status_code} ({duration_ms}ms)",
            extra={
                "request_id": request_id,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
                "user_id": getattr(request.state, "user_id", None),
            },
        )
        response.headers["X-Request-ID"] = request_id
        return response


class RequestTimeoutMiddleware(BaseHTTPMiddleware):
    """
    Abandons requests that exceed a fixed wall-clock deadline with a 408.

    Work already handed to the database server (for example a write that has
    been sent but not acknowledged) can still complete after the client has
    been answered; its outcome is discarded.
    """

    def __init__(self, app, timeout_seconds: float = 15.0):
        super().__init__(app)
        self.timeout_seconds = timeout_seconds

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await asyncio.wait_for(call_next(request), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.error(
                f"Request {request.method} {request.url.path} exceeded {self.timeout_seconds}s deadline; "
                f"in-flight work may still complete in the background"
            )
            error = RequestTimeoutError()
            return JSONResponse(status_code=error.status_code, content=error.to_dict())


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds browser hardening headers to every response."""

    def __init__(self, app, content_security_policy: Optional[str] = None):
        super().__init__(app)
        self.headers: Dict[str, str] = {
            "X-Content-Type-Options": "nosniff",
            "X-Frame-Options": "SAMEORIGIN",
            "X-DNS-Prefetch-Control": "off",
            "X-Download-Options": "noopen",
            "X-Permitted-Cross-Domain-Policies": "none",
            "X-XSS-Protection": "0",
            "Referrer-Policy": "no-referrer",
            "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
            "Cross-Origin-Opener-Policy": "same-origin",
            "Cross-Origin-Resource-Policy": "cross-origin",
            "Origin-Agent-Cluster": "?1",
        }
        if content_security_policy:
            self.headers["Content-Security-Policy"] = content_security_policy

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        for name, value in self.headers.items():
            response.headers.setdefault(name, value)
        return response


class ApiRateLimitMiddleware(BaseHTTPMiddleware):
    """
    Fixed-window request limit per client address on paths under ``prefix``.

    Counters live in process memory, so each worker process limits on its own.
    """

    def __init__(
        self,
        app,
        max_requests: int = 100,
        window_seconds: int = 15 * 60,
        prefix: str = "/api/",
    ):
        super().__init__(app)
        self.prefix = prefix
        self.item = RateLimitItemPerSecond(max_requests, window_seconds)
        self.limiter = FixedWindowRateLimiter(MemoryStorage())

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not request.url.path.startswith(self.prefix):
            return await call_next(request)

        key = request.client.host if request.client else "unknown-ip"
        if not self.limiter.hit(self.item, key):
            reset_at, _ = self.limiter.get_window_stats(self.item, key)
            retry_after = max(int(reset_at - time.time()), 1)
            logger.warning(f"API rate limit exceeded for {key} on {request.method} {request.url.path}")
            error = RateLimitedError("Too many requests from this IP, please try again later.")
            return JSONResponse(
                status_code=error.status_code,
                content=error.to_dict(),
                headers={"Retry-After": str(retry_after)},
            )
        return await call_next(request)
