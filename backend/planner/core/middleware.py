from __future__ import annotations

import logging
from time import perf_counter

from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from planner.core.config import Settings

logger = logging.getLogger(__name__)

SLOW_REQUEST_MS = 5_000


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, *, settings: Settings) -> None:
        super().__init__(app)
        self._hsts_max_age = max(1, settings.security_hsts_max_age_seconds) if settings.security_enable_hsts else None

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        if self._hsts_max_age is not None:
            response.headers.setdefault("Strict-Transport-Security", f"max-age={self._hsts_max_age}; includeSubDomains")
        return response


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Rejects oversized rosters before pydantic has to parse them."""

    def __init__(self, app, *, max_bytes: int) -> None:
        super().__init__(app)
        self._max_bytes = max(1, max_bytes)

    async def dispatch(self, request: Request, call_next) -> Response:
        declared = request.headers.get("content-length", "")
        if declared.isdigit() and int(declared) > self._max_bytes:
            logger.warning(
                "REQUEST REJECTED | path=%s | content_length=%s | limit=%s",
                request.url.path,
                declared,
                self._max_bytes,
            )
            return JSONResponse(
                status_code=413,
                content={
                    "message": "Request body too large",
                    "details": {"content_length": int(declared), "max_bytes": self._max_bytes},
                },
            )
        return await call_next(request)


class RequestTimingMiddleware(BaseHTTPMiddleware):
    """Adds ``X-Process-Time-Ms`` and logs requests that keep the solver busy."""

    async def dispatch(self, request: Request, call_next) -> Response:
        started = perf_counter()
        response = await call_next(request)
        elapsed_ms = int((perf_counter() - started) * 1000)
        response.headers["X-Process-Time-Ms"] = str(elapsed_ms)
        if elapsed_ms >= SLOW_REQUEST_MS:
            logger.info(
                "SLOW REQUEST | method=%s | path=%s | status=%s | elapsed_ms=%s",
                request.method,
                request.url.path,
                response.status_code,
                elapsed_ms,
            )
        return response
