"""
HTTP middleware: response headers, request logging and body size limit.
"""

import logging
import time
import uuid
from typing import Callable
from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from drift.config import settings


logger = logging.getLogger(__name__)

# Probes and docs are not worth a log line each
SKIP_LOG_PATHS = {"/", "/health", "/docs", "/openapi.json"}

# Everything under these carries personal data and must not be cached
PRIVATE_PATH_PARTS = ("/profiles", "/conversations", "/messages", "/friends", "/matching", "/discover")

API_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Tags each request with a short id and adds defensive headers to the response."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = uuid.uuid4().hex[:8]
        request.state.request_id = request_id

        response = await call_next(request)

        response.headers["X-Request-ID"] = request_id
        response.headers.update(API_HEADERS)

        path = request.url.path
        if any(part in path for part in PRIVATE_PATH_PARTS):
            response.headers["Cache-Control"] = "no-store, private"

        # HSTS only behind TLS in production
        if settings.ENVIRONMENT == "production":
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """One log line per API request: id, client, method, path, status, duration."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        if request.url.path not in SKIP_LOG_PATHS:
            logger.info(
                "%s %s %s %s - %d (%.2fms)",
                getattr(request.state, "request_id", "-"),
                client_ip(request),
                request.method,
                request.url.path,
                response.status_code,
                duration_ms,
            )
        return response


def client_ip(request: Request) -> str:
    """Real client IP, honouring the proxy headers the platform sets."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    return request.client.host if request.client else "unknown"


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject bodies over ``MAX_BODY_SIZE`` before they are read."""

    MAX_BODY_SIZE = 1024 * 1024  # JSON only; images are uploaded to storage

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        content_length = request.headers.get("Content-Length", "")
        if content_length.isdigit() and int(content_length) > self.MAX_BODY_SIZE:
            return JSONResponse(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                content={"detail": "Request body too large. Maximum size is 1MB.", "code": "too_large"},
            )

        return await call_next(request)
