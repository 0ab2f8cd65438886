"""
FastAPI middleware for observability.

Provides:
- Request correlation ID injection (X-Request-ID)
- Request/response logging with X-Response-Time
- Request timeout protection
- CORS pre-flight with an empty body
"""
import asyncio
import time
from typing import Callable
from starlette.datastructures import Headers
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import Response, JSONResponse

from core.observability import (
    get_logger,
    generate_correlation_id,
    set_correlation_id,
    get_correlation_id,
    metrics,
)

logger = get_logger(__name__)

# Request timeout settings (seconds)
DEFAULT_REQUEST_TIMEOUT = 30.0
SLOW_ENDPOINT_TIMEOUT = 60.0  # Forecast misses aggregate history and may call the LLM

# Endpoints that get extended timeout
SLOW_ENDPOINTS = {
    "/api/growth-forecast",
}

HEALTH_PATHS = ("/api/health", "/health")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Stamps a correlation ID on each request, logs start/completion with
    timing and records per-endpoint metrics.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get("X-Request-ID") or generate_correlation_id()
        set_correlation_id(correlation_id)

        start_time = time.perf_counter()
        method, path = request.method, request.url.path
        endpoint = f"{method} {path}"
        quiet = path in HEALTH_PATHS or method == "OPTIONS"

        if not quiet:
            logger.info(
                f"Request started: {endpoint}",
                extra={
                    "method": method,
                    "path": path,
                    "client_ip": request.client.host if request.client else "unknown",
                }
            )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                f"Request failed: {endpoint}",
                extra={
                    "method": method,
                    "path": path,
                    "duration_ms": round((time.perf_counter() - start_time) * 1000, 2),
                    "error": str(e),
                }
            )
            metrics.record_error(type(e).__name__)
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000
        response.headers["X-Request-ID"] = correlation_id
        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"

        if not quiet:
            log = logger.info if response.status_code < 400 else logger.warning
            log(
                f"Request completed: {endpoint}",
                extra={
                    "method": method,
                    "path": path,
                    "status_code": response.status_code,
                    "duration_ms": round(duration_ms, 2),
                }
            )

        metrics.record_request(endpoint)
        metrics.record_timing(endpoint, duration_ms)
        if response.status_code >= 400:
            metrics.record_error(f"HTTP_{response.status_code}")

        return response


class RequestTimeoutMiddleware(BaseHTTPMiddleware):
    """
    Enforces a per-request timeout.

    Returns 504 Gateway Timeout if the request exceeds it.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if path in HEALTH_PATHS:
            return await call_next(request)

        timeout = SLOW_ENDPOINT_TIMEOUT if path in SLOW_ENDPOINTS else DEFAULT_REQUEST_TIMEOUT

        try:
            return await asyncio.wait_for(call_next(request), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(
                f"Request timeout: {request.method} {path}",
                extra={"method": request.method, "path": path, "timeout": timeout}
            )
            metrics.record_error("REQUEST_TIMEOUT")
            return JSONResponse(
                status_code=504,
                content={
                    "error": "Request Timeout",
                    "detail": f"Request exceeded {timeout}s timeout",
                    "path": path,
                    "correlation_id": get_correlation_id(),
                }
            )


class EmptyPreflightCORSMiddleware(CORSMiddleware):
    """
    CORSMiddleware whose successful pre-flight is an empty 200.

    Starlette answers accepted pre-flights with a plain-text "OK" body;
    rejected ones keep the default 400 with the failure text.
    """

    def preflight_response(self, request_headers: Headers) -> Response:
        response = super().preflight_response(request_headers)
        if response.status_code != 200:
            return response

        headers = {
            key: value
            for key, value in response.headers.items()
            if key not in ("content-length", "content-type")
        }
        return Response(status_code=200, headers=headers)
