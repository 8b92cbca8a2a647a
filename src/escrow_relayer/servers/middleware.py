"""FastAPI middleware for request tracing, security headers, the request gate and error handling.

Middleware stack (outermost first):
    1. RequestIDMiddleware: binds X-Request-ID into every log entry and response
    2. SecurityHeadersMiddleware: adds conservative browser security headers
    3. CORSMiddleware: answers preflight requests for the configured origin
    4. ErrorHandlerMiddleware: turns relayer exceptions into JSON error bodies
    5. RequestGateMiddleware: API key check, then rate limit (``/health`` bypasses both)
"""

import uuid
from typing import TYPE_CHECKING, Iterable, Optional

import structlog
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from ..engine.exceptions import AuthError, RateLimited, RelayerError, RequestValidationError
from ..logging_config import get_logger
from ..schemas.https import ErrorResponse
from .limits import RateLimiter
from .security import API_KEY_HEADER, verify_api_key

if TYPE_CHECKING:
    from fastapi import FastAPI, Request, Response

logger = get_logger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "X-DNS-Prefetch-Control": "off",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
    "Cross-Origin-Resource-Policy": "same-origin",
}


# ---------------------------------------------------------------------------
# 1. Request ID
# ---------------------------------------------------------------------------
class RequestIDMiddleware(BaseHTTPMiddleware):
    """Inject a unique X-Request-ID into every request for log correlation."""

    async def dispatch(self, request: "Request", call_next: RequestResponseEndpoint) -> "Response":
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id, path=request.url.path)

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


# ---------------------------------------------------------------------------
# 2. Security headers
# ---------------------------------------------------------------------------
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: "Request", call_next: RequestResponseEndpoint) -> "Response":
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response


# ---------------------------------------------------------------------------
# 4. Error handling
# ---------------------------------------------------------------------------
def error_response(exc: RelayerError) -> JSONResponse:
    """Render a relayer exception as the JSON error body for its status code."""
    if isinstance(exc, RateLimited):
        body = ErrorResponse(error="Too many requests", retry_after=exc.retry_after)
        return JSONResponse(
            status_code=exc.status_code,
            content=body.to_dict(),
            headers={"Retry-After": str(exc.retry_after)},
        )
    if isinstance(exc, AuthError):
        body = ErrorResponse(error=exc.message)
    elif isinstance(exc, RequestValidationError):
        body = ErrorResponse(error=exc.message, details=exc.details or None)
    else:
        body = ErrorResponse(error=exc.message, code=exc.code)
    return JSONResponse(status_code=exc.status_code, content=body.to_dict())


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Catch relayer exceptions and return structured JSON error responses."""

    async def dispatch(self, request: "Request", call_next: RequestResponseEndpoint) -> "Response":
        try:
            return await call_next(request)
        except (AuthError, RateLimited, RequestValidationError) as exc:
            logger.info("request.rejected", code=exc.code, status=exc.status_code)
            return error_response(exc)
        except RelayerError as exc:
            logger.error("relayer.error", code=exc.code, error=exc.message)
            return error_response(exc)
        except Exception as exc:
            logger.exception("unhandled.error", error=str(exc))
            return JSONResponse(status_code=500, content=ErrorResponse(error="Internal server error").to_dict())


# ---------------------------------------------------------------------------
# 5. Request gate
# ---------------------------------------------------------------------------
class RequestGateMiddleware(BaseHTTPMiddleware):
    """
    Shed unauthenticated and over-limit traffic before any route runs.

    Args:
        api_key: Expected ``X-API-Key`` value; the key check is skipped when ``None``.
        limiter: Rate limiter keyed by client IP.
        exempt_paths: Paths that bypass both checks.
    """

    def __init__(
        self,
        app: ASGIApp,
        limiter: RateLimiter,
        api_key: Optional[str] = None,
        exempt_paths: Iterable[str] = ("/health",),
    ):
        super().__init__(app)
        self.limiter = limiter
        self.api_key = api_key
        self.exempt_paths = frozenset(exempt_paths)

    @staticmethod
    def client_identity(request: "Request") -> str:
        return request.client.host if request.client else "unknown"

    async def dispatch(self, request: "Request", call_next: RequestResponseEndpoint) -> "Response":
        if request.url.path in self.exempt_paths or request.method == "OPTIONS":
            return await call_next(request)

        verify_api_key(request.headers.get(API_KEY_HEADER), self.api_key)
        self.limiter.check(self.client_identity(request))
        return await call_next(request)


# ---------------------------------------------------------------------------
# Setup function
# ---------------------------------------------------------------------------
def setup_middleware(app: "FastAPI", limiter: RateLimiter, api_key: Optional[str], cors_origin: str) -> None:
    """Register all middleware on the FastAPI application.

    Middleware is applied bottom-up: the last added runs first.
    """
    app.add_middleware(RequestGateMiddleware, limiter=limiter, api_key=api_key)
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[cors_origin],
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIDMiddleware)
