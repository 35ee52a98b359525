"""FastAPI application entry point.

This module creates and configures the FastAPI application, including:
- Exception handlers for API and authentication errors
- Auth router mounting
- Health check endpoint with a database check
- Startup lifespan that precomputes the login dummy hash
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Annotated

import structlog
from fastapi import Depends, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from auth_service.api.router import router as api_router
from auth_service.core.auth import dummy_hash
from auth_service.core.config import settings
from auth_service.core.database import check_database, engine
from auth_service.core.errors import (
    APIError,
    AuthError,
    InternalError,
    ValidationError,
)
from auth_service.core.logging import configure_logging
from auth_service.core.rate_limiting import limiter, rate_limit_exceeded_handler
from auth_service.core.responses import ErrorDetail, ErrorResponse

logger = structlog.get_logger()


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Middleware to add security headers to all responses.

    Headers added:
    - X-Frame-Options: Prevents clickjacking attacks
    - X-Content-Type-Options: Prevents MIME sniffing
    - Referrer-Policy: Controls referrer information leakage
    - Cache-Control: Session tokens and codes must not be cached
    - Content-Security-Policy: Restricts resource loading (API returns no HTML)
    - Strict-Transport-Security: Forces HTTPS (production only)
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        """Add security headers to response."""
        response = await call_next(request)

        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        if request.url.path.startswith("/auth/"):
            response.headers["Cache-Control"] = "no-store, max-age=0"

        response.headers["Content-Security-Policy"] = (
            "default-src 'none'; frame-ancestors 'none'"
        )

        # HSTS only in production (assumes HTTPS via reverse proxy)
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )

        return response


def _error_response(
    status_code: int,
    code: str,
    message: str,
    details: list[dict] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=ErrorDetail(code=code, message=message, details=details)
        ).model_dump(exclude_none=True),
    )


def api_error_handler(_request: Request, exc: APIError) -> JSONResponse:
    """Render an APIError as the standard error envelope."""
    return _error_response(exc.status_code, exc.code, exc.message, exc.details)


def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Translate an engine failure through the kind -> status table.

    Args:
        request: The incoming request.
        exc: The AuthError raised by the engine.

    Returns:
        JSONResponse with the mapped status and fixed message.
    """
    logger.info(
        "Authentication failure",
        kind=exc.kind.value,
        status=exc.status_code,
        path=str(request.url.path),
    )
    return api_error_handler(request, exc.to_api_error())


def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Convert FastAPI's validation errors to the standard envelope (400).

    Only location, message and type are echoed; submitted values are not,
    since they may contain credentials.
    """
    error = ValidationError(
        "Request validation failed",
        details=[
            {"loc": list(e["loc"]), "msg": e["msg"], "type": e["type"]}
            for e in exc.errors()
        ],
    )
    return api_error_handler(request, error)


def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions.

    Returns 500 INTERNAL_ERROR. The cause is logged, never echoed.
    """
    logger.exception("Unhandled exception", exc_info=exc, path=str(request.url.path))
    return api_error_handler(request, InternalError())


async def database_status() -> bool:
    """Health check: whether the database answers a trivial query."""
    try:
        return await check_database()
    except (SQLAlchemyError, OSError):
        logger.warning("Database health check failed", exc_info=True)
        return False


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Startup/shutdown lifecycle."""
    # The first unknown-account login must not pay for hashing the dummy
    dummy_hash(settings.bcrypt_rounds)
    logger.info("Auth service started", environment=settings.environment)
    yield
    await engine.dispose()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    app = FastAPI(
        title="Account Authentication Service",
        version="1.0.0",
        description="Signup, one-time-code verification and bearer sessions",
        lifespan=lifespan,
    )

    # Middleware order: Starlette uses LIFO, so the LAST added runs FIRST.
    # CORS must run first to handle preflight requests, so add it last.
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Accept", "Authorization"],
    )

    # Order matters: specific handlers first, then catch-all
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(AuthError, auth_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(Exception, internal_error_handler)

    app.state.limiter = limiter

    app.include_router(api_router)

    @app.get("/health")
    async def health_check(
        database_ok: Annotated[bool, Depends(database_status)],
    ) -> JSONResponse:
        """Health check endpoint for monitoring.

        Returns:
            200 when the database is reachable, 503 otherwise.
        """
        return JSONResponse(
            status_code=200 if database_ok else 503,
            content={
                "ok": database_ok,
                "timestamp": datetime.now(UTC).isoformat(),
                "database": "connected" if database_ok else "disconnected",
            },
        )

    return app


configure_logging(settings.log_level)

# Create the application instance
# Used by uvicorn: uvicorn auth_service.main:app
app = create_app()
