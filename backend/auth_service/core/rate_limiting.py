"""Rate limiting configuration using slowapi.

Security: bounds credential guessing and code guessing per client IP on
the unauthenticated endpoints.

Usage in routers:
    from auth_service.core.rate_limiting import limiter

    @router.post("/login")
    @limiter.limit(lambda: settings.rate_limit_login)
    async def login(request: Request, ...):
        ...
"""

from fastapi import Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from auth_service.core.config import settings

# Global limiter instance
# In-memory storage: limits are per process. For multiple instances,
# configure Redis storage via RATELIMIT_STORAGE_URL.
limiter = Limiter(
    key_func=get_remote_address,
    enabled=settings.rate_limit_enabled,
)


def rate_limit_exceeded_handler(
    _request: Request,
    exc: RateLimitExceeded,
) -> Response:
    """Handle rate limit exceeded errors.

    Returns 429 Too Many Requests with the standard error envelope.

    Args:
        request: The incoming request.
        exc: The rate limit exception.

    Returns:
        JSONResponse with 429 status and retry-after header.
    """
    # Parse retry-after from exception detail (e.g., "5 per 15 minute")
    # Fallback to 60 seconds if parsing fails
    try:
        retry_after = str(exc.detail.split()[-1])
        int(retry_after.rstrip("s"))  # "60" or "60s" -> 60
    except (ValueError, AttributeError, IndexError):
        retry_after = "60"

    return JSONResponse(
        status_code=429,
        content={
            "error": {
                "code": "RATE_LIMITED",
                "message": f"Rate limit exceeded: {exc.detail}",
            }
        },
        headers={"Retry-After": retry_after},
    )
