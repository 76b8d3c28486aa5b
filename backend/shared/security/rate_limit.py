"""
Rate limiting with slowapi, keyed by client IP.

Usage:
    @router.post("/login")
    @limiter.limit(settings.login_rate_limit)
    def login(request: Request, body: LoginRequest):
        ...
"""

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from shared.config.logging import get_logger

logger = get_logger(__name__)

limiter = Limiter(key_func=get_remote_address)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """JSON 429 with Retry-After."""
    logger.warning(
        "Rate limit exceeded",
        path=request.url.path,
        client=get_remote_address(request),
        limit=str(exc.detail),
    )
    return JSONResponse(
        status_code=429,
        content={
            "detail": "Límite de solicitudes excedido. Intente más tarde.",
            "retry_after": exc.detail,
        },
        headers={"Retry-After": "60"},
    )
