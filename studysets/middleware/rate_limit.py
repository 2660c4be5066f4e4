"""
Rate limiting with slowapi. Generation endpoints get their own, much tighter,
limit since every call costs LLM tokens.
"""
import structlog
from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from studysets import config

logger = structlog.get_logger()


def client_key(request: Request) -> str:
    """First hop of X-Forwarded-For when behind a proxy, else the socket address."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return get_remote_address(request)


limiter = Limiter(key_func=client_key, default_limits=config.DEFAULT_RATE_LIMITS)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    logger.warning("rate_limit_exceeded", client=client_key(request), path=request.url.path, limit=exc.detail)
    return JSONResponse(
        status_code=429,
        content={"error": f"Rate limit exceeded: {exc.detail}. Please try again later."},
        headers={"Retry-After": "60"},
    )


def ai_generation_limit():
    """Rate limit for AI generation endpoints"""
    return limiter.limit(config.AI_GENERATION_RATE_LIMIT)
