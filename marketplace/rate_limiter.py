"""
Redis-backed rate limiting utilities

Fixed window per client IP using INCR + EXPIRE (two Redis commands per request).
Without Redis configured requests are allowed; a Redis failure on a
configured limiter denies the request.
"""

import logging
import time
from typing import Optional

import redis
from fastapi import HTTPException, Request, status

from .config import Settings

logger = logging.getLogger(__name__)


def get_redis_client(settings: Settings) -> Optional[redis.Redis]:
    """Connect to Redis if configured. Returns None when rate limiting has no backend."""
    if not settings.redis_url:
        logger.info("REDIS_URL not set - rate limiting disabled")
        return None

    # Mask password in URL for logging
    masked_url = settings.redis_url.split("@")[-1] if "@" in settings.redis_url else "****"
    logger.info(f"📡 Using Redis URL connection: ****@{masked_url}")

    client = redis.from_url(
        settings.redis_url,
        decode_responses=True,
        socket_connect_timeout=15,
        socket_timeout=30,
        retry_on_timeout=True,
        health_check_interval=30,
        max_connections=20,
    )
    client.ping()
    logger.info("Redis connected successfully via URL")
    return client


def check_rate_limit(
    client: redis.Redis, key: str, limit: int, window_seconds: int
) -> tuple[bool, int, int]:
    """
    Count one request against key.

    Returns:
        Tuple of (is_allowed, current_count, ttl_seconds)
    """
    count = client.incr(key)
    if count == 1:
        client.expire(key, window_seconds)

    ttl = client.ttl(key)
    if ttl is None or ttl < 0:
        # Key lost its expiry (e.g. crash between INCR and EXPIRE)
        client.expire(key, window_seconds)
        ttl = window_seconds

    return count <= limit, count, ttl


def get_client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip
    return request.client.host if request.client else "unknown"


async def rate_limit_dependency(
    request: Request, limit: int, window_seconds: int, key_prefix: str = "ratelimit"
):
    """
    FastAPI dependency for rate limiting

    Args:
        request: FastAPI request object
        limit: Maximum requests allowed
        window_seconds: Time window in seconds
        key_prefix: Prefix for Redis key
    """
    settings: Settings = request.app.state.settings
    client: Optional[redis.Redis] = getattr(request.app.state, "redis", None)

    if not settings.rate_limit_enabled or client is None:
        return

    key = f"{key_prefix}:{get_client_ip(request)}"

    try:
        is_allowed, current_count, ttl = check_rate_limit(client, key, limit, window_seconds)
    except redis.RedisError as e:
        logger.error(f"❌ Rate limiting error: {str(e)}")
        logger.warning("🔒 Denying request due to rate limiting error (fail-closed mode)")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Rate limiting service temporarily unavailable",
        ) from e

    reset_at = int(time.time()) + ttl
    if not is_allowed:
        logger.warning(f"🚫 Rate limit EXCEEDED for {key} - {current_count}/{limit} requests used")
        raise HTTPException(
            status_code=429,
            detail={
                "success": False,
                "error": "Too many requests. Please try again later.",
                "rateLimit": {"limit": limit, "remaining": 0, "reset": reset_at},
            },
            headers={
                "X-RateLimit-Limit": str(limit),
                "X-RateLimit-Remaining": "0",
                "X-RateLimit-Reset": str(reset_at),
                "Retry-After": str(ttl),
            },
        )

    request.state.rate_limit_remaining = limit - current_count
    request.state.rate_limit_limit = limit
    request.state.rate_limit_reset = reset_at


def create_rate_limiter(limit: int, window_seconds: int, key_prefix: str = "ratelimit"):
    """
    Create a rate limiter dependency with specific parameters

    Example usage:
        @router.post("/login")
        async def login(data: LoginRequest, _: None = Depends(auth_rate_limit)):
            ...
    """

    async def rate_limiter(request: Request):
        return await rate_limit_dependency(request, limit, window_seconds, key_prefix)

    return rate_limiter


# Brute-force protection for auth endpoints
auth_rate_limit = create_rate_limiter(limit=5, window_seconds=15 * 60, key_prefix="ratelimit:auth")
api_rate_limit = create_rate_limiter(limit=100, window_seconds=60, key_prefix="ratelimit:api")
