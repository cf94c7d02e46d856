"""
Per-client request rate limits kept in Redis.

Two limits, both keyed on the client IP (first X-Forwarded-For hop, else the
socket peer):

- Every /api/v1 route: RATE_LIMIT_REQUESTS per RATE_LIMIT_WINDOW_MINUTES,
  counted by fastapi-limiter per client and route.
- Login: after LOGIN_MAX_FAILURES failed attempts inside the window the
  client is refused until the window expires. Successful logins are not
  counted.

Both limits fail open. With Redis disabled or unreachable every request
passes, the same way the event list cache degrades.
"""

import math

import redis.asyncio as redis
from fastapi import Request, Response
from fastapi_limiter import FastAPILimiter
from fastapi_limiter.depends import RateLimiter

from booking_api.core.config import get_settings
from booking_api.core.exceptions import RateLimitedError
from booking_api.core.logging import get_logger
from booking_api.services.cache_service import get_redis

logger = get_logger(__name__)

RATE_LIMIT_PREFIX = "rate:api"
LOGIN_FAILURE_PREFIX = "rate:login-failures:"


async def client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


async def too_many_requests(request: Request, response: Response, pexpire: int):
    logger.warning("rate_limit_exceeded", path=request.url.path)
    raise RateLimitedError(
        "Too many requests from this IP, please try again later",
        retry_after=math.ceil(pexpire / 1000),
    )


class ApiRateLimiter(RateLimiter):
    """fastapi-limiter dependency that lets requests through when Redis is absent."""

    async def __call__(self, request: Request, response: Response):
        if FastAPILimiter.redis is None:
            return
        try:
            await super().__call__(request, response)
        except redis.RedisError as e:
            logger.warning("rate_limit_unavailable", error=str(e))


_settings = get_settings()
api_rate_limiter = ApiRateLimiter(
    times=_settings.RATE_LIMIT_REQUESTS,
    minutes=_settings.RATE_LIMIT_WINDOW_MINUTES,
)


async def init_rate_limiter(client: redis.Redis) -> bool:
    """Point fastapi-limiter at `client`. Returns False if the script could not be loaded."""
    try:
        await FastAPILimiter.init(
            client,
            prefix=RATE_LIMIT_PREFIX,
            identifier=client_ip,
            http_callback=too_many_requests,
        )
    except redis.RedisError as e:
        logger.error("rate_limiter_init_failed", error=str(e))
        FastAPILimiter.redis = None
        return False
    return True


def reset_rate_limiter() -> None:
    FastAPILimiter.redis = None


def _login_key(ip: str) -> str:
    return f"{LOGIN_FAILURE_PREFIX}{ip}"


async def check_login_allowed(request: Request) -> None:
    """Dependency for the login route: refuse clients over the failure limit."""
    client = await get_redis()
    if not client:
        return

    settings = get_settings()
    key = _login_key(await client_ip(request))
    try:
        failures = await client.get(key)
        if failures is None or int(failures) < settings.LOGIN_MAX_FAILURES:
            return
        ttl = await client.ttl(key)
    except redis.RedisError as e:
        logger.warning("login_limit_unavailable", error=str(e))
        return

    logger.warning("login_rate_limited", failures=int(failures))
    raise RateLimitedError(
        f"Too many login attempts, please try again after {settings.RATE_LIMIT_WINDOW_MINUTES} minutes",
        retry_after=max(ttl, 1),
    )


async def record_login_failure(request: Request) -> None:
    client = await get_redis()
    if not client:
        return

    key = _login_key(await client_ip(request))
    try:
        failures = await client.incr(key)
        if failures == 1:
            await client.expire(key, get_settings().RATE_LIMIT_WINDOW_MINUTES * 60)
    except redis.RedisError as e:
        logger.warning("login_limit_unavailable", error=str(e))
