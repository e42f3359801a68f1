"""
Rate Limiting Middleware

Token bucket rate limiting in Redis.

Two kinds of bucket:
- authenticated requests: one bucket per tenant
- anonymous login/register: one stricter bucket per client IP, against
  credential stuffing and sign-up spam

Redis down -> limiting is disabled with a warning. We choose availability
over strict rate limiting.
"""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from typing import Optional, Tuple
import redis
import time
import logging
from sigstudio.config import get_settings
from sigstudio.core.exceptions import RateLimitExceeded, error_body
from sigstudio.utils.logging import log_security_event

logger = logging.getLogger(__name__)
settings = get_settings()

AUTH_LIMITED_PATHS = ("/api/auth/login", "/api/auth/register")


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Token bucket limiter keyed per tenant, or per IP on auth endpoints."""

    def __init__(self, app, redis_client=None):
        super().__init__(app)
        self.redis_client = redis_client
        self.redis_available = False

        if redis_client is not None:
            self.redis_available = True
        elif not settings.RATE_LIMIT_ENABLED:
            logger.info("Rate limiting disabled by configuration")
        else:
            try:
                self.redis_client = redis.from_url(
                    settings.REDIS_URL,
                    decode_responses=True,
                    socket_connect_timeout=5
                )
                self.redis_client.ping()
                self.redis_available = True
                logger.info("Redis connection established for rate limiting")
            except (redis.ConnectionError, redis.TimeoutError) as e:
                logger.error(f"Redis connection failed: {e}")
                logger.warning("Rate limiting disabled - Redis unavailable")

        self.excluded_paths = [
            "/docs",
            "/redoc",
            "/openapi.json",
            "/health",
            "/uploads",
        ]

    async def dispatch(self, request: Request, call_next):
        if not self.redis_available:
            return await call_next(request)

        path = request.url.path
        if any(path.startswith(excluded) for excluded in self.excluded_paths):
            return await call_next(request)

        bucket = self._bucket_for(request)
        if bucket is None:
            return await call_next(request)

        key, rate_limit, burst = bucket
        allowed, retry_after = self._check_rate_limit(key, rate_limit, burst)

        if not allowed:
            log_security_event(
                "rate_limit_exceeded",
                {
                    "tenant_id": getattr(request.state, "tenant_id", None),
                    "client_ip": self._client_ip(request),
                    "path": path,
                },
                logger,
            )
            exc = RateLimitExceeded(retry_after=retry_after)
            return JSONResponse(
                status_code=exc.status_code,
                content=error_body(exc),
                headers=exc.headers,
            )

        return await call_next(request)

    def _bucket_for(self, request: Request) -> Optional[Tuple[str, int, int]]:
        """
        Pick the bucket for a request: (redis key, per-minute rate, burst).

        Login/register are always limited per IP, even with a bearer token
        attached. Other anonymous requests are not limited here; they fail
        authentication anyway.
        """
        if request.url.path in AUTH_LIMITED_PATHS:
            return (
                f"rate_limit:auth:{self._client_ip(request)}",
                settings.AUTH_RATE_LIMIT_PER_MINUTE,
                settings.AUTH_RATE_LIMIT_BURST,
            )

        tenant_id = getattr(request.state, "tenant_id", None)
        if tenant_id:
            return (
                f"rate_limit:{tenant_id}",
                settings.RATE_LIMIT_PER_MINUTE,
                settings.RATE_LIMIT_BURST,
            )
        return None

    def _check_rate_limit(self, key: str, rate_limit: int, burst: int) -> Tuple[bool, int]:
        """
        Check if request is allowed under rate limit.

        Returns: (allowed, retry_after seconds)

        Token bucket:
        - Bucket holds at most ``burst`` tokens
        - Refilled at ``rate_limit`` tokens per minute
        - Each request consumes one token
        """
        key_timestamp = f"{key}:timestamp"

        try:
            current_tokens = self.redis_client.get(key)
            last_update = self.redis_client.get(key_timestamp)

            now = time.time()

            if current_tokens is None:
                self.redis_client.setex(key, 60, burst - 1)
                self.redis_client.setex(key_timestamp, 60, now)
                return True, 0

            current_tokens = float(current_tokens)
            last_update = float(last_update) if last_update else now

            elapsed = now - last_update
            tokens_to_add = elapsed * (rate_limit / 60.0)
            new_tokens = min(burst, current_tokens + tokens_to_add)

            if new_tokens >= 1:
                new_tokens -= 1
                self.redis_client.setex(key, 60, new_tokens)
                self.redis_client.setex(key_timestamp, 60, now)
                return True, 0

            tokens_needed = 1 - new_tokens
            retry_after = int((tokens_needed / (rate_limit / 60.0)) + 1)
            return False, retry_after

        except redis.RedisError as e:
            logger.error(f"Redis error in rate limiting: {e}")
            return True, 0

    @staticmethod
    def _client_ip(request: Request) -> str:
        """
        Address the request came from.

        X-Forwarded-For is only read when the direct peer is one of
        TRUSTED_PROXIES; the client is then the right-most hop that is not
        itself a trusted proxy.
        """
        peer = request.client.host if request.client else "unknown"
        trusted = set(settings.TRUSTED_PROXIES)
        if peer not in trusted:
            return peer

        forwarded = request.headers.get("X-Forwarded-For", "")
        hops = [hop.strip() for hop in forwarded.split(",") if hop.strip()]
        for hop in reversed(hops):
            if hop not in trusted:
                return hop
        return peer
