import logging
import time
import uuid

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from .security import token_subject

logger = logging.getLogger("heavyrent.access")

EXEMPT_PATHS = ("/docs", "/openapi.json", "/health")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
        request.state.request_id = request_id

        start = time.perf_counter()
        try:
            response: Response = await call_next(request)
        except Exception:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.error(
                "request_id=%s method=%s path=%s status=500 duration_ms=%.2f",
                request_id, request.method, request.url.path, duration_ms,
            )
            raise

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-Id"] = request_id

        user_sub = getattr(request.state, "user_sub", None)
        logger.info(
            "request_id=%s method=%s path=%s status=%s duration_ms=%.2f user_sub=%s",
            request_id, request.method, request.url.path, response.status_code, duration_ms, user_sub,
        )
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Fixed one-minute window per identity, counted in Redis."""

    def __init__(self, app, redis_client=None, max_per_minute: int = 120):
        super().__init__(app)
        self.redis = redis_client
        self.max_per_minute = max_per_minute

    async def dispatch(self, request: Request, call_next):
        if self.redis is None:
            return await call_next(request)
        if request.url.path in EXEMPT_PATHS or request.url.path.startswith("/docs/"):
            return await call_next(request)

        ip = request.client.host if request.client else "unknown"
        # runs before route dependencies, so the caller is read from the token itself
        user_sub = token_subject(request.headers.get("Authorization"))
        identity = f"user:{user_sub}" if user_sub else f"ip:{ip}"

        epoch_minute = int(time.time() // 60)
        key = f"rl:{identity}:{epoch_minute}"

        try:
            count = await self.redis.incr(key)
            if count == 1:
                await self.redis.expire(key, 70)
        except Exception as e:
            # limiter unavailable: let traffic through
            logger.warning("rate limiter unavailable: %s", e)
            return await call_next(request)

        if count > self.max_per_minute:
            return JSONResponse(
                status_code=429,
                content={"success": False, "error": "Too many requests", "code": "rate_limited"},
            )

        return await call_next(request)
