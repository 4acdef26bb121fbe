import logging
import time

logger = logging.getLogger(__name__)

CLOSED = "CLOSED"
OPEN = "OPEN"
HALF_OPEN = "HALF_OPEN"

FAILURE_WINDOW_SECONDS = 60


class CircuitBreakerOpen(Exception):
    pass


class CircuitBreaker:
    """Trips after ``failure_threshold`` outbound failures inside a minute.

    While open, calls fail fast until ``reset_timeout_seconds`` have passed;
    the next call is then let through as a probe (half-open) and its outcome
    closes or re-opens the circuit. State lives in Redis so every API worker
    sees the same circuit. Without a Redis client the breaker never trips.
    """

    def __init__(self, name: str, redis_client=None, failure_threshold: int = 5, reset_timeout_seconds: int = 30):
        self.name = name
        self.redis = redis_client
        self.failure_threshold = failure_threshold
        self.reset_timeout_seconds = reset_timeout_seconds

    def _key(self, part: str) -> str:
        return f"cb:{self.name}:{part}"

    async def state(self) -> str:
        if self.redis is None:
            return CLOSED
        return await self.redis.get(self._key("state")) or CLOSED

    async def _cooled_down(self) -> bool:
        opened_at = await self.redis.get(self._key("opened_at"))
        if not opened_at:
            return True
        return time.time() - float(opened_at) >= self.reset_timeout_seconds

    async def allow_request(self) -> None:
        if await self.state() != OPEN:
            return

        if not await self._cooled_down():
            raise CircuitBreakerOpen(f"Circuit breaker OPEN for {self.name}")

        await self.redis.set(self._key("state"), HALF_OPEN)
        logger.info("circuit %s half-open, probing", self.name)

    async def record_success(self) -> None:
        if self.redis is not None:
            await self.close()

    async def record_failure(self) -> None:
        if self.redis is None:
            return

        if await self.state() == HALF_OPEN:
            await self.open()
            return

        failures = await self.redis.incr(self._key("failures"))
        if failures == 1:
            await self.redis.expire(self._key("failures"), FAILURE_WINDOW_SECONDS)
        if failures >= self.failure_threshold:
            await self.open()

    async def open(self) -> None:
        ttl = self.reset_timeout_seconds + 30
        pipe = self.redis.pipeline()
        pipe.set(self._key("state"), OPEN)
        pipe.set(self._key("opened_at"), str(time.time()))
        pipe.expire(self._key("state"), ttl)
        pipe.expire(self._key("opened_at"), ttl)
        await pipe.execute()
        logger.warning("circuit %s opened", self.name)

    async def close(self) -> None:
        pipe = self.redis.pipeline()
        pipe.set(self._key("state"), CLOSED)
        pipe.delete(self._key("failures"))
        pipe.delete(self._key("opened_at"))
        pipe.expire(self._key("state"), 3600)
        await pipe.execute()

    async def status(self) -> dict:
        return {"name": self.name, "state": await self.state()}
