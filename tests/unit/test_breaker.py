import time

import pytest

from heavyrent.breaker import CircuitBreaker, CircuitBreakerOpen
from tests.helpers import FakeRedis


async def test_without_redis_breaker_is_always_closed():
    cb = CircuitBreaker("razorpay", None, failure_threshold=1)
    await cb.record_failure()
    await cb.allow_request()
    assert await cb.status() == {"name": "razorpay", "state": "CLOSED"}


async def test_opens_after_threshold_and_blocks():
    cb = CircuitBreaker("razorpay", FakeRedis(), failure_threshold=2, reset_timeout_seconds=30)

    await cb.record_failure()
    await cb.allow_request()
    await cb.record_failure()

    assert (await cb.status())["state"] == "OPEN"
    with pytest.raises(CircuitBreakerOpen):
        await cb.allow_request()


async def test_half_open_probe_then_close():
    redis = FakeRedis()
    cb = CircuitBreaker("razorpay", redis, failure_threshold=1, reset_timeout_seconds=30)
    await cb.record_failure()

    redis.data["cb:razorpay:opened_at"] = str(time.time() - 60)
    await cb.allow_request()
    assert (await cb.status())["state"] == "HALF_OPEN"

    await cb.record_success()
    assert (await cb.status())["state"] == "CLOSED"


async def test_failed_probe_reopens():
    redis = FakeRedis()
    cb = CircuitBreaker("razorpay", redis, failure_threshold=1, reset_timeout_seconds=30)
    await cb.record_failure()
    redis.data["cb:razorpay:opened_at"] = str(time.time() - 60)
    await cb.allow_request()

    await cb.record_failure()
    assert (await cb.status())["state"] == "OPEN"
