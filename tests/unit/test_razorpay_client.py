import json

import httpx
import pytest

from heavyrent.breaker import CircuitBreaker
from heavyrent.clients import RazorpayClient
from heavyrent.errors import ExternalServiceError, GatewayConfigurationError
from tests.helpers import FakeRedis


def make_client(handler, breaker=None):
    return RazorpayClient(
        key_id="rzp_test_key",
        key_secret="rzp_test_secret",
        base_url="https://razorpay.test/v1",
        breaker=breaker,
        transport=httpx.MockTransport(handler),
    )


async def test_create_order_posts_minor_units_with_basic_auth():
    seen = {}

    def handler(request: httpx.Request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "order_abc", "amount": seen["body"]["amount"], "status": "created"})

    order = await make_client(handler).create_order(42500, "INR", "booking_1", {"booking_id": "1"})

    assert order["id"] == "order_abc"
    assert seen["url"] == "https://razorpay.test/v1/orders"
    assert seen["auth"].startswith("Basic ")
    assert seen["body"] == {"amount": 42500, "currency": "INR", "receipt": "booking_1", "notes": {"booking_id": "1"}}


async def test_gateway_error_is_reported_once_without_retry():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(500, json={"error": {"description": "boom"}})

    with pytest.raises(ExternalServiceError):
        await make_client(handler).create_order(100, "INR", "r", {})
    assert len(calls) == 1


async def test_order_without_id_is_rejected():
    with pytest.raises(ExternalServiceError):
        await make_client(lambda r: httpx.Response(200, json={"status": "created"})).create_order(100, "INR", "r", {})


async def test_missing_credentials():
    client = RazorpayClient(key_id=None, key_secret=None)
    with pytest.raises(GatewayConfigurationError) as exc:
        await client.create_order(100, "INR", "r", {})
    assert exc.value.status_code == 500


async def test_open_breaker_short_circuits():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(502)

    breaker = CircuitBreaker("razorpay", FakeRedis(), failure_threshold=1)
    client = make_client(handler, breaker=breaker)

    with pytest.raises(ExternalServiceError):
        await client.create_order(100, "INR", "r", {})
    with pytest.raises(ExternalServiceError, match="temporarily unavailable"):
        await client.create_order(100, "INR", "r", {})
    assert len(calls) == 1
