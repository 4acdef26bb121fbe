import hashlib
import hmac
import logging

import httpx

from . import config
from .breaker import CircuitBreaker, CircuitBreakerOpen
from .errors import ExternalServiceError, GatewayConfigurationError
from .redis_client import redis_client

logger = logging.getLogger(__name__)

cb_razorpay = CircuitBreaker("razorpay", redis_client, failure_threshold=5, reset_timeout_seconds=30)


def expected_signature(secret: str, order_id: str, payment_id: str) -> str:
    body = f"{order_id}|{payment_id}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def signature_matches(secret: str, order_id: str, payment_id: str, signature: str) -> bool:
    expected = expected_signature(secret, order_id, payment_id)
    return hmac.compare_digest(expected.encode("utf-8"), (signature or "").encode("utf-8"))


class RazorpayClient:
    """Minimal Razorpay Orders API client.

    One POST per order, no retries: a network or HTTP failure is reported
    straight back to the caller as an ExternalServiceError.
    """

    def __init__(
        self,
        key_id: str | None,
        key_secret: str | None,
        base_url: str = "https://api.razorpay.com/v1",
        timeout: float = 10.0,
        breaker: CircuitBreaker | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.key_id = key_id
        self.key_secret = key_secret
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.breaker = breaker or CircuitBreaker("razorpay")
        self._transport = transport

    def require_credentials(self) -> None:
        if not self.key_id or not self.key_secret:
            raise GatewayConfigurationError("Razorpay configuration missing")

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        if not self.key_secret:
            raise GatewayConfigurationError("Razorpay configuration missing")
        return signature_matches(self.key_secret, order_id, payment_id, signature)

    async def create_order(self, amount_minor: int, currency: str, receipt: str, notes: dict) -> dict:
        self.require_credentials()

        try:
            await self.breaker.allow_request()
        except CircuitBreakerOpen as e:
            raise ExternalServiceError(f"Payment gateway temporarily unavailable: {e}")

        payload = {
            "amount": amount_minor,
            "currency": currency,
            "receipt": receipt,
            "notes": notes,
        }
        url = f"{self.base_url}/orders"

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                auth=(self.key_id, self.key_secret),
                transport=self._transport,
            ) as client:
                resp = await client.post(url, json=payload)
                resp.raise_for_status()
                order = resp.json()
        except httpx.TimeoutException:
            await self.breaker.record_failure()
            raise ExternalServiceError("Timeout calling payment gateway")
        except httpx.HTTPStatusError as e:
            await self.breaker.record_failure()
            logger.warning("razorpay order creation failed status=%s", e.response.status_code)
            raise ExternalServiceError(f"Razorpay order creation failed: {e.response.text}")
        except (httpx.HTTPError, ValueError) as e:
            await self.breaker.record_failure()
            raise ExternalServiceError(f"Payment gateway error: {e}")

        await self.breaker.record_success()

        if not order.get("id"):
            raise ExternalServiceError("Payment gateway returned an order without an id")
        return order


def get_gateway() -> RazorpayClient:
    return RazorpayClient(
        key_id=config.RAZORPAY_KEY_ID,
        key_secret=config.RAZORPAY_KEY_SECRET,
        base_url=config.RAZORPAY_API_URL,
        timeout=config.GATEWAY_TIMEOUT_SECONDS,
        breaker=cb_razorpay,
    )
