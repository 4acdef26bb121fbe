"""Shared fakes and request helpers for the test suite."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy import update

from heavyrent.clients import RazorpayClient, expected_signature
from heavyrent.models import Profile

GATEWAY_SECRET = "rzp_test_secret"
PASSWORD = "correct-horse-1"


class FakeGateway(RazorpayClient):
    """RazorpayClient that never leaves the process; signatures use the real HMAC."""

    def __init__(self):
        super().__init__(key_id="rzp_test_key", key_secret=GATEWAY_SECRET)
        self.orders: list[dict] = []

    async def create_order(self, amount_minor, currency, receipt, notes):
        self.require_credentials()
        order = {
            "id": f"order_test{len(self.orders) + 1}",
            "amount": amount_minor,
            "currency": currency,
            "receipt": receipt,
            "notes": notes,
            "status": "created",
        }
        self.orders.append(order)
        return order


def sign(order_id: str, payment_id: str) -> str:
    return expected_signature(GATEWAY_SECRET, order_id, payment_id)


class FakePipeline:
    def __init__(self, store):
        self.store = store
        self.ops = []

    def set(self, key, value):
        self.ops.append(("set", key, value))

    def delete(self, key):
        self.ops.append(("delete", key, None))

    def expire(self, key, seconds):
        self.ops.append(("expire", key, seconds))

    async def execute(self):
        for op, key, value in self.ops:
            if op == "set":
                self.store.data[key] = str(value)
            elif op == "delete":
                self.store.data.pop(key, None)
        self.ops = []


class FakeRedis:
    """Just enough of redis.asyncio for the breaker and the rate limiter."""

    def __init__(self):
        self.data: dict[str, str] = {}

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value):
        self.data[key] = str(value)

    async def incr(self, key):
        value = int(self.data.get(key, 0)) + 1
        self.data[key] = str(value)
        return value

    async def expire(self, key, seconds):
        return True

    async def delete(self, key):
        self.data.pop(key, None)

    def pipeline(self):
        return FakePipeline(self)


@dataclass
class Account:
    token: str
    profile_id: str

    @property
    def headers(self) -> dict:
        return {"Authorization": f"Bearer {self.token}"}


async def signup(client, email: str, name: str, role: str = "client") -> Account:
    r = await client.post(
        "/auth/register",
        json={"email": email, "password": PASSWORD, "name": name, "role": role},
    )
    assert r.status_code == 200, r.text
    assert r.json()["success"] is True

    r = await client.post("/auth/login", json={"email": email, "password": PASSWORD})
    assert r.status_code == 200, r.text
    body = r.json()
    return Account(token=body["access_token"], profile_id=body["profile"]["id"])


async def promote(session_factory, profile_id: str, role: str) -> None:
    async with session_factory() as session:
        await session.execute(update(Profile).where(Profile.id == profile_id).values(role=role))
        await session.commit()


def equipment_payload(**overrides) -> dict:
    payload = {
        "name": "CAT 320 Excavator",
        "category": "excavator",
        "type": "crawler",
        "description": "20 tonne crawler excavator",
        "daily_rate": "1200",
        "city": "Mumbai",
        "address": "Plot 12, MIDC Andheri East",
        "latitude": 19.076,
        "longitude": 72.8777,
        "specifications": {"operating_weight_t": 20, "bucket_m3": 1.2, "operator_included": True},
        "images": [],
    }
    payload.update(overrides)
    return payload


async def list_equipment(client, operator: Account, **overrides) -> str:
    r = await client.post("/equipment", json=equipment_payload(**overrides), headers=operator.headers)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["success"] is True, body
    return body["equipment"]["id"]


def rental_day(days_ahead: int = 3) -> datetime:
    base = datetime.now(timezone.utc) + timedelta(days=days_ahead)
    return base.replace(hour=0, minute=0, second=0, microsecond=0)


def booking_payload(equipment_id: str, start: datetime, end: datetime, duration_hours: int, **overrides) -> dict:
    payload = {
        "equipment_id": equipment_id,
        "start_time": start.isoformat(),
        "end_time": end.isoformat(),
        "duration_hours": duration_hours,
        "client_name": "Ravi Kumar",
        "client_phone": "+919876543210",
        "pickup_address": "Gate 3, Powai Industrial Estate",
        "delivery_address": "Site office, Hiranandani Gardens",
    }
    payload.update(overrides)
    return payload


async def book(client, account: Account, equipment_id: str, start: datetime, hours: int, **overrides):
    end = start + timedelta(hours=hours)
    return await client.post(
        "/bookings",
        json=booking_payload(equipment_id, start, end, hours, **overrides),
        headers=account.headers,
    )
