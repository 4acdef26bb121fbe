from datetime import timedelta

from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from heavyrent import notifications
from heavyrent.clients import RazorpayClient, get_gateway
from heavyrent.main import app
from heavyrent.models import Booking, Notification, Payment
from tests.helpers import book, list_equipment, rental_day, sign, signup


async def _booked(client):
    operator = await signup(client, "op@example.com", "Asha Rao", role="operator")
    renter = await signup(client, "client@example.com", "Ravi Kumar")
    equipment_id = await list_equipment(client, operator)
    booking = (await book(client, renter, equipment_id, rental_day() + timedelta(hours=9), 4)).json()["booking"]
    return operator, renter, booking


async def _order(client, renter, booking, amount="425"):
    r = await client.post(
        "/payments/orders",
        json={"booking_id": booking["id"], "amount": amount},
        headers=renter.headers,
    )
    return r.json()


async def _notification_count(session_factory):
    async with session_factory() as session:
        return await session.scalar(select(func.count()).select_from(Notification))


async def test_order_is_created_in_minor_units(client, gateway):
    _, renter, booking = await _booked(client)

    body = await _order(client, renter, booking)
    assert body["success"] is True
    assert body["key"] == "rzp_test_key"
    assert body["payment"]["status"] == "pending"
    assert body["payment"]["amount"] == 425

    sent = gateway.orders[0]
    assert sent["amount"] == 42500
    assert sent["currency"] == "INR"
    assert len(sent["receipt"]) <= 40
    assert sent["notes"]["booking_id"] == booking["id"]
    assert body["order"]["id"] == sent["id"]


async def test_order_rules(client, gateway):
    operator, renter, booking = await _booked(client)

    body = await _order(client, operator, booking)
    assert body["error"] == "Unauthorized to pay for this booking"

    r = await client.post(
        "/payments/orders", json={"booking_id": booking["id"], "amount": "5000"}, headers=renter.headers
    )
    assert r.status_code == 400

    r = await client.post(
        "/payments/orders", json={"booking_id": booking["id"], "amount": "0"}, headers=renter.headers
    )
    assert r.status_code == 400

    body = await _order(client, renter, {"id": "missing"})
    assert body["code"] == "not_found"
    assert gateway.orders == []


async def test_missing_gateway_configuration(client):
    _, renter, booking = await _booked(client)
    app.dependency_overrides[get_gateway] = lambda: RazorpayClient(key_id=None, key_secret=None)

    r = await client.post(
        "/payments/orders", json={"booking_id": booking["id"], "amount": "425"}, headers=renter.headers
    )
    assert r.status_code == 500
    assert r.json() == {"success": False, "error": "Razorpay configuration missing", "code": "configuration_error"}


async def test_verify_confirms_booking_and_notifies_both_parties(client, session_factory):
    operator, renter, booking = await _booked(client)
    order_id = (await _order(client, renter, booking))["order"]["id"]
    before = await _notification_count(session_factory)

    payload = {
        "razorpay_order_id": order_id,
        "razorpay_payment_id": "pay_001",
        "razorpay_signature": sign(order_id, "pay_001"),
        "booking_id": booking["id"],
    }
    r = await client.post("/payments/verify", json=payload, headers=renter.headers)
    body = r.json()
    assert body["success"] is True
    assert body["already_verified"] is False
    assert body["payment"]["status"] == "paid"
    assert body["payment"]["razorpay_payment_id"] == "pay_001"
    assert body["payment"]["payment_date"] is not None
    assert body["booking"]["status"] == "confirmed"
    assert await _notification_count(session_factory) == before + 2

    renter_titles = [n["title"] for n in (await client.get("/notifications", headers=renter.headers)).json()["notifications"]]
    assert "Payment Successful" in renter_titles
    operator_titles = [n["title"] for n in (await client.get("/notifications", headers=operator.headers)).json()["notifications"]]
    assert "Booking Confirmed" in operator_titles

    r = await client.post("/payments/verify", json=payload, headers=renter.headers)
    body = r.json()
    assert body["success"] is True
    assert body["already_verified"] is True
    assert await _notification_count(session_factory) == before + 2

    detail = (await client.get(f"/bookings/{booking['id']}", headers=renter.headers)).json()["booking"]
    assert [p["status"] for p in detail["payments"]] == ["paid"]

    body = await _order(client, renter, booking)
    assert body["error"] == "Booking has already been paid"


async def test_tampered_signature_changes_nothing(client, session_factory):
    _, renter, booking = await _booked(client)
    order_id = (await _order(client, renter, booking))["order"]["id"]
    before = await _notification_count(session_factory)

    r = await client.post(
        "/payments/verify",
        json={
            "razorpay_order_id": order_id,
            "razorpay_payment_id": "pay_001",
            "razorpay_signature": sign(order_id, "pay_999"),
            "booking_id": booking["id"],
        },
        headers=renter.headers,
    )
    assert r.status_code == 200
    assert r.json() == {"success": False, "error": "Payment verification failed", "code": "signature_mismatch"}

    async with session_factory() as session:
        payment = await session.scalar(select(Payment).where(Payment.razorpay_order_id == order_id))
    assert payment.status == "pending"
    assert payment.razorpay_payment_id is None
    assert await _notification_count(session_factory) == before

    detail = (await client.get(f"/bookings/{booking['id']}", headers=renter.headers)).json()["booking"]
    assert detail["status"] == "pending"


async def test_verify_rejects_mismatched_booking_and_unknown_order(client):
    operator, renter, booking = await _booked(client)
    order_id = (await _order(client, renter, booking))["order"]["id"]

    r = await client.post(
        "/payments/verify",
        json={
            "razorpay_order_id": order_id,
            "razorpay_payment_id": "pay_001",
            "razorpay_signature": sign(order_id, "pay_001"),
            "booking_id": "some-other-booking",
        },
        headers=renter.headers,
    )
    assert r.status_code == 400

    r = await client.post(
        "/payments/verify",
        json={
            "razorpay_order_id": "order_nope",
            "razorpay_payment_id": "pay_001",
            "razorpay_signature": sign("order_nope", "pay_001"),
            "booking_id": booking["id"],
        },
        headers=renter.headers,
    )
    assert r.json()["code"] == "not_found"

    r = await client.post(
        "/payments/verify",
        json={
            "razorpay_order_id": order_id,
            "razorpay_payment_id": "pay_001",
            "razorpay_signature": sign(order_id, "pay_001"),
            "booking_id": booking["id"],
        },
        headers=operator.headers,
    )
    assert r.json()["code"] == "forbidden"


async def test_cancelled_booking_cannot_be_paid(client):
    _, renter, booking = await _booked(client)
    await client.patch(f"/bookings/{booking['id']}/status", json={"status": "cancelled"}, headers=renter.headers)

    body = await _order(client, renter, booking)
    assert body["code"] == "conflict"


async def test_payment_after_operator_confirmation_does_not_reannounce_it(client):
    operator, renter, booking = await _booked(client)
    await client.patch(f"/bookings/{booking['id']}/status", json={"status": "confirmed"}, headers=operator.headers)
    order_id = (await _order(client, renter, booking))["order"]["id"]

    r = await client.post(
        "/payments/verify",
        json={
            "razorpay_order_id": order_id,
            "razorpay_payment_id": "pay_002",
            "razorpay_signature": sign(order_id, "pay_002"),
            "booking_id": booking["id"],
        },
        headers=renter.headers,
    )
    assert r.json()["booking"]["status"] == "confirmed"

    operator_notes = (await client.get("/notifications", headers=operator.headers)).json()["notifications"]
    assert operator_notes[0]["title"] == "Payment Received"
    assert operator_notes[0]["type"] == "payment_success"
    assert all(n["type"] != "booking_confirmed" for n in operator_notes)

    renter_notes = (await client.get("/notifications", headers=renter.headers)).json()["notifications"]
    payment_note = next(n for n in renter_notes if n["type"] == "payment_success")
    assert "now confirmed" not in payment_note["message"]


class _BrokenNotificationSession(AsyncSession):
    async def commit(self):
        raise OperationalError("INSERT INTO notifications", {}, Exception("database is locked"))


async def test_failed_notifications_never_undo_booking_or_payment(client, session_factory, monkeypatch):
    operator = await signup(client, "op@example.com", "Asha Rao", role="operator")
    renter = await signup(client, "client@example.com", "Ravi Kumar")
    equipment_id = await list_equipment(client, operator)
    monkeypatch.setattr(notifications, "AsyncSession", _BrokenNotificationSession)

    r = await book(client, renter, equipment_id, rental_day() + timedelta(hours=9), 4)
    body = r.json()
    assert body["success"] is True
    booking = body["booking"]

    order_id = (await _order(client, renter, booking))["order"]["id"]
    r = await client.post(
        "/payments/verify",
        json={
            "razorpay_order_id": order_id,
            "razorpay_payment_id": "pay_003",
            "razorpay_signature": sign(order_id, "pay_003"),
            "booking_id": booking["id"],
        },
        headers=renter.headers,
    )
    assert r.json()["success"] is True

    async with session_factory() as session:
        stored_booking = await session.scalar(select(Booking).where(Booking.id == booking["id"]))
        stored_payment = await session.scalar(select(Payment).where(Payment.razorpay_order_id == order_id))
    assert stored_booking.status == "confirmed"
    assert stored_payment.status == "paid"
    assert stored_payment.razorpay_payment_id == "pay_003"
    assert await _notification_count(session_factory) == 0
