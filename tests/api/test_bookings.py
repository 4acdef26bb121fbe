from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select

from heavyrent.models import Notification
from tests.helpers import book, booking_payload, list_equipment, rental_day, signup


async def _setup(client):
    operator = await signup(client, "op@example.com", "Asha Rao", role="operator")
    renter = await signup(client, "client@example.com", "Ravi Kumar")
    equipment_id = await list_equipment(client, operator)
    return operator, renter, equipment_id


async def test_booking_is_priced_and_pending(client, session_factory):
    operator, renter, equipment_id = await _setup(client)

    r = await book(client, renter, equipment_id, rental_day() + timedelta(hours=9), 4)
    body = r.json()
    assert body["success"] is True
    booking = body["booking"]
    assert booking["status"] == "pending"
    assert booking["operator_id"] == operator.profile_id
    assert booking["base_price"] == 1200
    assert booking["gst_amount"] == 216
    assert booking["total_price"] == 1416
    assert booking["advance_amount"] == 425
    assert booking["balance_amount"] == 991

    r = await client.get("/notifications", headers=operator.headers)
    notes = r.json()["notifications"]
    assert [n["title"] for n in notes] == ["New Booking Request"]
    assert notes[0]["data"]["booking_id"] == booking["id"]


async def test_overlapping_booking_is_rejected_adjacent_is_not(client):
    _, renter, equipment_id = await _setup(client)
    day = rental_day()

    r = await book(client, renter, equipment_id, day + timedelta(hours=9), 4)
    assert r.json()["success"] is True

    r = await book(client, renter, equipment_id, day + timedelta(hours=11), 4)
    assert r.status_code == 200
    assert r.json() == {
        "success": False,
        "error": "Equipment is already booked for the selected time period",
        "code": "conflict",
    }

    r = await book(client, renter, equipment_id, day + timedelta(hours=13), 4)
    assert r.json()["success"] is True


async def test_cancelled_booking_frees_the_window(client):
    _, renter, equipment_id = await _setup(client)
    start = rental_day() + timedelta(hours=9)

    first = (await book(client, renter, equipment_id, start, 4)).json()["booking"]
    r = await client.patch(f"/bookings/{first['id']}/status", json={"status": "cancelled"}, headers=renter.headers)
    assert r.json()["booking"]["status"] == "cancelled"

    r = await book(client, renter, equipment_id, start, 4)
    assert r.json()["success"] is True


async def test_phone_and_address_validation(client):
    _, renter, equipment_id = await _setup(client)
    start = rental_day() + timedelta(hours=9)

    r = await book(client, renter, equipment_id, start, 4, client_phone="98765 43210")
    assert r.status_code == 400
    body = r.json()
    assert body["code"] == "validation_error"
    assert body["details"][0]["field"] in ("client_phone", "clientPhone")
    assert "+91" in body["details"][0]["message"]

    r = await book(client, renter, equipment_id, start, 4, pickup_address="here")
    assert r.status_code == 400
    assert r.json()["success"] is False


async def test_window_rules(client):
    _, renter, equipment_id = await _setup(client)
    start = rental_day() + timedelta(hours=9)

    r = await client.post(
        "/bookings",
        json=booking_payload(equipment_id, start, start - timedelta(hours=1), 4),
        headers=renter.headers,
    )
    assert r.status_code == 400

    r = await client.post(
        "/bookings",
        json=booking_payload(equipment_id, start, start + timedelta(hours=2), 4),
        headers=renter.headers,
    )
    assert r.status_code == 400
    assert r.json()["details"][0]["field"] == "duration_hours"

    past = datetime.now(timezone.utc) - timedelta(days=1)
    r = await book(client, renter, equipment_id, past, 4)
    assert r.status_code == 400
    assert r.json()["details"][0]["field"] == "start_time"


async def test_operators_cannot_book_and_blocked_equipment_is_refused(client):
    operator, renter, equipment_id = await _setup(client)
    start = rental_day() + timedelta(hours=9)

    r = await book(client, operator, equipment_id, start, 4)
    assert r.json()["code"] == "forbidden"

    await client.patch(f"/equipment/{equipment_id}", json={"status": "maintenance"}, headers=operator.headers)
    r = await book(client, renter, equipment_id, start, 4)
    assert r.json()["code"] == "conflict"


async def test_unknown_equipment(client):
    renter = await signup(client, "client@example.com", "Ravi Kumar")
    r = await book(client, renter, "missing", rental_day(), 4)
    assert r.json()["code"] == "not_found"


async def test_status_lifecycle_and_notifications(client, session_factory):
    operator, renter, equipment_id = await _setup(client)
    booking = (await book(client, renter, equipment_id, rental_day() + timedelta(hours=9), 4)).json()["booking"]
    url = f"/bookings/{booking['id']}/status"

    r = await client.patch(url, json={"status": "confirmed"}, headers=renter.headers)
    assert r.json()["error"] == "Clients can only cancel bookings"

    for status in ("confirmed", "active", "completed"):
        r = await client.patch(url, json={"status": status, "notes": f"moved to {status}"}, headers=operator.headers)
        assert r.json()["booking"]["status"] == status

    r = await client.patch(url, json={"status": "cancelled"}, headers=operator.headers)
    assert r.json()["code"] == "forbidden"

    r = await client.get(f"/bookings/{booking['id']}", headers=renter.headers)
    detail = r.json()["booking"]
    assert detail["notes"].splitlines() == ["moved to confirmed", "moved to active", "moved to completed"]
    assert detail["equipment"]["name"] == "CAT 320 Excavator"

    async with session_factory() as session:
        count = await session.scalar(
            select(func.count()).select_from(Notification).where(Notification.recipient_id == renter.profile_id)
        )
    assert count == 3


async def test_invalid_status_value(client):
    operator, renter, equipment_id = await _setup(client)
    booking = (await book(client, renter, equipment_id, rental_day() + timedelta(hours=9), 4)).json()["booking"]

    r = await client.patch(f"/bookings/{booking['id']}/status", json={"status": "teleported"}, headers=operator.headers)
    assert r.status_code == 400


async def test_client_cancel_notifies_operator(client):
    operator, renter, equipment_id = await _setup(client)
    booking = (await book(client, renter, equipment_id, rental_day() + timedelta(hours=9), 4)).json()["booking"]

    await client.patch(f"/bookings/{booking['id']}/status", json={"status": "cancelled"}, headers=renter.headers)

    r = await client.get("/notifications", params={"unread": "true"}, headers=operator.headers)
    titles = [n["title"] for n in r.json()["notifications"]]
    assert "Booking Cancelled" in titles


async def test_booking_visibility_and_listing(client):
    operator, renter, equipment_id = await _setup(client)
    stranger = await signup(client, "other@example.com", "Nosy Neighbour")
    day = rental_day()
    first = (await book(client, renter, equipment_id, day + timedelta(hours=1), 4)).json()["booking"]
    await book(client, renter, equipment_id, day + timedelta(hours=6), 4)

    r = await client.get(f"/bookings/{first['id']}", headers=stranger.headers)
    assert r.json()["code"] == "forbidden"

    r = await client.get(f"/bookings/{first['id']}", headers=operator.headers)
    assert r.json()["booking"]["id"] == first["id"]

    r = await client.get("/bookings", headers=renter.headers)
    body = r.json()
    assert body["pagination"]["total"] == 2
    assert all(b["equipment"]["id"] == equipment_id for b in body["bookings"])

    r = await client.get("/bookings", params={"role": "operator", "status": "pending", "limit": 1}, headers=operator.headers)
    body = r.json()
    assert len(body["bookings"]) == 1
    assert body["pagination"]["hasMore"] is True

    r = await client.get("/bookings", params={"role": "operator"}, headers=renter.headers)
    assert r.json()["pagination"]["total"] == 0


async def test_mark_notification_read(client):
    operator, renter, equipment_id = await _setup(client)
    await book(client, renter, equipment_id, rental_day() + timedelta(hours=9), 4)

    note = (await client.get("/notifications", headers=operator.headers)).json()["notifications"][0]
    r = await client.post(f"/notifications/{note['id']}/read", headers=operator.headers)
    assert r.json()["notification"]["is_read"] is True

    r = await client.get("/notifications", params={"unread": "true"}, headers=operator.headers)
    assert r.json()["notifications"] == []

    r = await client.post(f"/notifications/{note['id']}/read", headers=renter.headers)
    assert r.json()["code"] == "not_found"
