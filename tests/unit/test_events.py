import json
from decimal import Decimal

from heavyrent.events import build_event, to_json


def test_event_envelope():
    event = build_event("booking.created", {"booking_id": "b1"})
    assert event["event_type"] == "booking.created"
    assert event["data"] == {"booking_id": "b1"}
    assert event["source"] == "heavyrent-api"
    assert event["event_id"] and event["occurred_at"]


def test_each_event_gets_its_own_id():
    assert build_event("x", {})["event_id"] != build_event("x", {})["event_id"]


def test_to_json_is_compact_and_tolerates_decimals():
    raw = to_json(build_event("payment.verified", {"amount": Decimal("425.00")}))
    assert ", " not in raw
    assert json.loads(raw)["data"]["amount"] == "425.00"
