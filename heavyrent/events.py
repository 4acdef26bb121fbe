import json
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone

from . import config


@dataclass
class DomainEvent:
    """Envelope for everything pushed onto the ``domain_events`` exchange."""

    event_type: str
    data: dict
    source: str = config.SERVICE_NAME
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


def build_event(event_type: str, data: dict) -> dict:
    return asdict(DomainEvent(event_type=event_type, data=data))


def to_json(event: dict) -> str:
    # Decimal amounts and datetimes are sent as strings
    return json.dumps(event, separators=(",", ":"), ensure_ascii=False, default=str)
