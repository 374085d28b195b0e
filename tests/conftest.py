import sys
import pathlib
from datetime import datetime, timedelta, timezone

import pytest

# Ensure repository root is on sys.path so packages (adapters, core, modules) import correctly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from adapters.memory import InMemoryConnection, StaticStateOracle


class FakeClock:
    """Управляемые часы для gate'ов: now() возвращает установленное время."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


def state_changed(entity_id: str, old: str, new: str, **new_attributes) -> dict:
    """Сообщение websocket API с событием state_changed."""
    return {
        "id": 1,
        "type": "event",
        "event": {
            "event_type": "state_changed",
            "data": {
                "entity_id": entity_id,
                "old_state": {
                    "entity_id": entity_id,
                    "state": old,
                    "attributes": {},
                    "last_changed": "2024-06-01T11:58:00.000000+00:00",
                },
                "new_state": {
                    "entity_id": entity_id,
                    "state": new,
                    "attributes": dict(new_attributes),
                    "last_changed": "2024-06-01T12:00:00.000000+00:00",
                },
            },
        },
    }


def event(event_type: str, **data) -> dict:
    return {"id": 1, "type": "event", "event": {"event_type": event_type, "data": data}}


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def connection():
    return InMemoryConnection()


@pytest.fixture
def state_oracle():
    return StaticStateOracle()
