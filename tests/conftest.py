from datetime import UTC, datetime, timedelta
from itertools import count

import pytest

from voluntapp.database import InMemoryKeyValueDatabase
from voluntapp.models import Opportunity, OpportunityStatus, Role, User
from voluntapp.repositories import Database, OpportunityRepository, UserRepository

BASE_TIME = datetime(2025, 7, 2, 9, 0, 0, tzinfo=UTC)

_ids = count(1)


def make_opportunity(**overrides) -> Opportunity:
    n = next(_ids)
    fields = {
        "id": f"opp-{n}",
        "organization_id": "org-1",
        "title": f"Opportunity {n}",
        "description": "Help out",
        "category": "Community",
        "location": "San Francisco, CA",
        "latitude": 37.7749,
        "longitude": -122.4194,
        "created_at": BASE_TIME + timedelta(minutes=n),
        "updated_at": BASE_TIME + timedelta(minutes=n),
    }
    fields.update(overrides)
    return Opportunity(**fields)


class Clock:
    """Deterministic now_fn that moves forward one second per call."""

    def __init__(self, start: datetime = BASE_TIME) -> None:
        self.current = start

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


@pytest.fixture
def db() -> Database:
    return InMemoryKeyValueDatabase()


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def users(db: Database) -> dict[str, User]:
    repo = UserRepository(db)
    people = {
        "org": User(id="org-1", role=Role.ORGANIZATION, organization_name="Bay Food Bank"),
        "other_org": User(id="org-2", role=Role.ORGANIZATION, organization_name="Shelter Co"),
        "alice": User(id="alice-id", role=Role.VOLUNTEER, name="Alice Ongwele"),
        "wei": User(id="wei-id", role=Role.VOLUNTEER, name="Wei Yan"),
    }
    for user in people.values():
        repo.put(user)
    return people


@pytest.fixture
def active_opportunity(db: Database) -> Opportunity:
    return OpportunityRepository(db).insert(
        make_opportunity(id="opp-active", status=OpportunityStatus.ACTIVE)
    )
