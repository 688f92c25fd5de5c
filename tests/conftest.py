import os

os.environ.setdefault("APP_ENV", "dev")
os.environ.setdefault("SESSION_SECRET_KEY", "test-session-secret")
os.environ.setdefault("API_BASE_URL", "http://backend.test/api")

import pytest

from src.tour_console.schemas.activity import Activity
from src.tour_console.schemas.tour import Company, Tour
from src.tour_console.services.tour_api import PersistenceError


def make_activity(activity_id: int, type: str = "CompanyVisit", **overrides) -> Activity:
    data = {
        "id": activity_id,
        "tour_id": 1,
        "type": type,
        "title": f"Activity {activity_id}",
        "start_time": "2025-04-03T00:00:00Z",
        "end_time": "2025-04-03T01:00:00Z",
    }
    data.update(overrides)
    return Activity.model_validate(data)


class FakeOperations:
    """In-memory stand-in for the backend's activity endpoints"""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: list[tuple] = []
        self._next_id = 100

    async def create(self, payload) -> Activity:
        self.calls.append(("create", payload.to_wire()))
        if self.fail:
            raise PersistenceError("Internal server error", status_code=500)
        self._next_id += 1
        return Activity.model_validate({"id": self._next_id, "tour_id": 1, **payload.to_wire()})

    async def update(self, activity_id: int, changes) -> Activity:
        self.calls.append(("update", activity_id, changes.to_wire()))
        if self.fail:
            raise PersistenceError("Internal server error", status_code=500)
        return make_activity(activity_id, **changes.to_wire())

    async def delete(self, activity_id: int) -> None:
        self.calls.append(("delete", activity_id))
        if self.fail:
            raise PersistenceError("Internal server error", status_code=500)


@pytest.fixture
def tour() -> Tour:
    # 2025-04-01 to 2025-04-10 in JST
    return Tour(
        id=1,
        name="Tokyo Manufacturing Tour",
        start_date="2025-03-31T15:00:00Z",
        end_date="2025-04-09T15:00:00Z",
        status="Pending",
    )


@pytest.fixture
def companies() -> list[Company]:
    return [Company(id=10, name="Toyota"), Company(id=11, name="Sony")]


@pytest.fixture
def activities() -> list[Activity]:
    return [
        make_activity(1, "CompanyVisit", title="Toyota plant", company_id=10),
        make_activity(
            2,
            "Hotel",
            title="Check-in",
            start_time="2025-04-03T09:00:00Z",
            end_time="2025-04-03T10:00:00Z",
        ),
        make_activity(
            3,
            "Discussion",
            title="Daily discussion",
            start_time="2025-04-03T08:00:00Z",
            end_time="2025-04-03T09:00:00Z",
            linked_activity_id=1,
        ),
    ]
