from urllib.parse import quote

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from src.tour_console.api.deps import get_api_client, get_public_api_client, require_admin_session
from src.tour_console.main import app
from src.tour_console.schemas.activity import Activity
from src.tour_console.schemas.tour import ConsoleUser, UserRole
from src.tour_console.services.auth_session import AuthSession
from src.tour_console.services.tour_api import AuthenticationError, BackendError, PersistenceError


class FakeApiClient:
    """In-memory tour backend exposing the TourApiClient surface used by the UI"""

    def __init__(self, tour, companies, activities) -> None:
        self.tour = tour
        self.companies = companies
        self.activities = {a.id: a for a in activities}
        self.created: list[tuple[int, dict]] = []
        self.updated: list[tuple[int, int, dict]] = []
        self.deleted: list[tuple[int, int]] = []
        self.fail_writes = False
        self.auth_error = False
        self.login_role = UserRole.ADMIN
        self._next_id = 100

    async def login(self, email, password):
        if password != "correct-password":
            raise AuthenticationError("Invalid email or password", status_code=401)
        return "jwt-token", ConsoleUser(id=1, email=email, first_name="Aiko", role=self.login_role)

    async def list_tours(self):
        return [self.tour]

    async def get_tour(self, tour_id):
        if self.auth_error:
            raise AuthenticationError("Session expired, please log in again", status_code=401)
        if tour_id != self.tour.id:
            raise BackendError("Tour not found", status_code=404)
        return self.tour

    async def list_companies(self):
        return list(self.companies)

    async def list_activities(self, tour_id):
        return list(self.activities.values())

    async def create_activity(self, tour_id, payload):
        self.created.append((tour_id, payload))
        if self.fail_writes:
            raise PersistenceError("Internal server error", status_code=500)
        self._next_id += 1
        activity = Activity.model_validate({"id": self._next_id, "tour_id": tour_id, **payload})
        self.activities[activity.id] = activity
        return activity

    async def update_activity(self, tour_id, activity_id, changes):
        self.updated.append((tour_id, activity_id, changes))
        if self.fail_writes:
            raise PersistenceError("Internal server error", status_code=500)
        activity = self.activities[activity_id].model_copy(update=changes)
        self.activities[activity_id] = activity
        return activity

    async def delete_activity(self, tour_id, activity_id):
        self.deleted.append((tour_id, activity_id))
        if self.fail_writes:
            raise PersistenceError("Internal server error", status_code=500)
        self.activities.pop(activity_id)

    async def ping(self):
        return True


@pytest.fixture
def backend(tour, companies, activities):
    return FakeApiClient(tour, companies, activities)


@pytest.fixture
def client(backend):
    app.dependency_overrides[get_api_client] = lambda: backend
    app.dependency_overrides[get_public_api_client] = lambda: backend
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def logged_in(client):
    response = client.post(
        "/ui/login",
        data={"email": "Admin@Example.com ", "password": "correct-password"},
        follow_redirects=False,
    )
    assert response.status_code == 302
    assert response.headers["location"] == "/ui/tours"
    return client


def _select(client, start="2025-04-04T09:00:00", end="2025-04-04T10:00:00"):
    return client.post(
        "/ui/tours/1/itinerary/select",
        data={"start": start, "end": end},
        follow_redirects=False,
    )


def _draft_form(**overrides):
    data = {
        "type": "Hotel",
        "title": "Hotel Okura",
        "start_time": "2025-04-04T09:00",
        "end_time": "2025-04-04T10:00",
    }
    data.update(overrides)
    return data


class TestAuth:
    def test_itinerary_requires_login(self, client):
        response = client.get("/ui/tours/1/itinerary", follow_redirects=False)

        assert response.status_code == 302
        assert response.headers["location"] == "/ui/login"

    def test_wrong_password_shows_error(self, client):
        response = client.post("/ui/login", data={"email": "a@example.com", "password": "nope"})

        assert response.status_code == 200
        assert "Invalid email or password" in response.text

    def test_logout_clears_session(self, logged_in):
        logged_in.get("/ui/logout", follow_redirects=False)

        response = logged_in.get("/ui/tours", follow_redirects=False)
        assert response.headers["location"] == "/ui/login"

    @pytest.mark.parametrize("role", [UserRole.GUIDE, UserRole.USER])
    def test_non_admin_login_is_refused(self, client, backend, role):
        backend.login_role = role

        response = client.post(
            "/ui/login",
            data={"email": "guide@example.com", "password": "correct-password"},
            follow_redirects=False,
        )

        assert response.status_code == 200
        assert "Admin access required" in response.text
        assert client.get("/ui/tours/1/itinerary", follow_redirects=False).headers["location"] == "/ui/login"

    def test_non_admin_session_is_forbidden(self):
        auth = AuthSession({})
        auth.login("jwt-token", ConsoleUser(id=2, email="guide@example.com", role=UserRole.GUIDE))

        with pytest.raises(HTTPException) as exc_info:
            require_admin_session(auth)

        assert exc_info.value.status_code == 403

    def test_expired_backend_token_logs_out(self, logged_in, backend):
        backend.auth_error = True

        response = logged_in.get("/ui/tours/1/itinerary", follow_redirects=False)

        assert response.status_code == 302
        assert response.headers["location"] == "/ui/login"
        assert logged_in.get("/ui/tours", follow_redirects=False).status_code == 302


class TestPages:
    def test_tour_list_shows_jst_dates(self, logged_in):
        response = logged_in.get("/ui/tours")

        assert response.status_code == 200
        assert "Tokyo Manufacturing Tour" in response.text
        assert "Apr 1, 2025" in response.text
        assert "Apr 10, 2025" in response.text

    def test_itinerary_renders_events_in_jst(self, logged_in):
        response = logged_in.get("/ui/tours/1/itinerary")

        assert response.status_code == 200
        assert '"start": "2025-04-03T18:00:00"' in response.text
        assert "#10b981" in response.text
        assert '"end": "2025-04-11"' in response.text

    def test_unknown_tour_redirects_to_list(self, logged_in):
        response = logged_in.get("/ui/tours/99/itinerary", follow_redirects=False)

        assert response.status_code == 302
        assert response.headers["location"] == f"/ui/tours?message={quote('Tour not found')}"

    def test_health_reports_backend(self, client):
        assert client.get("/health").json() == {
            "status": "ok",
            "environment": "dev",
            "backend": "connected",
        }


class TestDraftFlow:
    def test_create_from_selection(self, logged_in, backend):
        assert _select(logged_in).status_code == 302
        page = logged_in.get("/ui/tours/1/itinerary")
        assert "Create New Activity" in page.text
        assert 'value="2025-04-04T09:00"' in page.text

        response = logged_in.post("/ui/tours/1/itinerary/draft", data=_draft_form(), follow_redirects=False)

        assert response.headers["location"] == f"/ui/tours/1/itinerary?message={quote('Activity created')}"
        assert backend.created == [(1, {
            "type": "Hotel",
            "title": "Hotel Okura",
            "start_time": "2025-04-04T00:00:00Z",
            "end_time": "2025-04-04T01:00:00Z",
        })]
        assert "Create New Activity" not in logged_in.get("/ui/tours/1/itinerary").text

    def test_invalid_draft_stays_open_with_errors(self, logged_in, backend):
        _select(logged_in)

        logged_in.post("/ui/tours/1/itinerary/draft", data=_draft_form(title=""), follow_redirects=False)

        page = logged_in.get("/ui/tours/1/itinerary")
        assert backend.created == []
        assert "Title is required" in page.text
        assert "Please fix the highlighted fields" in page.text

    def test_zero_length_selection_is_not_created(self, logged_in, backend):
        _select(logged_in, start="2025-04-04T09:00:00", end="2025-04-04T09:00:00")

        logged_in.post(
            "/ui/tours/1/itinerary/draft",
            data=_draft_form(end_time="2025-04-04T09:00"),
            follow_redirects=False,
        )

        assert backend.created == []
        assert "End time must be after start time" in logged_in.get("/ui/tours/1/itinerary").text

    def test_backend_failure_keeps_dialog_and_message(self, logged_in, backend):
        backend.fail_writes = True
        _select(logged_in)

        logged_in.post("/ui/tours/1/itinerary/draft", data=_draft_form(), follow_redirects=False)

        page = logged_in.get("/ui/tours/1/itinerary")
        assert "Internal server error" in page.text
        assert 'value="Hotel Okura"' in page.text

    def test_edit_and_update_company_visit(self, logged_in, backend):
        response = logged_in.get("/ui/tours/1/itinerary/activities/1/edit", follow_redirects=False)
        assert response.status_code == 302

        page = logged_in.get("/ui/tours/1/itinerary")
        assert "Edit Activity" in page.text
        assert 'value="Toyota plant"' in page.text

        response = logged_in.post(
            "/ui/tours/1/itinerary/draft",
            data=_draft_form(
                type="CompanyVisit",
                title="Toyota plant tour",
                start_time="2025-04-03T09:00",
                end_time="2025-04-03T10:00",
                company_id="11",
            ),
            follow_redirects=False,
        )

        assert response.headers["location"].endswith(quote("Activity updated"))
        tour_id, activity_id, changes = backend.updated[0]
        assert (tour_id, activity_id) == (1, 1)
        assert changes["company_id"] == 11
        assert changes["title"] == "Toyota plant tour"

    def test_delete_after_confirmation(self, logged_in, backend):
        logged_in.get("/ui/tours/1/itinerary/activities/2/edit", follow_redirects=False)

        response = logged_in.post(
            "/ui/tours/1/itinerary/draft/delete",
            data={"confirm": "yes"},
            follow_redirects=False,
        )

        assert response.headers["location"].endswith(quote("Activity deleted"))
        assert backend.deleted == [(1, 2)]

    def test_cancel_discards_draft(self, logged_in, backend):
        _select(logged_in)

        logged_in.post("/ui/tours/1/itinerary/draft/cancel", follow_redirects=False)

        page = logged_in.get("/ui/tours/1/itinerary")
        assert "Create New Activity" not in page.text
        assert backend.created == []


class TestReschedule:
    def test_move_is_confirmed(self, logged_in, backend):
        response = logged_in.post(
            "/ui/tours/1/itinerary/activities/2/move",
            json={"start": "2025-04-03T20:00:00", "end": "2025-04-03T21:00:00"},
        )

        body = response.json()
        assert body["status"] == "confirmed"
        assert body["start"] == "2025-04-03T20:00:00"
        assert backend.updated == [(1, 2, {
            "start_time": "2025-04-03T11:00:00Z",
            "end_time": "2025-04-03T12:00:00Z",
        })]
        moved = next(event for event in body["events"] if event["id"] == "2")
        assert moved["start"] == "2025-04-03T20:00:00"
        assert len(body["events"]) == 3

    def test_failed_move_is_reverted(self, logged_in, backend):
        backend.fail_writes = True

        body = logged_in.post(
            "/ui/tours/1/itinerary/activities/2/resize",
            json={"start": "2025-04-03T18:00:00", "end": "2025-04-03T20:00:00"},
        ).json()

        assert body["status"] == "reverted"
        assert body["end"] == "2025-04-03T19:00:00"
        assert body["error"] == "Internal server error"

    def test_unknown_activity(self, logged_in):
        response = logged_in.post(
            "/ui/tours/1/itinerary/activities/42/move",
            json={"start": "2025-04-03T20:00:00", "end": "2025-04-03T21:00:00"},
        )

        assert response.status_code == 404
        assert response.json()["status"] == "reverted"

    def test_malformed_times(self, logged_in, backend):
        response = logged_in.post(
            "/ui/tours/1/itinerary/activities/2/move",
            json={"start": "soon", "end": "later"},
        )

        assert response.status_code == 422
        assert backend.updated == []
