"""REST client for the tour backend

The backend owns all persistence. Every call here is a single request with
no retry; failures are raised as BackendError subclasses for the caller to
surface.
"""
import logging
from typing import Any, Optional

import httpx
from pydantic import BaseModel, ValidationError

from src.tour_console.config import get_settings
from src.tour_console.schemas.activity import Activity
from src.tour_console.schemas.tour import Company, ConsoleUser, Tour

logger = logging.getLogger(__name__)


class BackendError(Exception):
    """Base exception for failed backend calls"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class PersistenceError(BackendError):
    """A create, update or delete was rejected or never reached the backend"""
    pass


class AuthenticationError(BackendError):
    pass


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("error", "message", "detail"):
            if isinstance(body.get(key), str) and body[key]:
                return body[key]
    return f"Request failed with status {response.status_code}"


class TourApiClient:
    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "TourApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[dict] = None,
        error_cls: type[BackendError] = BackendError,
    ) -> Any:
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.HTTPError as e:
            logger.warning(f"{method} {path} failed: {e}")
            raise error_cls(f"Could not reach the server: {e}") from e

        if response.status_code == 401:
            raise AuthenticationError("Session expired, please log in again", status_code=401)

        if response.is_error:
            message = _error_message(response)
            logger.warning(f"{method} {path} returned {response.status_code}: {message}")
            raise error_cls(message, status_code=response.status_code)

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            raise error_cls(f"Unexpected response from {method} {path}") from None

    # Response bodies

    @staticmethod
    def _one(data: Any, key: str, model: type[BaseModel], error_cls: type[BackendError]) -> Any:
        try:
            return model.model_validate(data[key])
        except (KeyError, TypeError, ValidationError) as e:
            logger.warning(f"Unexpected backend response, missing or invalid '{key}': {e}")
            raise error_cls(f"Unexpected response from the server (no valid '{key}')") from e

    @staticmethod
    def _many(data: Any, key: str, model: type[BaseModel]) -> list:
        try:
            return [model.model_validate(item) for item in data.get(key, [])]
        except (AttributeError, TypeError, ValidationError) as e:
            logger.warning(f"Unexpected backend response, invalid '{key}' list: {e}")
            raise BackendError(f"Unexpected response from the server (no valid '{key}')") from e

    # Auth

    async def login(self, email: str, password: str) -> tuple[str, ConsoleUser]:
        try:
            data = await self._request("POST", "/auth/login", json={"email": email, "password": password})
        except BackendError as e:
            if e.status_code in (400, 401, 403, 404):
                raise AuthenticationError("Invalid email or password", status_code=e.status_code) from e
            raise
        if not isinstance(data, dict) or not data.get("token"):
            raise AuthenticationError("Login response did not include a token")
        return data["token"], self._one(data, "user", ConsoleUser, BackendError)

    # Tours

    async def list_tours(self) -> list[Tour]:
        data = await self._request("GET", "/tours")
        return self._many(data, "tours", Tour)

    async def get_tour(self, tour_id: int) -> Tour:
        data = await self._request("GET", f"/tours/{tour_id}")
        return self._one(data, "tour", Tour, BackendError)

    async def list_companies(self) -> list[Company]:
        data = await self._request("GET", "/companies")
        return self._many(data, "companies", Company)

    # Activities

    async def list_activities(self, tour_id: int) -> list[Activity]:
        data = await self._request("GET", f"/tours/{tour_id}/activities")
        return self._many(data, "activities", Activity)

    async def create_activity(self, tour_id: int, payload: dict) -> Activity:
        data = await self._request(
            "POST", f"/tours/{tour_id}/activities", json=payload, error_cls=PersistenceError
        )
        return self._one(data, "activity", Activity, PersistenceError)

    async def update_activity(self, tour_id: int, activity_id: int, changes: dict) -> Activity:
        data = await self._request(
            "PUT", f"/tours/{tour_id}/activities/{activity_id}", json=changes, error_cls=PersistenceError
        )
        return self._one(data, "activity", Activity, PersistenceError)

    async def delete_activity(self, tour_id: int, activity_id: int) -> None:
        await self._request(
            "DELETE", f"/tours/{tour_id}/activities/{activity_id}", error_cls=PersistenceError
        )

    async def ping(self) -> bool:
        try:
            await self._request("GET", "/health")
        except BackendError:
            return False
        return True


class TourActivityOperations:
    """Activity persistence for one tour, in the shape the itinerary editor expects"""

    def __init__(self, client: TourApiClient, tour_id: int):
        self._client = client
        self.tour_id = tour_id

    async def create(self, payload) -> Activity:
        return await self._client.create_activity(self.tour_id, payload.to_wire())

    async def update(self, activity_id: int, changes) -> Activity:
        return await self._client.update_activity(self.tour_id, activity_id, changes.to_wire())

    async def delete(self, activity_id: int) -> None:
        await self._client.delete_activity(self.tour_id, activity_id)


def get_tour_api(token: Optional[str] = None) -> TourApiClient:
    settings = get_settings()
    return TourApiClient(
        base_url=settings.API_BASE_URL,
        token=token,
        timeout=settings.API_TIMEOUT_SECONDS,
    )
