"""Console login state kept in the signed session cookie"""
from typing import MutableMapping, Optional

from starlette.requests import Request

from src.tour_console.schemas.tour import ConsoleUser, UserRole

TOKEN_KEY = "auth_token"
USER_KEY = "auth_user"


class AuthSession:
    """Read access for route guards; ``login``/``logout`` are the only mutators"""

    def __init__(self, store: MutableMapping):
        self._store = store

    @classmethod
    def from_request(cls, request: Request) -> "AuthSession":
        return cls(request.session)

    @property
    def token(self) -> Optional[str]:
        return self._store.get(TOKEN_KEY)

    @property
    def user(self) -> Optional[ConsoleUser]:
        data = self._store.get(USER_KEY)
        if not data:
            return None
        return ConsoleUser.model_validate(data)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    @property
    def is_admin(self) -> bool:
        user = self.user
        return user is not None and user.role == UserRole.ADMIN

    def login(self, token: str, user: ConsoleUser) -> None:
        self._store.clear()
        self._store[TOKEN_KEY] = token
        self._store[USER_KEY] = user.model_dump(mode="json")

    def logout(self) -> None:
        self._store.clear()
