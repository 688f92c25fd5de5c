"""API dependencies - session authentication and backend client"""
from typing import AsyncIterator
from fastapi import Depends, HTTPException, Request

from src.tour_console.services.auth_session import AuthSession
from src.tour_console.services.tour_api import TourApiClient, get_tour_api


def get_auth_session(request: Request) -> AuthSession:
    return AuthSession.from_request(request)


def require_session_login(auth: AuthSession = Depends(get_auth_session)) -> AuthSession:
    if not auth.is_authenticated:
        raise HTTPException(status_code=302, headers={"Location": "/ui/login"})
    return auth


def require_admin_session(auth: AuthSession = Depends(require_session_login)) -> AuthSession:
    if not auth.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return auth


async def get_api_client(auth: AuthSession = Depends(require_admin_session)) -> AsyncIterator[TourApiClient]:
    client = get_tour_api(auth.token)
    try:
        yield client
    finally:
        await client.aclose()


async def get_public_api_client() -> AsyncIterator[TourApiClient]:
    client = get_tour_api()
    try:
        yield client
    finally:
        await client.aclose()
