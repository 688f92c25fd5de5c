"""UI Authentication endpoints - login/logout against the tour backend"""
import logging
from typing import Optional
from fastapi import APIRouter, Request, Form, Depends
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from src.tour_console.api.deps import get_auth_session, get_public_api_client
from src.tour_console.config import settings
from src.tour_console.schemas.tour import UserRole
from src.tour_console.services.auth_session import AuthSession
from src.tour_console.services.tour_api import AuthenticationError, BackendError, TourApiClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ui", tags=["UI Auth"])
templates = Jinja2Templates(directory="src/tour_console/templates")


def get_base_context(request: Request, auth: Optional[AuthSession] = None):
    return {
        "request": request,
        "current_user": auth.user if auth else None,
        "is_admin": auth.is_admin if auth else False,
        "app_env": settings.APP_ENV,
        "is_production": settings.is_production,
    }


@router.get("/login", response_class=HTMLResponse)
async def login_page(
    request: Request,
    error: Optional[str] = None,
    auth: AuthSession = Depends(get_auth_session),
):
    if auth.is_authenticated:
        return RedirectResponse(url="/ui/tours", status_code=302)

    return templates.TemplateResponse(request, "login.html", {
        **get_base_context(request),
        "error": error,
    })


@router.post("/login")
async def login(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    auth: AuthSession = Depends(get_auth_session),
    client: TourApiClient = Depends(get_public_api_client),
):
    email = email.lower().strip()
    try:
        token, user = await client.login(email, password)
    except AuthenticationError:
        error = "Invalid email or password"
    except BackendError:
        logger.exception("Login request failed")
        error = "Could not reach the server, please try again"
    else:
        if user.role == UserRole.ADMIN:
            auth.login(token, user)
            logger.info(f"User {user.email} logged in")
            return RedirectResponse(url="/ui/tours", status_code=302)
        logger.warning(f"Refused console login for {user.email} with role {user.role.value}")
        error = "Admin access required"

    return templates.TemplateResponse(request, "login.html", {
        **get_base_context(request),
        "error": error,
        "email": email,
    })


@router.get("/logout")
async def logout(auth: AuthSession = Depends(get_auth_session)):
    auth.logout()
    return RedirectResponse(url="/ui/login", status_code=302)
