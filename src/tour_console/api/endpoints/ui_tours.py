"""UI endpoints for the tour list"""
import logging
from typing import Optional
from fastapi import APIRouter, Request, Depends, Query
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from src.tour_console.api.deps import get_api_client, require_admin_session
from src.tour_console.config import settings
from src.tour_console.schemas.tour import TourStatus
from src.tour_console.services.auth_session import AuthSession
from src.tour_console.services.jst_time import format_date_jst
from src.tour_console.services.tour_api import AuthenticationError, BackendError, TourApiClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ui", tags=["UI Tours"])
templates = Jinja2Templates(directory="src/tour_console/templates")
templates.env.filters["date_jst"] = format_date_jst


def get_base_context(request: Request, auth: AuthSession):
    return {
        "request": request,
        "current_user": auth.user,
        "is_admin": auth.is_admin,
        "app_env": settings.APP_ENV,
        "is_production": settings.is_production,
    }


@router.get("/tours", response_class=HTMLResponse)
async def tours_list(
    request: Request,
    auth: AuthSession = Depends(require_admin_session),
    client: TourApiClient = Depends(get_api_client),
    status_filter: Optional[str] = Query(None),
    message: Optional[str] = Query(None),
):
    error = None
    try:
        tours = await client.list_tours()
    except AuthenticationError:
        raise
    except BackendError as e:
        logger.warning(f"Failed to load tours: {e}")
        tours = []
        error = "Could not load tours"

    if status_filter:
        tours = [t for t in tours if t.status.value == status_filter]

    tours.sort(key=lambda t: t.start_date, reverse=True)

    return templates.TemplateResponse(request, "ui_tours_list.html", {
        **get_base_context(request, auth),
        "tours": tours,
        "status_filter": status_filter or "",
        "statuses": [s.value for s in TourStatus],
        "message": message,
        "error": error,
    })
