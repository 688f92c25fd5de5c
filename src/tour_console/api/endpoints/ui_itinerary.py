"""UI endpoints for the calendar-based tour itinerary editor"""
import asyncio
import logging
from datetime import timedelta
from typing import Optional
from urllib.parse import quote
from fastapi import APIRouter, Request, Depends, Form, Query
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from src.tour_console.api.deps import get_api_client, require_admin_session
from src.tour_console.config import settings
from src.tour_console.schemas.activity import RescheduleRequest
from src.tour_console.services.activity_form import (
    REQUIRED_FIELDS,
    TourBounds,
    visible_fields,
)
from src.tour_console.services.activity_style import ACTIVITY_STYLES, ACTIVITY_TYPE_OPTIONS
from src.tour_console.services.auth_session import AuthSession
from src.tour_console.services.itinerary_controller import (
    ActionStatus,
    ChangeStatus,
    Draft,
    EditorStateError,
    ItineraryController,
)
from src.tour_console.services.jst_time import (
    MalformedTimeError,
    format_jst_with_label,
    to_datetime_local_value,
)
from src.tour_console.services.tour_api import (
    AuthenticationError,
    BackendError,
    TourActivityOperations,
    TourApiClient,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ui", tags=["UI Itinerary"])
templates = Jinja2Templates(directory="src/tour_console/templates")
templates.env.filters["jst_local"] = lambda v: to_datetime_local_value(v) if v else ""
templates.env.filters["jst_label"] = format_jst_with_label

DRAFT_SESSION_KEY = "itinerary_draft"


def get_base_context(request: Request, auth: AuthSession):
    return {
        "request": request,
        "current_user": auth.user,
        "is_admin": auth.is_admin,
        "app_env": settings.APP_ENV,
        "is_production": settings.is_production,
    }


def itinerary_url(tour_id: int, message: Optional[str] = None) -> str:
    url = f"/ui/tours/{tour_id}/itinerary"
    if message:
        url += f"?message={quote(message)}"
    return url


def load_draft(request: Request, tour_id: int) -> Optional[Draft]:
    stored = request.session.get(DRAFT_SESSION_KEY)
    if not stored or stored.get("tour_id") != tour_id:
        return None
    return Draft.from_dict(stored["draft"])


def save_draft(request: Request, tour_id: int, draft: Optional[Draft]) -> None:
    if draft is None:
        request.session.pop(DRAFT_SESSION_KEY, None)
    else:
        request.session[DRAFT_SESSION_KEY] = {"tour_id": tour_id, "draft": draft.to_dict()}


async def build_controller(
    client: TourApiClient,
    tour_id: int,
    draft: Optional[Draft] = None,
    reload_after_save: bool = False,
):
    tour, activities = await asyncio.gather(
        client.get_tour(tour_id),
        client.list_activities(tour_id),
    )
    try:
        companies = await client.list_companies()
    except AuthenticationError:
        raise
    except BackendError as e:
        logger.warning(f"Failed to fetch companies: {e}")
        companies = []

    async def reload_activities():
        return await client.list_activities(tour_id)

    controller = ItineraryController(
        operations=TourActivityOperations(client, tour_id),
        activities=activities,
        companies=companies,
        bounds=TourBounds.from_tour(tour),
        tour_id=tour_id,
        on_changed=reload_activities if reload_after_save else None,
        draft=draft,
    )
    return tour, controller


@router.get("/tours/{tour_id}/itinerary", response_class=HTMLResponse)
async def itinerary_page(
    request: Request,
    tour_id: int,
    auth: AuthSession = Depends(require_admin_session),
    client: TourApiClient = Depends(get_api_client),
    message: Optional[str] = Query(None),
):
    try:
        tour, controller = await build_controller(client, tour_id, load_draft(request, tour_id))
    except AuthenticationError:
        raise
    except BackendError as e:
        logger.warning(f"Failed to fetch tour {tour_id}: {e}")
        return RedirectResponse(url=f"/ui/tours?message={quote('Tour not found')}", status_code=302)

    draft = controller.draft
    draft_type = draft.form.type if draft else ""
    bounds = controller.bounds

    return templates.TemplateResponse(request, "ui_itinerary.html", {
        **get_base_context(request, auth),
        "tour": tour,
        "events": controller.board.to_fullcalendar(),
        "valid_range": {
            "start": bounds.start_date.isoformat(),
            # the calendar treats the range end as exclusive
            "end": (bounds.end_date + timedelta(days=1)).isoformat(),
        },
        "draft": draft,
        "visible_fields": visible_fields(draft_type),
        "required_fields": REQUIRED_FIELDS,
        "activity_types": ACTIVITY_TYPE_OPTIONS,
        "activity_styles": ACTIVITY_STYLES,
        "company_options": controller.company_options(),
        "linked_activity_options": controller.linked_activity_options(),
        "has_activities": bool(controller.activities),
        "message": message,
    })


@router.post("/tours/{tour_id}/itinerary/select")
async def itinerary_select(
    request: Request,
    tour_id: int,
    start: str = Form(...),
    end: str = Form(...),
    auth: AuthSession = Depends(require_admin_session),
    client: TourApiClient = Depends(get_api_client),
):
    try:
        _, controller = await build_controller(client, tour_id)
        controller.select_range(start, end)
    except AuthenticationError:
        raise
    except BackendError as e:
        logger.warning(f"Failed to fetch tour {tour_id}: {e}")
        return RedirectResponse(url=f"/ui/tours?message={quote('Tour not found')}", status_code=302)
    except MalformedTimeError as e:
        return RedirectResponse(url=itinerary_url(tour_id, str(e)), status_code=302)

    save_draft(request, tour_id, controller.draft)
    return RedirectResponse(url=itinerary_url(tour_id), status_code=302)


@router.get("/tours/{tour_id}/itinerary/activities/{activity_id}/edit")
async def itinerary_edit_activity(
    request: Request,
    tour_id: int,
    activity_id: int,
    auth: AuthSession = Depends(require_admin_session),
    client: TourApiClient = Depends(get_api_client),
):
    try:
        _, controller = await build_controller(client, tour_id)
        controller.open_activity(activity_id)
    except AuthenticationError:
        raise
    except BackendError as e:
        logger.warning(f"Failed to fetch tour {tour_id}: {e}")
        return RedirectResponse(url=f"/ui/tours?message={quote('Tour not found')}", status_code=302)
    except EditorStateError as e:
        return RedirectResponse(url=itinerary_url(tour_id, str(e)), status_code=302)

    save_draft(request, tour_id, controller.draft)
    return RedirectResponse(url=itinerary_url(tour_id), status_code=302)


@router.post("/tours/{tour_id}/itinerary/draft")
async def itinerary_submit_draft(
    request: Request,
    tour_id: int,
    type: str = Form(""),
    title: str = Form(""),
    description: str = Form(""),
    start_time: str = Form(""),
    end_time: str = Form(""),
    location_details: str = Form(""),
    company_id: str = Form(""),
    survey_url: str = Form(""),
    linked_activity_id: str = Form(""),
    auth: AuthSession = Depends(require_admin_session),
    client: TourApiClient = Depends(get_api_client),
):
    draft = load_draft(request, tour_id)
    if draft is None:
        return RedirectResponse(url=itinerary_url(tour_id), status_code=302)

    try:
        _, controller = await build_controller(client, tour_id, draft)
    except AuthenticationError:
        raise
    except BackendError as e:
        logger.warning(f"Failed to fetch tour {tour_id}: {e}")
        return RedirectResponse(url=itinerary_url(tour_id, "Could not load the tour, please retry"), status_code=302)

    values = {
        "type": type,
        "title": title,
        "description": description,
        "start_time": start_time,
        "end_time": end_time,
        "location_details": location_details,
        "company_id": company_id,
        "survey_url": survey_url,
        "linked_activity_id": linked_activity_id,
    }
    is_new = draft.is_new
    if controller.apply_form(values):
        result = await controller.submit()
    else:
        result = None

    save_draft(request, tour_id, controller.draft)
    if result is not None and result.status == ActionStatus.SAVED:
        return RedirectResponse(
            url=itinerary_url(tour_id, "Activity created" if is_new else "Activity updated"),
            status_code=302,
        )
    return RedirectResponse(url=itinerary_url(tour_id), status_code=302)


@router.post("/tours/{tour_id}/itinerary/draft/delete")
async def itinerary_delete_draft(
    request: Request,
    tour_id: int,
    confirm: str = Form(""),
    auth: AuthSession = Depends(require_admin_session),
    client: TourApiClient = Depends(get_api_client),
):
    draft = load_draft(request, tour_id)
    if draft is None:
        return RedirectResponse(url=itinerary_url(tour_id), status_code=302)

    try:
        _, controller = await build_controller(client, tour_id, draft)
        result = await controller.delete(confirmed=confirm == "yes")
    except AuthenticationError:
        raise
    except BackendError as e:
        logger.warning(f"Failed to fetch tour {tour_id}: {e}")
        return RedirectResponse(url=itinerary_url(tour_id, "Could not load the tour, please retry"), status_code=302)
    except EditorStateError as e:
        return RedirectResponse(url=itinerary_url(tour_id, str(e)), status_code=302)

    save_draft(request, tour_id, controller.draft)
    if result.status == ActionStatus.DELETED:
        return RedirectResponse(url=itinerary_url(tour_id, "Activity deleted"), status_code=302)
    return RedirectResponse(url=itinerary_url(tour_id), status_code=302)


@router.post("/tours/{tour_id}/itinerary/draft/cancel")
async def itinerary_cancel_draft(
    request: Request,
    tour_id: int,
    auth: AuthSession = Depends(require_admin_session),
):
    save_draft(request, tour_id, None)
    return RedirectResponse(url=itinerary_url(tour_id), status_code=302)


async def _reschedule(
    tour_id: int,
    activity_id: int,
    body: RescheduleRequest,
    client: TourApiClient,
    resize: bool,
) -> JSONResponse:
    try:
        _, controller = await build_controller(client, tour_id, reload_after_save=True)
    except AuthenticationError:
        raise
    except BackendError as e:
        logger.warning(f"Failed to fetch tour {tour_id}: {e}")
        return JSONResponse({"status": ChangeStatus.REVERTED.value, "error": str(e)}, status_code=502)

    try:
        if resize:
            change = await controller.resize_activity(activity_id, body.start, body.end)
        else:
            change = await controller.move_activity(activity_id, body.start, body.end)
    except EditorStateError as e:
        return JSONResponse({"status": ChangeStatus.REVERTED.value, "error": str(e)}, status_code=404)
    except MalformedTimeError as e:
        return JSONResponse({"status": ChangeStatus.REVERTED.value, "error": str(e)}, status_code=422)

    return JSONResponse({
        "status": change.status.value,
        "activity_id": change.activity_id,
        "start": change.current.start,
        "end": change.current.end,
        "error": change.error,
        "events": controller.board.to_fullcalendar(),
    })


@router.post("/tours/{tour_id}/itinerary/activities/{activity_id}/move")
async def itinerary_move_activity(
    tour_id: int,
    activity_id: int,
    body: RescheduleRequest,
    auth: AuthSession = Depends(require_admin_session),
    client: TourApiClient = Depends(get_api_client),
):
    return await _reschedule(tour_id, activity_id, body, client, resize=False)


@router.post("/tours/{tour_id}/itinerary/activities/{activity_id}/resize")
async def itinerary_resize_activity(
    tour_id: int,
    activity_id: int,
    body: RescheduleRequest,
    auth: AuthSession = Depends(require_admin_session),
    client: TourApiClient = Depends(get_api_client),
):
    return await _reschedule(tour_id, activity_id, body, client, resize=True)
