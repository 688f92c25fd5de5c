"""Main FastAPI application"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import RedirectResponse
from starlette.middleware.sessions import SessionMiddleware

from src.tour_console.api.endpoints import health, ui_auth, ui_itinerary, ui_tours
from src.tour_console.config import settings
from src.tour_console.services.auth_session import AuthSession
from src.tour_console.services.tour_api import AuthenticationError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.getLogger("src.tour_console").setLevel(settings.LOG_LEVEL)
    settings.validate_secrets_for_production()

    logger.info(f"Starting Tour Console in {settings.APP_ENV} environment")
    logger.info(f"Using tour backend at {settings.API_BASE_URL}")

    yield

    logger.info("Shutting down Tour Console")


app = FastAPI(
    title="Tour Console - Tour Benchmarking Admin",
    description="Administrative console for tours, itineraries and activities",
    version="0.1.0",
    lifespan=lifespan
)

app.add_middleware(
    SessionMiddleware,
    secret_key=settings.SESSION_SECRET_KEY,
    session_cookie="tour_console_session",
    max_age=settings.SESSION_MAX_AGE_SECONDS,
    https_only=settings.is_production,
)


@app.exception_handler(AuthenticationError)
async def authentication_error_handler(request: Request, exc: AuthenticationError):
    # Backend token expired or revoked: drop the console session as well
    logger.info(f"Backend rejected session token: {exc}")
    AuthSession.from_request(request).logout()
    return RedirectResponse(url="/ui/login", status_code=302)


app.include_router(health.router, tags=["Health"])
app.include_router(ui_auth.router)
app.include_router(ui_tours.router)
app.include_router(ui_itinerary.router)


@app.get("/")
def root():
    return RedirectResponse(url="/ui/tours", status_code=302)
