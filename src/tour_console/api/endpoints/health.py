"""Health check endpoint"""
from fastapi import APIRouter, Depends

from src.tour_console.api.deps import get_public_api_client
from src.tour_console.config import settings
from src.tour_console.services.tour_api import TourApiClient

router = APIRouter()


@router.get("/health")
async def health_check(client: TourApiClient = Depends(get_public_api_client)):
    backend_ok = await client.ping()

    return {
        "status": "ok",
        "environment": settings.APP_ENV,
        "backend": "connected" if backend_ok else "unreachable",
    }
