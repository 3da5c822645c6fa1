# ridemap/api/v1/routes_health.py
from fastapi import APIRouter

from ridemap.core.config import settings

router = APIRouter(
    prefix="/health",
    tags=["health"],
)


@router.get("/", summary="Health check")
async def health_check():
    """
    Liveness probe; also reports whether a routing provider key is configured.
    """
    return {
        "status": "ok",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "routing_key_configured": settings.ORS_API_KEY is not None,
    }
