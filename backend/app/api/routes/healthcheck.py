from fastapi import APIRouter
from app.core.config import settings

router = APIRouter(tags=["healthcheck"])


@router.get("/healthcheck")
def healthcheck():
    """Liveness probe - used by monitoring/deployment tools"""
    return {
        "status": "available",
        "system_info": {
            "environment": settings.ENVIRONMENT,
            "version": settings.APP_VERSION,
        },
    }
