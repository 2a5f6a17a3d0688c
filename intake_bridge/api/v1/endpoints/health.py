"""
Health check.
"""
from fastapi import APIRouter

from intake_bridge.core.config import settings


router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check():
    """Endpoint para verificar el estado de la aplicación."""
    return {
        "status": "healthy",
        "app_name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT
    }
