"""Health check endpoint for the upload service."""

from fastapi import APIRouter

from eduvideo.core.config import settings

router = APIRouter()


@router.get("/health")
async def health_check() -> dict:
    """Health check endpoint.

    Returns service status, name, version and the configured cloud provider.
    No external dependency is contacted.
    """
    return {
        "status": "ok",
        "service": settings.SERVICE_NAME,
        "version": settings.SERVICE_VERSION,
        "storage_provider": settings.VIDEO_STORAGE_PROVIDER,
    }
