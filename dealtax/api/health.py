"""Health and metrics endpoints."""

from fastapi import APIRouter

from dealtax.config import settings

router = APIRouter()


@router.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "ok"}


@router.get("/metrics")
async def metrics():
    """Basic metrics endpoint for observability."""
    return {"service": "dealtax", "engine_version": settings.engine_version}
