"""Health check endpoints."""

import logging

from fastapi import APIRouter, Depends, Request

from medibook import __version__
from medibook.api.dependencies import get_store
from medibook.scheduling import SchedulingStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check() -> dict:
    """Basic health check."""
    return {
        "status": "healthy",
        "service": "medibook",
        "version": __version__,
    }


@router.get("/health/ready")
async def readiness_check(
    request: Request,
    store: SchedulingStore = Depends(get_store),
) -> dict:
    """Readiness check - verifies the store answers a query."""
    try:
        doctors = await store.list_doctors()
    except Exception as e:
        logger.warning(f"Readiness check failed: {e}")
        return {"status": "not_ready", "errors": [f"Store check failed: {e}"]}

    return {
        "status": "ready",
        "demo_mode": bool(getattr(request.app.state, "demo_mode", False)),
        "doctors": len(doctors),
    }


@router.get("/health/live")
async def liveness_check() -> dict:
    """Liveness check - basic process health."""
    return {"status": "alive"}
