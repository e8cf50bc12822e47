"""
Health check endpoints.
Used for monitoring, deployment readiness checks, and basic connectivity tests.
"""

from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from app.core.exceptions import StorageError
from app.core.settings import settings
from app.services.storage import ReportQuery, get_report_store


router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
async def health_check():
    """
    Basic health check endpoint.
    Returns 200 if service is running.
    """
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/db")
async def database_health():
    """
    Datastore connectivity check.
    Runs a count over the reports collection through the active store.
    """
    backend = "memory" if settings.USE_MOCK_DB else "firestore"
    try:
        total = await get_report_store().count(ReportQuery())
    except StorageError as e:
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "database": backend, "connected": False, "message": e.detail},
        )
    return {
        "status": "healthy",
        "database": backend,
        "connected": True,
        "reports_count": total,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
