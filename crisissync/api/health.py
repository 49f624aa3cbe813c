"""Health check endpoints."""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from sqlalchemy import text

router = APIRouter()


@router.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy"}


@router.get("/ready")
async def readiness_check():
    """
    Readiness check - verify the incident database answers.
    """
    health_status = {
        "status": "ready",
        "checks": {
            "database": "unknown",
        }
    }

    try:
        from crisissync.core.database import engine
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        health_status["checks"]["database"] = "ok"
    except Exception as e:
        health_status["checks"]["database"] = f"failed: {str(e)}"
        health_status["status"] = "not_ready"

    if health_status["status"] != "ready":
        return JSONResponse(
            content=health_status,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    return health_status
