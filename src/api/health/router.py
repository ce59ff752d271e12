"""Health check endpoints for monitoring."""

from datetime import datetime, timezone

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from src.api.core.dependencies import AsyncSessionDep
from src.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health_check(db: AsyncSessionDep) -> JSONResponse:
    """Check that the profile store answers."""
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error("Database health check failed", error=str(e))
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unhealthy", "database": False, "timestamp": timestamp},
        )
    return JSONResponse(
        content={"status": "healthy", "database": True, "timestamp": timestamp}
    )


@router.get("/liveness")
async def liveness_check():
    """Simple liveness check - indicates if service is running."""
    return {"status": "alive", "service": "upblock-api"}
