"""
Health check endpoint.
Verifies database connectivity and reports provider/storage configuration.
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.ai.factory import get_generation_provider
from app.database import get_db
from app.storage.r2_client import get_r2_client

router = APIRouter()


@router.get("")
async def health_check(db: AsyncSession = Depends(get_db)):
    """
    Health check endpoint.
    Unhealthy (503) only when the database is unreachable; an unconfigured
    provider or storage is reported but does not fail the check.
    """
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "provider": "configured" if get_generation_provider().is_configured() else "not_configured",
        "storage": "configured" if get_r2_client().is_configured else "not_configured",
    }

    try:
        await db.execute(text("SELECT 1"))
        health_status["database"] = "connected"
    except SQLAlchemyError as e:
        health_status["database"] = f"error: {str(e)}"
        health_status["status"] = "unhealthy"

    if health_status["status"] == "unhealthy":
        raise HTTPException(status_code=503, detail=health_status)

    return health_status
