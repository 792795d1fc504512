import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from banksync.db.session import get_db
from banksync.monitoring.metrics import InMemoryMetricsSink

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health():
    """Basic health check."""
    return {"status": "ok"}


@router.get("/health/ready")
async def health_ready(db: AsyncSession = Depends(get_db)):
    """Readiness check with database connection."""
    try:
        await db.execute(text("SELECT 1"))
        return {"status": "ready", "database": "connected"}
    except SQLAlchemyError:
        logger.warning("Readiness check failed: database unavailable")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not ready", "database": "disconnected"},
        )


@router.get("/health/sync")
async def health_sync(request: Request):
    """Connection sync success rate since startup (in-memory metrics only)."""
    metrics = request.app.state.metrics
    if not isinstance(metrics, InMemoryMetricsSink):
        return {"status": "unknown"}

    rate = metrics.get_success_rate()
    return {
        "status": "ok" if rate >= 0.5 else "degraded",
        "success_rate": round(rate, 3),
        "succeeded": metrics.counters.get("sync.connection.succeeded", 0),
        "failed": metrics.counters.get("sync.connection.failed", 0),
    }
