# telecare/routers/health.py
import logging

from fastapi import APIRouter, HTTPException
from sqlalchemy.exc import SQLAlchemyError

from telecare.db.sql import get_engine, ping_db

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health_root():
    return {"status": "ok"}


@router.get("/health/db")
async def health_db():
    """
    Readiness probe: SELECT 1 on a fresh session, 503 when the database is
    unreachable.
    """
    try:
        await ping_db()
    except (SQLAlchemyError, OSError) as exc:
        logger.error("Database health check failed: %s", exc)
        # Don't expose internal details
        raise HTTPException(status_code=503, detail="database_unavailable") from exc
    return {"status": "ok", "database": get_engine().dialect.name}
