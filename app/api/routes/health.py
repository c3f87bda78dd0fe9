"""
Health check endpoints for deployment monitoring.
"""
import logging
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from app.core.dates import utcnow
from app.db.session import get_db

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

API_VERSION = "1.0.0"


def _database_status(db: Session) -> str:
    try:
        db.execute(text("SELECT 1"))
        return "connected"
    except Exception as e:
        logger.error(f"Health check database query failed: {e}")
        return f"error: {str(e)}"


@router.get("/health")
def health_check(db: Session = Depends(get_db)):
    """
    Health check endpoint for deployment monitoring.

    Always answers 200; ``status`` is "degraded" when the database is unreachable.
    """
    db_status = _database_status(db)
    return {
        "status": "healthy" if db_status == "connected" else "degraded",
        "timestamp": utcnow().isoformat(),
        "database": db_status,
        "version": API_VERSION,
    }


@router.get("/system/health")
def system_health(db: Session = Depends(get_db)):
    db_ok = _database_status(db) == "connected"
    return {
        "status": "ok",
        "database": "connected" if db_ok else "error",
        "api_version": API_VERSION,
        "service": "Resume SaaS API"
    }
