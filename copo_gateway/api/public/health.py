"""
Health check endpoints
"""

from datetime import datetime, timezone
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from sqlalchemy import text
from copo_gateway.infrastructure.database import get_db

router = APIRouter(tags=["health"])

SERVICE_NAME = "copo-gateway"


@router.get("/health")
def health():
    """Basic health check"""
    return {
        "status": "ok",
        "service": SERVICE_NAME,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/ready")
def ready(db: Session = Depends(get_db)):
    """
    Readiness check - verifies DB connectivity

    Returns:
    - 200 if the database answers
    - 503 otherwise
    """
    checks = {
        "status": "ok",
        "database": "unknown",
    }

    try:
        db.execute(text("SELECT 1"))
        checks["database"] = "connected"
    except Exception as e:
        checks["database"] = f"error: {str(e)}"
        checks["status"] = "not_ready"

    status_code = 200 if checks["status"] == "ok" else 503
    return JSONResponse(status_code=status_code, content=checks)
