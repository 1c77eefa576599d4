"""
System health check endpoint.
Returns status of backend + DB + escalation engine loops.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from sqlalchemy import text
from app.database import get_db
from datetime import datetime

router = APIRouter()


@router.get("/health", summary="System health check")
def health_check(request: Request, db: Session = Depends(get_db)):
    """
    Returns:
    - Backend status
    - Database connectivity
    - Engine status (running flag, loop liveness, last tick results)
    """
    result = {
        "status": "ok",
        "timestamp": datetime.utcnow().isoformat(),
        "backend": "ok",
        "database": "unknown",
        "engine": None,
    }

    try:
        db.execute(text("SELECT 1"))
        result["database"] = "ok"
    except Exception as e:
        result["database"] = f"error: {str(e)}"
        result["status"] = "degraded"

    manager = getattr(request.app.state, "escalation_manager", None)
    if manager is None:
        result["engine"] = {"is_running": False}
    else:
        result["engine"] = manager.status()
        if manager.is_running and not all(result["engine"]["loops"].values()):
            result["status"] = "degraded"

    return result
