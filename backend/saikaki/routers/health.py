"""
Health check endpoints for service monitoring and readiness probes.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import text
from sqlalchemy.orm import Session

from ..database import get_db

router = APIRouter(prefix="/healthz", tags=["health"])

@router.get("")
def health_check():
    return {"status": "ok"}

@router.get("/db")
def database_check(db: Session = Depends(get_db)):
    """Readiness: the database answers a trivial query."""
    try:
        db.execute(text("SELECT 1"))
    except Exception as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=f"database unavailable: {e}")
    return {"status": "ok", "database": "ok"}
