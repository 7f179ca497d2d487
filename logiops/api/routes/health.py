"""
Liveness check.
"""

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from logiops.api.deps import get_session
from logiops.api.responses import ok
from logiops.core.logging import get_logger

router = APIRouter(tags=["health"])
logger = get_logger(component="api.health")


@router.get("/health")
def health(session: Session = Depends(get_session)) -> dict[str, Any]:
    database = "ok"
    try:
        session.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error("health_check_database_failed", error=str(e))
        database = "error"
    return ok({"status": "ok" if database == "ok" else "degraded", "database": database})
