"""
Dashboard endpoint.
"""

import datetime as dt
from typing import Any, Optional

from fastapi import APIRouter, Depends

from logiops.api.deps import provide
from logiops.api.responses import ok
from logiops.services.dashboard import DashboardService

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/summary")
def dashboard_summary(
    date: Optional[dt.date] = None, service: DashboardService = Depends(provide(DashboardService))
) -> dict[str, Any]:
    return ok(service.summary(date))
