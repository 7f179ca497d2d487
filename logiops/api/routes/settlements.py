"""
Monthly settlement endpoints.
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Response

from logiops.api.deps import provide
from logiops.api.responses import download, dump, ok, paginated
from logiops.data.models.common import ExportFormat
from logiops.data.models.settlement import (
    YEAR_MONTH_PATTERN,
    AdjustmentCreate,
    BulkSettlementRequest,
    ReopenRequest,
    SettlementOut,
    SettlementRequest,
    SettlementStatus,
    SettlementUpdate,
)
from logiops.services.settlements import SettlementService

router = APIRouter(prefix="/settlements", tags=["settlements"])
Service = Depends(provide(SettlementService))

YEAR_MONTH = Query(..., pattern=YEAR_MONTH_PATTERN.pattern)


class FinalizeRequest(SettlementRequest):
    remarks: Optional[str] = None


@router.get("/preview")
def preview_settlement(
    driver_id: str, year_month: str = YEAR_MONTH, service: SettlementService = Service
) -> dict[str, Any]:
    return ok(service.preview(driver_id, year_month))


@router.post("", status_code=201)
def create_draft(data: SettlementRequest, service: SettlementService = Service) -> dict[str, Any]:
    return ok(dump(SettlementOut, service.create_or_update_draft(data.driver_id, data.year_month)))


@router.post("/bulk")
def bulk_create(data: BulkSettlementRequest, service: SettlementService = Service) -> dict[str, Any]:
    return ok(service.bulk_create(data.driver_ids, data.year_month))


@router.post("/finalize")
def finalize_settlement(data: FinalizeRequest, service: SettlementService = Service) -> dict[str, Any]:
    """Calculate and confirm a driver's month in one step."""
    return ok(dump(SettlementOut, service.finalize(data.driver_id, data.year_month, data.remarks)))


@router.get("/export")
def export_settlements(
    year_month: str = YEAR_MONTH,
    format: ExportFormat = ExportFormat.XLSX,
    service: SettlementService = Service,
) -> Response:
    return download(service.export(year_month, format.value))


@router.get("")
def list_settlements(
    driver_id: Optional[str] = None,
    year_month: Optional[str] = Query(None, pattern=YEAR_MONTH_PATTERN.pattern),
    status: Optional[SettlementStatus] = None,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    service: SettlementService = Service,
) -> dict[str, Any]:
    items, pagination = service.list_settlements(
        driver_id, year_month, status.value if status else None, page, limit
    )
    return paginated(SettlementOut, items, pagination)


@router.get("/{settlement_id}")
def get_settlement(settlement_id: str, service: SettlementService = Service) -> dict[str, Any]:
    return ok(dump(SettlementOut, service.get(settlement_id)))


@router.put("/{settlement_id}")
def update_settlement(
    settlement_id: str, data: SettlementUpdate, service: SettlementService = Service
) -> dict[str, Any]:
    return ok(dump(SettlementOut, service.update(settlement_id, data.remarks)))


@router.delete("/{settlement_id}")
def delete_settlement(settlement_id: str, service: SettlementService = Service) -> dict[str, Any]:
    service.delete(settlement_id)
    return ok({"id": settlement_id, "deleted": True})


@router.post("/{settlement_id}/confirm")
def confirm_settlement(settlement_id: str, service: SettlementService = Service) -> dict[str, Any]:
    return ok(dump(SettlementOut, service.confirm(settlement_id)))


@router.post("/{settlement_id}/paid")
def mark_paid(settlement_id: str, service: SettlementService = Service) -> dict[str, Any]:
    return ok(dump(SettlementOut, service.mark_paid(settlement_id)))


@router.post("/{settlement_id}/reopen")
def reopen_settlement(
    settlement_id: str, data: ReopenRequest, service: SettlementService = Service
) -> dict[str, Any]:
    return ok(dump(SettlementOut, service.reopen(settlement_id, data.reason)))


@router.post("/{settlement_id}/adjustments")
def add_adjustment(
    settlement_id: str, data: AdjustmentCreate, service: SettlementService = Service
) -> dict[str, Any]:
    return ok(dump(SettlementOut, service.add_adjustment(settlement_id, data)))
