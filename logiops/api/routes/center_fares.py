"""
Center fare (rate table) endpoints.
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile, status

from logiops.api.deps import provide
from logiops.api.responses import download, dump, ok, paginated
from logiops.data.models.center_fare import (
    BulkDeleteRequest,
    CenterFareCreate,
    CenterFareOut,
    CenterFareUpdate,
    CenterFareValidateRequest,
    FareType,
)
from logiops.data.models.common import ExportFormat, ImportMode
from logiops.services.center_fares import CenterFareService

router = APIRouter(prefix="/center-fares", tags=["center-fares"])
Service = Depends(provide(CenterFareService))


@router.get("")
def list_center_fares(
    search: Optional[str] = None,
    loading_point_id: Optional[str] = None,
    vehicle_type: Optional[str] = None,
    fare_type: Optional[FareType] = None,
    is_active: Optional[bool] = None,
    sort_by: str = "created_at",
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    service: CenterFareService = Service,
) -> dict[str, Any]:
    items, pagination = service.list_center_fares(
        search,
        loading_point_id,
        vehicle_type,
        fare_type.value if fare_type else None,
        is_active,
        sort_by,
        sort_order,
        page,
        limit,
    )
    return paginated(CenterFareOut, items, pagination)


@router.get("/stats")
def center_fare_stats(service: CenterFareService = Service) -> dict[str, Any]:
    return ok(service.stats())


@router.get("/export")
def export_center_fares(
    format: ExportFormat = ExportFormat.XLSX,
    is_active: Optional[bool] = True,
    service: CenterFareService = Service,
) -> Response:
    return download(service.export(format.value, is_active))


@router.post("/validate")
def validate_center_fare(data: CenterFareValidateRequest, service: CenterFareService = Service) -> dict[str, Any]:
    return ok(service.validate(data))


@router.post("/import")
async def import_center_fares(
    file: UploadFile = File(...),
    mode: ImportMode = Form(ImportMode.SIMULATE),
    service: CenterFareService = Service,
) -> dict[str, Any]:
    content = await file.read()
    return ok(service.import_rows(file.filename or "", content, mode.value))


@router.post("/bulk-delete")
def bulk_delete_center_fares(data: BulkDeleteRequest, service: CenterFareService = Service) -> dict[str, Any]:
    return ok(service.bulk_delete(data.ids))


@router.get("/{fare_id}")
def get_center_fare(fare_id: str, service: CenterFareService = Service) -> dict[str, Any]:
    return ok(dump(CenterFareOut, service.get(fare_id)))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_center_fare(data: CenterFareCreate, service: CenterFareService = Service) -> dict[str, Any]:
    return ok(dump(CenterFareOut, service.create(data)))


@router.put("/{fare_id}")
def update_center_fare(fare_id: str, data: CenterFareUpdate, service: CenterFareService = Service) -> dict[str, Any]:
    return ok(dump(CenterFareOut, service.update(fare_id, data)))


@router.delete("/{fare_id}")
def delete_center_fare(fare_id: str, service: CenterFareService = Service) -> dict[str, Any]:
    return ok(dump(CenterFareOut, service.delete(fare_id)))


@router.post("/{fare_id}/toggle")
def toggle_center_fare(fare_id: str, service: CenterFareService = Service) -> dict[str, Any]:
    return ok(dump(CenterFareOut, service.toggle(fare_id)))
