"""
Driver endpoints, including CSV/Excel import.
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile, status

from logiops.api.deps import provide
from logiops.api.responses import download, dump, ok, paginated
from logiops.data.models.common import ExportFormat, ImportMode
from logiops.data.models.driver import (
    BulkActiveRequest,
    DriverCreate,
    DriverDetail,
    DriverOut,
    DriverSearchResult,
    DriverUpdate,
)
from logiops.services.drivers import DriverService

router = APIRouter(prefix="/drivers", tags=["drivers"])
Service = Depends(provide(DriverService))


def _detail(service: DriverService, driver_id: str) -> dict[str, Any]:
    driver = service.get(driver_id)
    detail = DriverDetail.model_validate(driver)
    detail.counts = service.counts(driver.id)
    return detail.model_dump(mode="json")


@router.get("")
def list_drivers(
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
    sort_by: str = "created_at",
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    service: DriverService = Service,
) -> dict[str, Any]:
    items, pagination = service.list_drivers(search, is_active, sort_by, sort_order, page, limit)
    return paginated(DriverOut, items, pagination)


@router.get("/search")
def search_drivers(
    q: str = Query("", max_length=100),
    limit: int = Query(10, ge=1, le=50),
    service: DriverService = Service,
) -> dict[str, Any]:
    return ok([dump(DriverSearchResult, driver) for driver in service.search(q, limit)])


@router.get("/export")
def export_drivers(
    format: ExportFormat = ExportFormat.XLSX,
    is_active: Optional[bool] = None,
    service: DriverService = Service,
) -> Response:
    return download(service.export(format.value, is_active))


@router.get("/template")
def driver_template(service: DriverService = Service) -> Response:
    return download(service.template())


@router.post("/import")
async def import_drivers(
    file: UploadFile = File(...),
    mode: ImportMode = Form(ImportMode.SIMULATE),
    service: DriverService = Service,
) -> dict[str, Any]:
    content = await file.read()
    return ok(service.import_rows(file.filename or "", content, mode.value))


@router.post("/bulk-active")
def bulk_set_active(data: BulkActiveRequest, service: DriverService = Service) -> dict[str, Any]:
    return ok({"updated": service.bulk_set_active(data.ids, data.is_active)})


@router.get("/{driver_id}")
def get_driver(driver_id: str, service: DriverService = Service) -> dict[str, Any]:
    return ok(_detail(service, driver_id))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_driver(data: DriverCreate, service: DriverService = Service) -> dict[str, Any]:
    return ok(dump(DriverOut, service.create(data)))


@router.put("/{driver_id}")
def update_driver(driver_id: str, data: DriverUpdate, service: DriverService = Service) -> dict[str, Any]:
    return ok(dump(DriverOut, service.update(driver_id, data)))


@router.delete("/{driver_id}")
def delete_driver(driver_id: str, service: DriverService = Service) -> dict[str, Any]:
    service.delete(driver_id)
    return ok({"id": driver_id, "deleted": True})


@router.post("/{driver_id}/activate")
def activate_driver(driver_id: str, service: DriverService = Service) -> dict[str, Any]:
    return ok(dump(DriverOut, service.activate(driver_id)))


@router.post("/{driver_id}/toggle")
def toggle_driver(driver_id: str, service: DriverService = Service) -> dict[str, Any]:
    return ok(dump(DriverOut, service.toggle(driver_id)))
