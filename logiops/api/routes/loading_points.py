"""
Loading point (center) endpoints.
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile, status

from logiops.api.deps import provide
from logiops.api.responses import download, dump, ok, paginated
from logiops.data.models.common import ExportFormat, ImportMode
from logiops.data.models.loading_point import (
    LoadingPointCreate,
    LoadingPointOut,
    LoadingPointSuggestion,
    LoadingPointUpdate,
)
from logiops.services.loading_points import LoadingPointService

router = APIRouter(prefix="/loading-points", tags=["loading-points"])
Service = Depends(provide(LoadingPointService))


@router.get("")
def list_loading_points(
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    service: LoadingPointService = Service,
) -> dict[str, Any]:
    items, pagination = service.list_loading_points(search, is_active, page, limit)
    return paginated(LoadingPointOut, items, pagination)


@router.get("/centers")
def list_centers(service: LoadingPointService = Service) -> dict[str, Any]:
    return ok(service.list_centers())


@router.get("/suggestions")
def suggestions(
    q: str = Query("", max_length=100),
    limit: int = Query(10, ge=1, le=50),
    service: LoadingPointService = Service,
) -> dict[str, Any]:
    return ok([dump(LoadingPointSuggestion, point) for point in service.suggestions(q, limit)])


@router.get("/export")
def export_loading_points(
    format: ExportFormat = ExportFormat.XLSX,
    is_active: Optional[bool] = None,
    service: LoadingPointService = Service,
) -> Response:
    return download(service.export(format.value, is_active))


@router.get("/template")
def loading_point_template(service: LoadingPointService = Service) -> Response:
    return download(service.template())


@router.post("/import")
async def import_loading_points(
    file: UploadFile = File(...),
    mode: ImportMode = Form(ImportMode.SIMULATE),
    service: LoadingPointService = Service,
) -> dict[str, Any]:
    content = await file.read()
    return ok(service.import_rows(file.filename or "", content, mode.value))


@router.get("/{loading_point_id}")
def get_loading_point(loading_point_id: str, service: LoadingPointService = Service) -> dict[str, Any]:
    return ok(dump(LoadingPointOut, service.get(loading_point_id)))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_loading_point(data: LoadingPointCreate, service: LoadingPointService = Service) -> dict[str, Any]:
    return ok(dump(LoadingPointOut, service.create(data)))


@router.put("/{loading_point_id}")
def update_loading_point(
    loading_point_id: str, data: LoadingPointUpdate, service: LoadingPointService = Service
) -> dict[str, Any]:
    return ok(dump(LoadingPointOut, service.update(loading_point_id, data)))


@router.delete("/{loading_point_id}")
def delete_loading_point(loading_point_id: str, service: LoadingPointService = Service) -> dict[str, Any]:
    return ok(dump(LoadingPointOut, service.delete(loading_point_id)))


@router.post("/{loading_point_id}/toggle")
def toggle_loading_point(loading_point_id: str, service: LoadingPointService = Service) -> dict[str, Any]:
    return ok(dump(LoadingPointOut, service.toggle(loading_point_id)))
