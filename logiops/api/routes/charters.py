"""
Charter endpoints and the fare quote.
"""

import datetime as dt
from typing import Any, Optional

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile, status

from logiops.api.deps import provide
from logiops.api.responses import download, dump, ok, paginated
from logiops.data.models.charter import (
    CharterCreate,
    CharterOut,
    CharterUpdate,
    FareQuoteInput,
    RecalculateRequest,
)
from logiops.data.models.common import ImportMode
from logiops.services.charters import CharterService

router = APIRouter(prefix="/charters", tags=["charters"])
Service = Depends(provide(CharterService))


@router.post("/quote")
def quote_fare(data: FareQuoteInput, service: CharterService = Service) -> dict[str, Any]:
    """Price a trip without saving anything."""
    return ok(service.quote(data))


@router.post("/recalculate")
def recalculate_charters(data: RecalculateRequest, service: CharterService = Service) -> dict[str, Any]:
    return ok(service.calculator.recalculate_charters(data.ids))


@router.get("/template")
def charter_template(service: CharterService = Service) -> Response:
    return download(service.template())


@router.post("/import")
async def import_charters(
    file: UploadFile = File(...),
    mode: ImportMode = Form(ImportMode.SIMULATE),
    service: CharterService = Service,
) -> dict[str, Any]:
    content = await file.read()
    return ok(service.import_rows(file.filename or "", content, mode.value))


@router.get("")
def list_charters(
    search: Optional[str] = None,
    driver_id: Optional[str] = None,
    loading_point_id: Optional[str] = None,
    date_from: Optional[dt.date] = None,
    date_to: Optional[dt.date] = None,
    is_negotiated: Optional[bool] = None,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    service: CharterService = Service,
) -> dict[str, Any]:
    items, pagination = service.list_charters(
        search, driver_id, loading_point_id, date_from, date_to, is_negotiated, page, limit
    )
    return paginated(CharterOut, items, pagination)


@router.get("/{charter_id}")
def get_charter(charter_id: str, service: CharterService = Service) -> dict[str, Any]:
    return ok(dump(CharterOut, service.get(charter_id)))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_charter(data: CharterCreate, service: CharterService = Service) -> dict[str, Any]:
    return ok(dump(CharterOut, service.create(data)))


@router.put("/{charter_id}")
def update_charter(charter_id: str, data: CharterUpdate, service: CharterService = Service) -> dict[str, Any]:
    return ok(dump(CharterOut, service.update(charter_id, data)))


@router.delete("/{charter_id}")
def delete_charter(charter_id: str, service: CharterService = Service) -> dict[str, Any]:
    service.delete(charter_id)
    return ok({"id": charter_id, "deleted": True})
