"""
Fixed contract endpoints, including CSV/Excel import.
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile, status

from logiops.api.deps import provide
from logiops.api.responses import download, dump, ok, paginated
from logiops.data.models.common import ExportFormat, ImportMode
from logiops.data.models.fixed_contract import (
    ContractType,
    FixedContractCreate,
    FixedContractOut,
    FixedContractUpdate,
)
from logiops.services.fixed_contracts import FixedContractService

router = APIRouter(prefix="/fixed-contracts", tags=["fixed-contracts"])
Service = Depends(provide(FixedContractService))


@router.get("")
def list_fixed_contracts(
    search: Optional[str] = None,
    driver_id: Optional[str] = None,
    loading_point_id: Optional[str] = None,
    contract_type: Optional[ContractType] = None,
    is_active: Optional[bool] = None,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    service: FixedContractService = Service,
) -> dict[str, Any]:
    items, pagination = service.list_fixed_contracts(
        search,
        driver_id,
        loading_point_id,
        contract_type.value if contract_type else None,
        is_active,
        page,
        limit,
    )
    return paginated(FixedContractOut, items, pagination)


@router.get("/stats")
def fixed_contract_stats(service: FixedContractService = Service) -> dict[str, Any]:
    return ok(service.stats())


@router.get("/export")
def export_fixed_contracts(
    format: ExportFormat = ExportFormat.XLSX,
    is_active: Optional[bool] = None,
    service: FixedContractService = Service,
) -> Response:
    return download(service.export(format.value, is_active))


@router.get("/template")
def fixed_contract_template(service: FixedContractService = Service) -> Response:
    return download(service.template())


@router.post("/import")
async def import_fixed_contracts(
    file: UploadFile = File(...),
    mode: ImportMode = Form(ImportMode.SIMULATE),
    service: FixedContractService = Service,
) -> dict[str, Any]:
    content = await file.read()
    return ok(service.import_rows(file.filename or "", content, mode.value))


@router.get("/{contract_id}")
def get_fixed_contract(contract_id: str, service: FixedContractService = Service) -> dict[str, Any]:
    return ok(dump(FixedContractOut, service.get(contract_id)))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_fixed_contract(data: FixedContractCreate, service: FixedContractService = Service) -> dict[str, Any]:
    return ok(dump(FixedContractOut, service.create(data)))


@router.put("/{contract_id}")
def update_fixed_contract(
    contract_id: str, data: FixedContractUpdate, service: FixedContractService = Service
) -> dict[str, Any]:
    return ok(dump(FixedContractOut, service.update(contract_id, data)))


@router.delete("/{contract_id}")
def delete_fixed_contract(contract_id: str, service: FixedContractService = Service) -> dict[str, Any]:
    return ok(dump(FixedContractOut, service.delete(contract_id)))


@router.post("/{contract_id}/toggle")
def toggle_fixed_contract(contract_id: str, service: FixedContractService = Service) -> dict[str, Any]:
    return ok(dump(FixedContractOut, service.toggle(contract_id)))
