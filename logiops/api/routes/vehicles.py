"""
Vehicle endpoints.
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from logiops.api.deps import provide
from logiops.api.responses import download, dump, ok, paginated
from logiops.data.models.common import ExportFormat
from logiops.data.models.vehicle import (
    AssignDriverRequest,
    VehicleCreate,
    VehicleOut,
    VehicleOwnership,
    VehicleUpdate,
)
from logiops.services.vehicles import VehicleService

router = APIRouter(prefix="/vehicles", tags=["vehicles"])
Service = Depends(provide(VehicleService))


@router.get("")
def list_vehicles(
    search: Optional[str] = None,
    vehicle_type: Optional[str] = None,
    ownership: Optional[VehicleOwnership] = None,
    is_active: Optional[bool] = None,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    service: VehicleService = Service,
) -> dict[str, Any]:
    items, pagination = service.list_vehicles(
        search, vehicle_type, ownership.value if ownership else None, is_active, page, limit
    )
    return paginated(VehicleOut, items, pagination)


@router.get("/search")
def search_vehicles(
    q: str = Query("", max_length=50),
    limit: int = Query(10, ge=1, le=50),
    service: VehicleService = Service,
) -> dict[str, Any]:
    return ok([dump(VehicleOut, vehicle) for vehicle in service.search(q, limit)])


@router.get("/export")
def export_vehicles(
    format: ExportFormat = ExportFormat.XLSX,
    is_active: Optional[bool] = None,
    service: VehicleService = Service,
) -> Response:
    return download(service.export(format.value, is_active))


@router.get("/{vehicle_id}")
def get_vehicle(vehicle_id: str, service: VehicleService = Service) -> dict[str, Any]:
    return ok(dump(VehicleOut, service.get(vehicle_id)))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_vehicle(data: VehicleCreate, service: VehicleService = Service) -> dict[str, Any]:
    return ok(dump(VehicleOut, service.create(data)))


@router.put("/{vehicle_id}")
def update_vehicle(vehicle_id: str, data: VehicleUpdate, service: VehicleService = Service) -> dict[str, Any]:
    return ok(dump(VehicleOut, service.update(vehicle_id, data)))


@router.delete("/{vehicle_id}")
def delete_vehicle(vehicle_id: str, service: VehicleService = Service) -> dict[str, Any]:
    return ok(dump(VehicleOut, service.delete(vehicle_id)))


@router.post("/{vehicle_id}/toggle")
def toggle_vehicle(vehicle_id: str, service: VehicleService = Service) -> dict[str, Any]:
    return ok(dump(VehicleOut, service.toggle(vehicle_id)))


@router.post("/{vehicle_id}/assign")
def assign_driver(vehicle_id: str, data: AssignDriverRequest, service: VehicleService = Service) -> dict[str, Any]:
    return ok(dump(VehicleOut, service.assign_driver(vehicle_id, data.driver_id)))


@router.post("/{vehicle_id}/unassign")
def unassign_driver(vehicle_id: str, service: VehicleService = Service) -> dict[str, Any]:
    return ok(dump(VehicleOut, service.unassign_driver(vehicle_id)))
