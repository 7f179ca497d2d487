"""
Vehicle management.
"""

from typing import Any, Optional

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import joinedload

from logiops.core.errors import BusinessRuleError, DuplicateError
from logiops.data.models.common import Pagination
from logiops.data.models.vehicle import VehicleCreate, VehicleUpdate
from logiops.data.tables import Driver, Vehicle
from logiops.services.base import BaseService, changed_fields, column_values
from logiops.tools.spreadsheets import ExportFile, build_export

OWNERSHIP_LABELS = {"OWNED": "자차", "LEASED": "리스", "CONTRACTED": "용차"}

EXPORT_HEADERS = ["차량번호", "차종", "소유형태", "배정기사", "연식", "적재톤수", "상태"]


class VehicleService(BaseService):
    """CRUD and driver assignment for vehicles."""

    service_name = "vehicles"

    def list_vehicles(
        self,
        search: Optional[str] = None,
        vehicle_type: Optional[str] = None,
        ownership: Optional[str] = None,
        is_active: Optional[bool] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> tuple[list[Vehicle], Pagination]:
        stmt = select(Vehicle).options(joinedload(Vehicle.driver)).outerjoin(Vehicle.driver)
        filters = []
        if search:
            term = f"%{search.strip()}%"
            filters.append(or_(Vehicle.plate_number.ilike(term), Driver.name.ilike(term)))
        if vehicle_type:
            filters.append(Vehicle.vehicle_type == vehicle_type)
        if ownership:
            filters.append(Vehicle.ownership == ownership)
        if is_active is not None:
            filters.append(Vehicle.is_active == is_active)
        if filters:
            stmt = stmt.where(and_(*filters))

        stmt = stmt.order_by(Vehicle.created_at.desc(), Vehicle.id)
        return self.paginate(stmt, page, limit)

    def get(self, vehicle_id: str) -> Vehicle:
        return self.get_or_404(Vehicle, vehicle_id, "Vehicle")

    def _check_plate(self, plate_number: str, exclude_id: Optional[str] = None) -> None:
        stmt = select(Vehicle.id).where(Vehicle.plate_number == plate_number)
        if exclude_id:
            stmt = stmt.where(Vehicle.id != exclude_id)
        if self.session.execute(stmt).first() is not None:
            raise DuplicateError(f"Plate number already registered: {plate_number}")

    def _active_driver(self, driver_id: str) -> Driver:
        driver = self.get_or_404(Driver, driver_id, "Driver")
        if not driver.is_active:
            raise BusinessRuleError(f"Driver is inactive: {driver.name}")
        return driver

    def create(self, data: VehicleCreate) -> Vehicle:
        self._check_plate(data.plate_number)
        if data.driver_id:
            self._active_driver(data.driver_id)

        vehicle = Vehicle(**column_values(data))
        self.session.add(vehicle)
        self.session.flush()

        self.audit("CREATE", "Vehicle", vehicle.id, metadata={"plate_number": vehicle.plate_number})
        return vehicle

    def update(self, vehicle_id: str, data: VehicleUpdate) -> Vehicle:
        vehicle = self.get(vehicle_id)
        values = column_values(data, exclude_unset=True)

        for field in ("plate_number", "vehicle_type", "ownership"):
            if field in values and values[field] is None:
                values.pop(field)

        if "plate_number" in values and values["plate_number"] != vehicle.plate_number:
            self._check_plate(values["plate_number"], exclude_id=vehicle.id)
        if values.get("driver_id") and values["driver_id"] != vehicle.driver_id:
            self._active_driver(values["driver_id"])

        changes = changed_fields(vehicle, values)
        if changes:
            self.session.flush()
            self.audit("UPDATE", "Vehicle", vehicle.id, changes=changes)
        return vehicle

    def delete(self, vehicle_id: str) -> Vehicle:
        """Deactivate a vehicle."""
        vehicle = self.get(vehicle_id)
        vehicle.is_active = False
        self.session.flush()
        self.audit("DELETE", "Vehicle", vehicle.id, metadata={"soft_delete": True})
        return vehicle

    def toggle(self, vehicle_id: str) -> Vehicle:
        vehicle = self.get(vehicle_id)
        vehicle.is_active = not vehicle.is_active
        self.session.flush()
        self.audit(
            "UPDATE",
            "Vehicle",
            vehicle.id,
            changes={"is_active": {"from": not vehicle.is_active, "to": vehicle.is_active}},
        )
        return vehicle

    def assign_driver(self, vehicle_id: str, driver_id: str) -> Vehicle:
        """
        Assign a driver to a vehicle.

        Raises:
            NotFoundError: vehicle or driver missing
            BusinessRuleError: driver inactive
        """
        vehicle = self.get(vehicle_id)
        driver = self._active_driver(driver_id)

        previous = vehicle.driver_id
        vehicle.driver_id = driver.id
        self.session.flush()
        self.audit("ASSIGN", "Vehicle", vehicle.id, changes={"driver_id": {"from": previous, "to": driver.id}})
        self.logger.info("vehicle_driver_assigned", vehicle_id=vehicle.id, driver_id=driver.id)
        return vehicle

    def unassign_driver(self, vehicle_id: str) -> Vehicle:
        vehicle = self.get(vehicle_id)
        if vehicle.driver_id is None:
            return vehicle

        previous = vehicle.driver_id
        vehicle.driver_id = None
        self.session.flush()
        self.audit("UNASSIGN", "Vehicle", vehicle.id, changes={"driver_id": {"from": previous, "to": None}})
        return vehicle

    def search(self, query: str, limit: int = 10) -> list[Vehicle]:
        query = (query or "").strip()
        if not query:
            return []
        stmt = (
            select(Vehicle)
            .where(Vehicle.is_active.is_(True), Vehicle.plate_number.ilike(f"%{query}%"))
            .order_by(Vehicle.plate_number)
            .limit(max(1, min(limit, 50)))
        )
        return list(self.session.execute(stmt).scalars())

    def export(self, fmt: str = "xlsx", is_active: Optional[bool] = None) -> ExportFile:
        stmt = select(Vehicle).options(joinedload(Vehicle.driver)).order_by(Vehicle.plate_number)
        if is_active is not None:
            stmt = stmt.where(Vehicle.is_active == is_active)

        rows: list[list[Any]] = []
        for vehicle in self.session.execute(stmt).scalars():
            rows.append(
                [
                    vehicle.plate_number,
                    vehicle.vehicle_type,
                    OWNERSHIP_LABELS.get(vehicle.ownership, vehicle.ownership),
                    vehicle.driver.name if vehicle.driver else "",
                    vehicle.year or "",
                    vehicle.capacity_ton or "",
                    "활성" if vehicle.is_active else "비활성",
                ]
            )
        return build_export(EXPORT_HEADERS, rows, "vehicles", fmt, sheet_title="차량")
