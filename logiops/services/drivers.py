"""
Driver management.

This service:
- Maintains the driver registry (phone numbers are unique, stored digits-only)
- Refuses to delete drivers with charter or settlement history
- Imports drivers from the 9-column CSV/Excel layout (simulate, then commit)
- Exports the registry for Excel
"""

from typing import Any, Optional

from pydantic import ValidationError
from sqlalchemy import and_, func, or_, select, update

from logiops.core.errors import BusinessRuleError, DuplicateError, LogiOpsError
from logiops.data.models.common import ImportMode, ImportResult, Pagination
from logiops.data.models.driver import DriverCounts, DriverCreate, DriverUpdate
from logiops.data.tables import CharterRequest, Driver, FixedContract, Settlement, Vehicle
from logiops.services.base import BaseService, changed_fields, column_values
from logiops.services.imports import (
    add_row_error,
    excel_row_number,
    read_import_sheet,
    require_valid_rows,
    resolve_mode,
    validation_message,
)
from logiops.tools.formatting import extract_numbers, format_account_number, format_business_number, format_phone_number
from logiops.tools.spreadsheets import ExportFile, build_export, map_row_headers

REQUIRED_HEADERS = ["성함", "연락처", "차량번호"]
TEMPLATE_HEADERS = ["성함", "연락처", "차량번호", "사업상호", "대표자", "사업번호", "계좌은행", "계좌번호", "특이사항"]

# template header -> DriverCreate field
_HEADER_FIELDS = {
    "성함": "name",
    "연락처": "phone",
    "차량번호": "vehicle_number",
    "사업상호": "business_name",
    "대표자": "representative",
    "사업번호": "business_number",
    "계좌은행": "bank_name",
    "계좌번호": "account_number",
    "특이사항": "remarks",
}

SORT_COLUMNS = {
    "name": Driver.name,
    "phone": Driver.phone,
    "created_at": Driver.created_at,
    "updated_at": Driver.updated_at,
}


def row_to_driver(row: dict[str, str]) -> DriverCreate:
    """Map one import row (keyed by template header) to a validated DriverCreate."""
    mapped = map_row_headers(row, TEMPLATE_HEADERS)
    payload = {field: mapped.get(header, "") for header, field in _HEADER_FIELDS.items()}
    return DriverCreate(**payload)


class DriverService(BaseService):
    """CRUD, search and import for drivers."""

    service_name = "drivers"

    def list_drivers(
        self,
        search: Optional[str] = None,
        is_active: Optional[bool] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
        page: int = 1,
        limit: Optional[int] = None,
    ) -> tuple[list[Driver], Pagination]:
        """
        List drivers.

        Args:
            search: Substring of name, phone, vehicle number or business name
            is_active: Filter by status (None = all)
            sort_by: name, phone, created_at or updated_at
            sort_order: asc or desc
            page: 1-based page
            limit: Page size
        """
        stmt = select(Driver)
        filters = []
        if search:
            term = f"%{search.strip()}%"
            conditions = [
                Driver.name.ilike(term),
                Driver.vehicle_number.ilike(term),
                Driver.business_name.ilike(term),
            ]
            digits = extract_numbers(search)
            if digits:
                conditions.append(Driver.phone.contains(digits))
            filters.append(or_(*conditions))
        if is_active is not None:
            filters.append(Driver.is_active == is_active)
        if filters:
            stmt = stmt.where(and_(*filters))

        column = SORT_COLUMNS.get(sort_by, Driver.created_at)
        stmt = stmt.order_by(column.asc() if sort_order == "asc" else column.desc(), Driver.id)
        return self.paginate(stmt, page, limit)

    def get(self, driver_id: str) -> Driver:
        return self.get_or_404(Driver, driver_id, "Driver")

    def counts(self, driver_id: str) -> DriverCounts:
        """Related record counts shown on the driver detail."""

        def _count(model: Any) -> int:
            stmt = select(func.count(model.id)).where(model.driver_id == driver_id)
            return self.session.execute(stmt).scalar_one()

        return DriverCounts(
            charters=_count(CharterRequest),
            settlements=_count(Settlement),
            fixed_contracts=_count(FixedContract),
        )

    def _check_duplicates(
        self,
        phone: Optional[str],
        business_number: Optional[str],
        exclude_id: Optional[str] = None,
    ) -> None:
        if phone:
            stmt = select(Driver.id, Driver.name).where(Driver.phone == phone)
            if exclude_id:
                stmt = stmt.where(Driver.id != exclude_id)
            existing = self.session.execute(stmt).first()
            if existing is not None:
                raise DuplicateError(
                    f"Phone number already registered to {existing.name}",
                    details={"field": "phone", "driver_id": existing.id},
                )

        if business_number:
            stmt = select(Driver.id, Driver.name).where(Driver.business_number == business_number)
            if exclude_id:
                stmt = stmt.where(Driver.id != exclude_id)
            existing = self.session.execute(stmt).first()
            if existing is not None:
                raise DuplicateError(
                    f"Business number already registered to {existing.name}",
                    details={"field": "business_number", "driver_id": existing.id},
                )

    def create(self, data: DriverCreate) -> Driver:
        self._check_duplicates(data.phone, data.business_number)

        driver = Driver(**column_values(data))
        self.session.add(driver)
        self.session.flush()

        self.audit("CREATE", "Driver", driver.id, metadata={"name": driver.name})
        self.logger.info("driver_created", driver_id=driver.id)
        return driver

    def update(self, driver_id: str, data: DriverUpdate) -> Driver:
        driver = self.get(driver_id)
        values = column_values(data, exclude_unset=True)

        # required columns cannot be cleared
        for field in ("name", "phone", "vehicle_number"):
            if field in values and values[field] is None:
                values.pop(field)

        self._check_duplicates(
            values.get("phone") if values.get("phone") != driver.phone else None,
            values.get("business_number") if values.get("business_number") != driver.business_number else None,
            exclude_id=driver.id,
        )

        changes = changed_fields(driver, values)
        if changes:
            self.session.flush()
            self.audit("UPDATE", "Driver", driver.id, changes=changes)
        return driver

    def delete(self, driver_id: str) -> None:
        """
        Delete a driver with no charter or settlement history.

        Raises:
            BusinessRuleError: the driver has history; deactivate instead
        """
        driver = self.get(driver_id)
        counts = self.counts(driver.id)
        if counts.charters or counts.settlements:
            raise BusinessRuleError(
                "Driver has charter or settlement history; deactivate instead of deleting",
                details=counts.model_dump(),
            )

        self.session.execute(update(Vehicle).where(Vehicle.driver_id == driver.id).values(driver_id=None))
        self.session.execute(
            update(FixedContract).where(FixedContract.driver_id == driver.id).values(driver_id=None)
        )
        self.audit("DELETE", "Driver", driver.id, metadata={"name": driver.name, "phone": driver.phone})
        self.session.delete(driver)
        self.session.flush()
        self.logger.info("driver_deleted", driver_id=driver_id)

    def _set_active(self, driver: Driver, active: bool) -> Driver:
        if driver.is_active != active:
            driver.is_active = active
            self.session.flush()
            self.audit("UPDATE", "Driver", driver.id, changes={"is_active": {"from": not active, "to": active}})
        return driver

    def activate(self, driver_id: str) -> Driver:
        return self._set_active(self.get(driver_id), True)

    def toggle(self, driver_id: str) -> Driver:
        driver = self.get(driver_id)
        return self._set_active(driver, not driver.is_active)

    def search(self, query: str, limit: int = 10) -> list[Driver]:
        """Quick lookup of active drivers by name, phone or vehicle number."""
        query = (query or "").strip()
        if not query:
            return []
        term = f"%{query}%"
        conditions = [Driver.name.ilike(term), Driver.vehicle_number.ilike(term)]
        digits = extract_numbers(query)
        if digits:
            conditions.append(Driver.phone.contains(digits))
        stmt = (
            select(Driver)
            .where(Driver.is_active.is_(True), or_(*conditions))
            .order_by(Driver.name)
            .limit(max(1, min(limit, 50)))
        )
        return list(self.session.execute(stmt).scalars())

    def bulk_set_active(self, ids: list[str], active: bool) -> int:
        """Activate or deactivate several drivers; returns the number changed."""
        drivers = self.session.execute(select(Driver).where(Driver.id.in_(ids))).scalars().all()
        changed = 0
        for driver in drivers:
            if driver.is_active != active:
                driver.is_active = active
                changed += 1
        self.session.flush()

        self.audit(
            "BULK_UPDATE",
            "Driver",
            "bulk",
            changes={"is_active": active},
            metadata={"ids": [d.id for d in drivers], "requested": len(ids), "changed": changed},
        )
        return changed

    def find_active_by_name(self, name: str) -> Optional[Driver]:
        stmt = (
            select(Driver)
            .where(Driver.name == name.strip(), Driver.is_active.is_(True))
            .order_by(Driver.created_at)
            .limit(1)
        )
        return self.session.execute(stmt).scalars().first()

    def find_by_phone_or_vehicle(self, phone: Optional[str], vehicle_number: Optional[str]) -> Optional[Driver]:
        conditions = []
        digits = extract_numbers(phone)
        if digits:
            conditions.append(Driver.phone == digits)
        if vehicle_number and vehicle_number.strip():
            conditions.append(Driver.vehicle_number == vehicle_number.strip())
        if not conditions:
            return None
        stmt = select(Driver).where(or_(*conditions)).order_by(Driver.is_active.desc(), Driver.created_at).limit(1)
        return self.session.execute(stmt).scalars().first()

    def export(self, fmt: str = "xlsx", is_active: Optional[bool] = None) -> ExportFile:
        stmt = select(Driver).order_by(Driver.name)
        if is_active is not None:
            stmt = stmt.where(Driver.is_active == is_active)

        rows: list[list[Any]] = []
        for driver in self.session.execute(stmt).scalars():
            rows.append(
                [
                    driver.name,
                    format_phone_number(driver.phone),
                    driver.vehicle_number,
                    driver.business_name or "",
                    driver.representative or "",
                    format_business_number(driver.business_number),
                    driver.bank_name or "",
                    format_account_number(driver.account_number),
                    driver.remarks or "",
                    "활성" if driver.is_active else "비활성",
                ]
            )

        self.logger.info("drivers_exported", count=len(rows), format=fmt)
        return build_export([*TEMPLATE_HEADERS, "상태"], rows, "drivers", fmt, sheet_title="기사")

    def template(self) -> ExportFile:
        example = ["홍길동", "010-1234-5678", "서울12가3456", "길동운수", "홍길동", "123-45-67890", "국민은행", "123456-78-901234", ""]
        return build_export(TEMPLATE_HEADERS, [example], "driver_template", "csv")

    def import_rows(self, filename: str, content: bytes, mode: Optional[str] = None) -> ImportResult:
        """
        Import drivers from an uploaded CSV/Excel file.

        Args:
            filename: Uploaded file name
            content: File bytes
            mode: "simulate" (validate only) or "commit" (write valid rows)

        Returns:
            ImportResult with per-row errors (Excel row numbers)
        """
        import_mode = resolve_mode(mode)
        sheet = read_import_sheet(
            filename, content, REQUIRED_HEADERS, TEMPLATE_HEADERS, self.config_manager.get_import_limits()
        )

        result = ImportResult(total=len(sheet.rows))
        valid: list[tuple[int, DriverCreate]] = []
        seen_phones: set[str] = set()

        for index, row in enumerate(sheet.rows):
            row_number = excel_row_number(index)
            try:
                driver = row_to_driver(row)
            except ValidationError as e:
                add_row_error(result, row_number, validation_message(e), row)
                continue

            if driver.phone in seen_phones:
                add_row_error(result, row_number, f"Duplicate phone number in file: {driver.phone}", row)
                continue
            seen_phones.add(driver.phone)

            try:
                self._check_duplicates(driver.phone, driver.business_number)
            except DuplicateError as e:
                add_row_error(result, row_number, e.message, row)
                continue

            valid.append((row_number, driver))

        result.valid = len(valid)
        result.invalid = result.total - result.valid

        if import_mode == ImportMode.SIMULATE:
            result.preview = [d.model_dump() for _, d in valid[:20]]
            self.logger.info("driver_import_simulated", total=result.total, valid=result.valid)
            return result

        require_valid_rows(result)
        for row_number, driver in valid:
            try:
                self.create(driver)
                result.imported += 1
            except LogiOpsError as e:
                add_row_error(result, row_number, e.message)
                self.logger.warning("import_row_rejected", row=row_number, error=e.message)

        self.audit(
            "IMPORT",
            "Driver",
            "import",
            metadata={"filename": filename, "total": result.total, "imported": result.imported},
        )
        self.logger.info("driver_import_committed", total=result.total, imported=result.imported)
        return result
