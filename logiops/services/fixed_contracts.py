"""
Fixed contract management.

This service:
- Maintains recurring routes per center (one active contract per center + route name)
- Parses the Korean weekday and contract type labels used in import files
- Imports contracts from the 13-column CSV/Excel layout (simulate, then commit)
- Reports contract counts by type
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from pydantic import ValidationError
from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import joinedload

from logiops.core.errors import BusinessRuleError, DuplicateError, LogiOpsError
from logiops.data.models.common import ImportMode, ImportResult, Pagination
from logiops.data.models.fixed_contract import (
    CONTRACT_TYPE_LABELS,
    ContractType,
    FixedContractCreate,
    FixedContractImportRow,
    FixedContractStats,
    FixedContractUpdate,
    format_operating_days,
)
from logiops.data.tables import Driver, FixedContract, LoadingPoint
from logiops.services.base import BaseService, changed_fields, column_values
from logiops.services.drivers import DriverService
from logiops.services.imports import (
    add_row_error,
    excel_row_number,
    read_import_sheet,
    require_valid_rows,
    resolve_mode,
    validation_message,
)
from logiops.services.loading_points import LoadingPointService
from logiops.tools.formatting import format_phone_number, parse_amount, parse_date
from logiops.tools.spreadsheets import ExportFile, build_export, map_row_headers

REQUIRED_HEADERS = ["센터명", "노선명", "운행요일", "센터계약"]
TEMPLATE_HEADERS = [
    "센터명",
    "노선명",
    "기사명",
    "차량번호",
    "연락처",
    "운행요일",
    "센터계약",
    "센터금액",
    "기사계약",
    "기사금액",
    "시작일자",
    "종료일자",
    "비고",
]

# 0 = Sunday
WEEKDAY_MAP: dict[str, int] = {
    "일": 0,
    "월": 1,
    "화": 2,
    "수": 3,
    "목": 4,
    "금": 5,
    "토": 6,
    "일요일": 0,
    "월요일": 1,
    "화요일": 2,
    "수요일": 3,
    "목요일": 4,
    "금요일": 5,
    "토요일": 6,
}

CONTRACT_TYPE_MAP: dict[str, ContractType] = {
    "고정(일대)": ContractType.FIXED_DAILY,
    "고정일대": ContractType.FIXED_DAILY,
    "일고정": ContractType.FIXED_DAILY,
    "고정(월대)": ContractType.FIXED_MONTHLY,
    "고정월대": ContractType.FIXED_MONTHLY,
    "월고정": ContractType.FIXED_MONTHLY,
    "고정지입": ContractType.CONSIGNED_MONTHLY,
    "고정(지입)": ContractType.CONSIGNED_MONTHLY,
    "월위탁": ContractType.CONSIGNED_MONTHLY,
    "용차운임": ContractType.CHARTER_PER_RIDE,
    "건별용차": ContractType.CHARTER_PER_RIDE,
}

_DAY_SEPARATORS = re.compile(r"[,\s]+")

EXPORT_HEADERS = [
    "센터명",
    "노선명",
    "기사명",
    "차량번호",
    "연락처",
    "운행요일",
    "센터계약",
    "센터금액",
    "기사계약",
    "기사금액",
    "시작일자",
    "종료일자",
    "비고",
    "상태",
]


def parse_operating_days(text: Optional[str]) -> list[int]:
    """
    Parse a weekday list such as "월,수,금" or "월요일 수요일".

    Unknown tokens are ignored; the result is sorted and de-duplicated.
    """
    if not text:
        return []
    days = {WEEKDAY_MAP[token] for token in _DAY_SEPARATORS.split(str(text).strip()) if token in WEEKDAY_MAP}
    return sorted(days)


def parse_contract_type(label: Optional[str]) -> Optional[ContractType]:
    """Map a contract type label (Korean label or enum name) to a ContractType."""
    if not label:
        return None
    label = str(label).strip()
    if label in CONTRACT_TYPE_MAP:
        return CONTRACT_TYPE_MAP[label]
    try:
        return ContractType(label)
    except ValueError:
        return None


def row_to_contract(row: dict[str, str]) -> FixedContractImportRow:
    """
    Map one import row (keyed by template header) to a validated import row.

    Raises:
        ValueError: a required field is missing or a label is unknown
    """
    mapped = map_row_headers(row, TEMPLATE_HEADERS)

    center_name = mapped.get("센터명", "").strip()
    if not center_name:
        raise ValueError("Center name is required")
    route_name = mapped.get("노선명", "").strip()
    if not route_name:
        raise ValueError("Route name is required")

    operating_days = parse_operating_days(mapped.get("운행요일"))
    if not operating_days:
        raise ValueError("At least one operating day is required")

    center_label = mapped.get("센터계약", "").strip()
    if not center_label:
        raise ValueError("Center contract type is required")
    center_contract_type = parse_contract_type(center_label)
    if center_contract_type is None:
        raise ValueError(f"Unknown center contract type: {center_label}")

    driver_label = mapped.get("기사계약", "").strip()
    driver_contract_type = parse_contract_type(driver_label)
    if driver_label and driver_contract_type is None:
        raise ValueError(f"Unknown driver contract type: {driver_label}")

    return FixedContractImportRow(
        center_name=center_name,
        route_name=route_name,
        driver_name=mapped.get("기사명"),
        vehicle_number=mapped.get("차량번호"),
        phone=mapped.get("연락처"),
        operating_days=operating_days,
        center_contract_type=center_contract_type,
        center_amount=parse_amount(mapped.get("센터금액")) or 0,
        driver_contract_type=driver_contract_type or center_contract_type,
        driver_amount=parse_amount(mapped.get("기사금액")),
        start_date=parse_date(mapped.get("시작일자")),
        end_date=parse_date(mapped.get("종료일자")),
        remarks=mapped.get("비고"),
    )


def _type_label(value: Optional[str]) -> str:
    if not value:
        return ""
    try:
        return CONTRACT_TYPE_LABELS[ContractType(value)]
    except ValueError:
        return value


class FixedContractService(BaseService):
    """CRUD, stats and import for fixed contracts."""

    service_name = "fixed_contracts"

    def list_fixed_contracts(
        self,
        search: Optional[str] = None,
        driver_id: Optional[str] = None,
        loading_point_id: Optional[str] = None,
        contract_type: Optional[str] = None,
        is_active: Optional[bool] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> tuple[list[FixedContract], Pagination]:
        """
        List fixed contracts.

        Args:
            search: Substring of route name, center name or driver name
            driver_id: Only this driver's contracts
            loading_point_id: Only this center's contracts
            contract_type: Center contract type
            is_active: Filter by status (None = all)
            page: 1-based page
            limit: Page size
        """
        stmt = (
            select(FixedContract)
            .options(joinedload(FixedContract.driver), joinedload(FixedContract.loading_point))
            .join(FixedContract.loading_point)
            .outerjoin(FixedContract.driver)
        )
        filters = []
        if search:
            term = f"%{search.strip()}%"
            filters.append(
                or_(
                    FixedContract.route_name.ilike(term),
                    LoadingPoint.center_name.ilike(term),
                    LoadingPoint.loading_point_name.ilike(term),
                    Driver.name.ilike(term),
                )
            )
        if driver_id:
            filters.append(FixedContract.driver_id == driver_id)
        if loading_point_id:
            filters.append(FixedContract.loading_point_id == loading_point_id)
        if contract_type:
            filters.append(FixedContract.center_contract_type == contract_type)
        if is_active is not None:
            filters.append(FixedContract.is_active == is_active)
        if filters:
            stmt = stmt.where(and_(*filters))

        stmt = stmt.order_by(FixedContract.created_at.desc(), FixedContract.id)
        return self.paginate(stmt, page, limit)

    def get(self, contract_id: str) -> FixedContract:
        return self.get_or_404(FixedContract, contract_id, "Fixed contract")

    def _active_loading_point(self, loading_point_id: str) -> LoadingPoint:
        point = self.get_or_404(LoadingPoint, loading_point_id, "Loading point")
        if not point.is_active:
            raise BusinessRuleError(f"Loading point is inactive: {point.center_name}")
        return point

    def _active_driver(self, driver_id: str) -> Driver:
        driver = self.get_or_404(Driver, driver_id, "Driver")
        if not driver.is_active:
            raise BusinessRuleError(f"Driver is inactive: {driver.name}")
        return driver

    def _check_duplicate(self, loading_point_id: str, route_name: str, exclude_id: Optional[str] = None) -> None:
        stmt = select(FixedContract.id).where(
            FixedContract.loading_point_id == loading_point_id,
            FixedContract.route_name == route_name,
            FixedContract.is_active.is_(True),
        )
        if exclude_id:
            stmt = stmt.where(FixedContract.id != exclude_id)
        if self.session.execute(stmt).first() is not None:
            raise DuplicateError(
                f"An active fixed contract for route '{route_name}' already exists at this loading point",
                details={"loading_point_id": loading_point_id, "route_name": route_name},
            )

    def create(self, data: FixedContractCreate) -> FixedContract:
        """
        Create a fixed contract.

        Raises:
            NotFoundError: loading point or driver missing
            BusinessRuleError: loading point or driver inactive
            DuplicateError: an active contract with the same route exists at the loading point
        """
        point = self._active_loading_point(data.loading_point_id)
        if data.driver_id:
            self._active_driver(data.driver_id)
        self._check_duplicate(point.id, data.route_name)

        contract = FixedContract(**column_values(data), created_by=self.actor)
        self.session.add(contract)
        self.session.flush()

        self.audit(
            "CREATE",
            "FixedContract",
            contract.id,
            metadata={"route_name": contract.route_name, "center_name": point.center_name},
        )
        self.logger.info("fixed_contract_created", contract_id=contract.id, loading_point_id=point.id)
        return contract

    def update(self, contract_id: str, data: FixedContractUpdate) -> FixedContract:
        contract = self.get(contract_id)
        values = column_values(data, exclude_unset=True)

        required = ("loading_point_id", "route_name", "operating_days", "center_contract_type", "center_amount")
        for field in (*required, "is_active"):
            if field in values and values[field] is None:
                values.pop(field)

        if values.get("loading_point_id") and values["loading_point_id"] != contract.loading_point_id:
            self._active_loading_point(values["loading_point_id"])
        if values.get("driver_id") and values["driver_id"] != contract.driver_id:
            self._active_driver(values["driver_id"])

        loading_point_id = values.get("loading_point_id", contract.loading_point_id)
        route_name = values.get("route_name", contract.route_name)
        will_be_active = values.get("is_active", contract.is_active)
        if will_be_active and (
            loading_point_id != contract.loading_point_id
            or route_name != contract.route_name
            or not contract.is_active
        ):
            self._check_duplicate(loading_point_id, route_name, exclude_id=contract.id)

        start_date = values.get("start_date", contract.start_date)
        end_date = values.get("end_date", contract.end_date)
        if start_date and end_date and end_date < start_date:
            raise BusinessRuleError("end_date must not be before start_date")

        changes = changed_fields(contract, values)
        if changes:
            self.session.flush()
            self.audit("UPDATE", "FixedContract", contract.id, changes=changes)
        return contract

    def delete(self, contract_id: str) -> FixedContract:
        """Deactivate a fixed contract."""
        contract = self.get(contract_id)
        contract.is_active = False
        self.session.flush()
        self.audit("DELETE", "FixedContract", contract.id, metadata={"soft_delete": True})
        return contract

    def toggle(self, contract_id: str) -> FixedContract:
        contract = self.get(contract_id)
        if not contract.is_active:
            self._check_duplicate(contract.loading_point_id, contract.route_name, exclude_id=contract.id)

        contract.is_active = not contract.is_active
        self.session.flush()
        self.audit(
            "UPDATE",
            "FixedContract",
            contract.id,
            changes={"is_active": {"from": not contract.is_active, "to": contract.is_active}},
        )
        return contract

    def stats(self, now: Optional[datetime] = None) -> FixedContractStats:
        """Counts by status and center contract type; ``recent`` covers the last 30 days."""
        now = now or datetime.now(timezone.utc)

        total = self.session.execute(select(func.count(FixedContract.id))).scalar_one()
        active = self.session.execute(
            select(func.count(FixedContract.id)).where(FixedContract.is_active.is_(True))
        ).scalar_one()
        by_type_rows = self.session.execute(
            select(FixedContract.center_contract_type, func.count(FixedContract.id))
            .where(FixedContract.is_active.is_(True))
            .group_by(FixedContract.center_contract_type)
        ).all()
        recent = self.session.execute(
            select(func.count(FixedContract.id)).where(FixedContract.created_at >= now - timedelta(days=30))
        ).scalar_one()

        by_contract_type = {contract_type.value: 0 for contract_type in ContractType}
        for contract_type, count in by_type_rows:
            by_contract_type[contract_type] = count

        return FixedContractStats(
            total=total,
            active=active,
            inactive=total - active,
            by_contract_type=by_contract_type,
            recent=recent,
        )

    def export(self, fmt: str = "xlsx", is_active: Optional[bool] = None) -> ExportFile:
        stmt = (
            select(FixedContract)
            .options(joinedload(FixedContract.driver), joinedload(FixedContract.loading_point))
            .join(FixedContract.loading_point)
            .order_by(LoadingPoint.center_name, FixedContract.route_name)
        )
        if is_active is not None:
            stmt = stmt.where(FixedContract.is_active == is_active)

        rows: list[list[Any]] = []
        for contract in self.session.execute(stmt).scalars():
            driver = contract.driver
            rows.append(
                [
                    contract.loading_point.center_name,
                    contract.route_name,
                    driver.name if driver else "",
                    driver.vehicle_number if driver else "",
                    format_phone_number(driver.phone) if driver else "",
                    format_operating_days(contract.operating_days),
                    _type_label(contract.center_contract_type),
                    contract.center_amount,
                    _type_label(contract.driver_contract_type),
                    contract.driver_amount if contract.driver_amount is not None else "",
                    contract.start_date.isoformat() if contract.start_date else "",
                    contract.end_date.isoformat() if contract.end_date else "",
                    contract.remarks or "",
                    "활성" if contract.is_active else "비활성",
                ]
            )

        self.logger.info("fixed_contracts_exported", count=len(rows), format=fmt)
        return build_export(EXPORT_HEADERS, rows, "fixed_contracts", fmt, sheet_title="고정계약")

    def template(self) -> ExportFile:
        example = [
            "예시센터",
            "새벽배송 A코스",
            "홍길동",
            "12가3456",
            "010-1234-5678",
            "월,수,금",
            "고정(일대)",
            "450000",
            "고정지입",
            "350000",
            "2025-01-01",
            "",
            "",
        ]
        return build_export(TEMPLATE_HEADERS, [example], "fixed_contract_template", "csv")

    def _resolve_driver(self, row: FixedContractImportRow) -> Optional[Driver]:
        """
        Find the driver named in an import row.

        A named driver must exist among active drivers; otherwise the phone or
        vehicle number is used as an optional match.

        Raises:
            BusinessRuleError: the row names a driver that is not registered
        """
        drivers = DriverService(self.session, self.config_manager, actor=self.actor)
        if row.driver_name:
            driver = drivers.find_active_by_name(row.driver_name)
            if driver is None:
                raise BusinessRuleError(f"Driver '{row.driver_name}' not found; register the driver first")
            return driver

        if row.phone or row.vehicle_number:
            driver = drivers.find_by_phone_or_vehicle(row.phone, row.vehicle_number)
            if driver is not None and driver.is_active:
                return driver
        return None

    def import_rows(self, filename: str, content: bytes, mode: Optional[str] = None) -> ImportResult:
        """
        Import fixed contracts from an uploaded CSV/Excel file.

        Rows are validated first; in commit mode each valid row is then
        resolved (center by name, driver by name or phone/vehicle number)
        and created. Row failures are reported and the import continues.

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
        valid: list[tuple[int, FixedContractImportRow]] = []

        for index, row in enumerate(sheet.rows):
            row_number = excel_row_number(index)
            try:
                contract_row = row_to_contract(row)
            except ValidationError as e:
                add_row_error(result, row_number, validation_message(e), row)
                continue
            except ValueError as e:
                add_row_error(result, row_number, str(e), row)
                continue
            valid.append((row_number, contract_row))

        result.valid = len(valid)
        result.invalid = result.total - result.valid

        if import_mode == ImportMode.SIMULATE:
            result.preview = [r.model_dump(mode="json") for _, r in valid]
            self.logger.info("fixed_contract_import_simulated", total=result.total, valid=result.valid)
            return result

        require_valid_rows(result)
        points = LoadingPointService(self.session, self.config_manager, actor=self.actor)
        for row_number, contract_row in valid:
            try:
                point = points.find_by_center_name(contract_row.center_name)
                if point is None:
                    raise BusinessRuleError(f"Center '{contract_row.center_name}' not found")
                driver = self._resolve_driver(contract_row)
                self.create(contract_row.to_create(point.id, driver.id if driver else None))
                result.imported += 1
            except ValidationError as e:
                add_row_error(result, row_number, validation_message(e), contract_row.model_dump(mode="json"))
            except LogiOpsError as e:
                add_row_error(result, row_number, e.message, contract_row.model_dump(mode="json"))
                self.logger.warning("import_row_rejected", row=row_number, error=e.message)

        self.audit(
            "IMPORT",
            "FixedContract",
            "import",
            metadata={
                "filename": filename,
                "total": result.total,
                "imported": result.imported,
                "errors": len(result.errors),
            },
        )
        self.logger.info("fixed_contract_import_committed", total=result.total, imported=result.imported)
        return result
