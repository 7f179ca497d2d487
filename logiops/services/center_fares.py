"""
Center fare (rate table) management.

Each active row is unique per center, vehicle type, region and fare type.
A row with no region is the general rate for the center and vehicle type.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from pydantic import ValidationError
from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import joinedload

from logiops.core.errors import BusinessRuleError, DuplicateError, LogiOpsError
from logiops.data.models.center_fare import (
    FARE_TYPE_LABELS,
    CenterFareCreate,
    CenterFareStats,
    CenterFareUpdate,
    CenterFareValidateRequest,
    CenterFareValidation,
    FareType,
)
from logiops.data.models.common import BulkResult, ImportMode, ImportResult, Pagination
from logiops.data.tables import CenterFare, LoadingPoint
from logiops.services.base import BaseService, changed_fields, column_values
from logiops.services.imports import (
    add_row_error,
    excel_row_number,
    read_import_sheet,
    require_valid_rows,
    resolve_mode,
    validation_message,
)
from logiops.services.loading_points import LoadingPointService
from logiops.tools.formatting import parse_amount
from logiops.tools.spreadsheets import ExportFile, build_export, map_row_headers

REQUIRED_HEADERS = ["센터명", "차량톤수", "요율종류"]
TEMPLATE_HEADERS = ["센터명", "차량톤수", "지역", "요율종류", "기본운임", "경유운임", "지역운임"]

SORT_COLUMNS = {
    "vehicle_type": CenterFare.vehicle_type,
    "region": CenterFare.region,
    "base_fare": CenterFare.base_fare,
    "created_at": CenterFare.created_at,
}

_FARE_TYPE_BY_LABEL = {label: fare_type for fare_type, label in FARE_TYPE_LABELS.items()}


def parse_fare_type(label: Optional[str]) -> Optional[FareType]:
    """Map "기본운임"/"경유운임" (or the enum name) to a FareType."""
    label = (label or "").strip()
    if not label:
        return FareType.BASIC
    if label in _FARE_TYPE_BY_LABEL:
        return _FARE_TYPE_BY_LABEL[label]
    try:
        return FareType(label.upper())
    except ValueError:
        return None


class CenterFareService(BaseService):
    """CRUD, import and export of center fare rows."""

    service_name = "center_fares"

    def list_center_fares(
        self,
        search: Optional[str] = None,
        loading_point_id: Optional[str] = None,
        vehicle_type: Optional[str] = None,
        fare_type: Optional[str] = None,
        is_active: Optional[bool] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
        page: int = 1,
        limit: Optional[int] = None,
    ) -> tuple[list[CenterFare], Pagination]:
        """
        List rate rows.

        Args:
            search: Substring of vehicle type, region or center name
            loading_point_id: Only this center's rows
            vehicle_type: Exact vehicle type
            fare_type: BASIC or STOP_FEE
            is_active: Filter by status (None = all)
            sort_by: vehicle_type, region, base_fare or created_at
            sort_order: asc or desc
            page: 1-based page
            limit: Page size
        """
        stmt = select(CenterFare).options(joinedload(CenterFare.loading_point)).join(CenterFare.loading_point)
        filters = []
        if search:
            term = f"%{search.strip()}%"
            filters.append(
                or_(
                    CenterFare.vehicle_type.ilike(term),
                    CenterFare.region.ilike(term),
                    LoadingPoint.center_name.ilike(term),
                )
            )
        if loading_point_id:
            filters.append(CenterFare.loading_point_id == loading_point_id)
        if vehicle_type:
            filters.append(CenterFare.vehicle_type == vehicle_type)
        if fare_type:
            filters.append(CenterFare.fare_type == fare_type)
        if is_active is not None:
            filters.append(CenterFare.is_active == is_active)
        if filters:
            stmt = stmt.where(and_(*filters))

        column = SORT_COLUMNS.get(sort_by, CenterFare.created_at)
        stmt = stmt.order_by(column.asc() if sort_order == "asc" else column.desc(), CenterFare.id)
        return self.paginate(stmt, page, limit)

    def get(self, fare_id: str) -> CenterFare:
        return self.get_or_404(CenterFare, fare_id, "Center fare")

    def find_duplicate(
        self,
        loading_point_id: str,
        vehicle_type: str,
        region: Optional[str],
        fare_type: str,
        exclude_id: Optional[str] = None,
    ) -> Optional[CenterFare]:
        """Active row with the same key, if any."""
        stmt = select(CenterFare).where(
            CenterFare.loading_point_id == loading_point_id,
            CenterFare.vehicle_type == vehicle_type,
            CenterFare.region.is_(None) if region is None else CenterFare.region == region,
            CenterFare.fare_type == fare_type,
            CenterFare.is_active.is_(True),
        )
        if exclude_id:
            stmt = stmt.where(CenterFare.id != exclude_id)
        return self.session.execute(stmt.limit(1)).scalars().first()

    def _check_duplicate(
        self,
        loading_point_id: str,
        vehicle_type: str,
        region: Optional[str],
        fare_type: str,
        exclude_id: Optional[str] = None,
    ) -> None:
        existing = self.find_duplicate(loading_point_id, vehicle_type, region, fare_type, exclude_id)
        if existing is not None:
            raise DuplicateError(
                f"An active {fare_type} rate for {vehicle_type} / {region or 'all regions'} already exists",
                details={"duplicate_id": existing.id},
            )

    def _active_center(self, loading_point_id: str) -> LoadingPoint:
        point = self.get_or_404(LoadingPoint, loading_point_id, "Loading point")
        if not point.is_active:
            raise BusinessRuleError(f"Loading point is inactive: {point.center_name}")
        return point

    def validate(self, request: CenterFareValidateRequest) -> CenterFareValidation:
        """Check a key for duplicates without writing anything."""
        existing = self.find_duplicate(
            request.loading_point_id,
            request.vehicle_type,
            request.region,
            request.fare_type.value,
            request.exclude_id,
        )
        if existing is None:
            return CenterFareValidation(is_valid=True)
        return CenterFareValidation(
            is_valid=False,
            duplicate_id=existing.id,
            message="An active rate with the same center, vehicle type, region and fare type exists",
        )

    def create(self, data: CenterFareCreate) -> CenterFare:
        point = self._active_center(data.loading_point_id)
        if data.is_active:
            self._check_duplicate(point.id, data.vehicle_type, data.region, data.fare_type.value)

        fare = CenterFare(**column_values(data))
        self.session.add(fare)
        self.session.flush()

        self.audit(
            "CREATE",
            "CenterFare",
            fare.id,
            metadata={"center_name": point.center_name, "vehicle_type": fare.vehicle_type, "region": fare.region},
        )
        return fare

    def update(self, fare_id: str, data: CenterFareUpdate) -> CenterFare:
        fare = self.get(fare_id)
        values = column_values(data, exclude_unset=True)

        # None means "leave unchanged" except for region
        values = {k: v for k, v in values.items() if v is not None or k == "region"}

        if values.get("loading_point_id") and values["loading_point_id"] != fare.loading_point_id:
            self._active_center(values["loading_point_id"])

        if values.get("is_active", fare.is_active):
            self._check_duplicate(
                values.get("loading_point_id", fare.loading_point_id),
                values.get("vehicle_type", fare.vehicle_type),
                values.get("region", fare.region),
                values.get("fare_type", fare.fare_type),
                exclude_id=fare.id,
            )

        changes = changed_fields(fare, values)
        if changes:
            self.session.flush()
            self.audit("UPDATE", "CenterFare", fare.id, changes=changes)
        return fare

    def delete(self, fare_id: str) -> CenterFare:
        """Deactivate a rate row."""
        fare = self.get(fare_id)
        fare.is_active = False
        self.session.flush()
        self.audit("DELETE", "CenterFare", fare.id, metadata={"soft_delete": True})
        return fare

    def toggle(self, fare_id: str) -> CenterFare:
        fare = self.get(fare_id)
        if not fare.is_active:
            self._check_duplicate(fare.loading_point_id, fare.vehicle_type, fare.region, fare.fare_type, fare.id)

        fare.is_active = not fare.is_active
        self.session.flush()
        self.audit(
            "UPDATE", "CenterFare", fare.id, changes={"is_active": {"from": not fare.is_active, "to": fare.is_active}}
        )
        return fare

    def bulk_delete(self, ids: list[str]) -> BulkResult:
        """Deactivate several rows; missing ids are reported, not raised."""
        result = BulkResult()
        fares = {f.id: f for f in self.session.execute(select(CenterFare).where(CenterFare.id.in_(ids))).scalars()}
        for fare_id in ids:
            fare = fares.get(fare_id)
            if fare is None:
                result.failed += 1
                result.errors.append({"id": fare_id, "error": "Center fare not found"})
                continue
            fare.is_active = False
            result.success += 1
        self.session.flush()

        self.audit(
            "BULK_DELETE",
            "CenterFare",
            "bulk",
            metadata={"ids": list(fares), "success": result.success, "failed": result.failed},
        )
        return result

    def stats(self, now: Optional[datetime] = None) -> CenterFareStats:
        now = now or datetime.now(timezone.utc)

        total = self.session.execute(select(func.count(CenterFare.id))).scalar_one()
        active = self.session.execute(
            select(func.count(CenterFare.id)).where(CenterFare.is_active.is_(True))
        ).scalar_one()
        by_type_rows = self.session.execute(
            select(CenterFare.vehicle_type, func.count(CenterFare.id))
            .where(CenterFare.is_active.is_(True))
            .group_by(CenterFare.vehicle_type)
            .order_by(CenterFare.vehicle_type)
        ).all()
        recent = self.session.execute(
            select(func.count(CenterFare.id)).where(CenterFare.created_at >= now - timedelta(days=30))
        ).scalar_one()

        return CenterFareStats(
            total=total,
            active=active,
            inactive=total - active,
            by_vehicle_type={vehicle_type: count for vehicle_type, count in by_type_rows},
            recent=recent,
        )

    def export(self, fmt: str = "xlsx", is_active: Optional[bool] = True) -> ExportFile:
        stmt = (
            select(CenterFare)
            .options(joinedload(CenterFare.loading_point))
            .join(CenterFare.loading_point)
            .order_by(LoadingPoint.center_name, CenterFare.vehicle_type, CenterFare.region)
        )
        if is_active is not None:
            stmt = stmt.where(CenterFare.is_active == is_active)

        rows: list[list[Any]] = []
        for fare in self.session.execute(stmt).scalars():
            label = FARE_TYPE_LABELS.get(FareType(fare.fare_type), fare.fare_type)
            rows.append(
                [
                    fare.loading_point.center_name,
                    fare.vehicle_type,
                    fare.region or "",
                    label,
                    fare.base_fare,
                    fare.extra_stop_fee,
                    fare.extra_region_fee,
                ]
            )

        self.logger.info("center_fares_exported", count=len(rows), format=fmt)
        return build_export(TEMPLATE_HEADERS, rows, "center_fares", fmt, sheet_title="센터요율")

    def _row_to_fare(self, row: dict[str, str], points: LoadingPointService) -> CenterFareCreate:
        """
        Map one import row to a CenterFareCreate.

        Raises:
            ValueError: missing center, unknown fare type or missing amounts
        """
        mapped = map_row_headers(row, TEMPLATE_HEADERS)

        center_name = mapped.get("센터명", "").strip()
        if not center_name:
            raise ValueError("Center name is required")
        point = points.find_by_center_name(center_name)
        if point is None:
            raise ValueError(f"Center '{center_name}' not found")

        fare_type = parse_fare_type(mapped.get("요율종류"))
        if fare_type is None:
            raise ValueError(f"Unknown fare type: {mapped.get('요율종류')}")

        base_fare = parse_amount(mapped.get("기본운임"))
        stop_fee = parse_amount(mapped.get("경유운임"))
        region_fee = parse_amount(mapped.get("지역운임"))

        if fare_type == FareType.BASIC:
            if base_fare is None:
                raise ValueError("A basic rate needs a base fare")
            region = mapped.get("지역")
        else:
            if stop_fee is None:
                raise ValueError("A stop fee rate needs a stop fee")
            region = None

        return CenterFareCreate(
            loading_point_id=point.id,
            vehicle_type=mapped.get("차량톤수", ""),
            region=region,
            fare_type=fare_type,
            base_fare=base_fare or 0,
            extra_stop_fee=stop_fee or 0,
            extra_region_fee=region_fee or 0,
        )

    def import_rows(self, filename: str, content: bytes, mode: Optional[str] = None) -> ImportResult:
        """
        Import rate rows from an uploaded CSV/Excel file.

        In commit mode a row matching an existing active rate updates its
        amounts instead of creating a duplicate.

        Args:
            filename: Uploaded file name
            content: File bytes
            mode: "simulate" or "commit"
        """
        import_mode = resolve_mode(mode)
        sheet = read_import_sheet(
            filename, content, REQUIRED_HEADERS, TEMPLATE_HEADERS, self.config_manager.get_import_limits()
        )
        points = LoadingPointService(self.session, self.config_manager, actor=self.actor)

        result = ImportResult(total=len(sheet.rows))
        valid: list[tuple[int, CenterFareCreate]] = []
        seen: set[tuple[Any, ...]] = set()

        for index, row in enumerate(sheet.rows):
            row_number = excel_row_number(index)
            try:
                fare = self._row_to_fare(row, points)
            except ValidationError as e:
                add_row_error(result, row_number, validation_message(e), row)
                continue
            except ValueError as e:
                add_row_error(result, row_number, str(e), row)
                continue

            key = (fare.loading_point_id, fare.vehicle_type, fare.region, fare.fare_type)
            if key in seen:
                add_row_error(result, row_number, "Duplicate rate in file", row)
                continue
            seen.add(key)
            valid.append((row_number, fare))

        result.valid = len(valid)
        result.invalid = result.total - result.valid

        if import_mode == ImportMode.SIMULATE:
            result.preview = [f.model_dump(mode="json") for _, f in valid[:20]]
            self.logger.info("center_fare_import_simulated", total=result.total, valid=result.valid)
            return result

        require_valid_rows(result)
        for row_number, fare in valid:
            try:
                existing = self.find_duplicate(
                    fare.loading_point_id, fare.vehicle_type, fare.region, fare.fare_type.value
                )
                if existing is None:
                    self.create(fare)
                    result.imported += 1
                else:
                    self.update(
                        existing.id,
                        CenterFareUpdate(
                            base_fare=fare.base_fare,
                            extra_stop_fee=fare.extra_stop_fee,
                            extra_region_fee=fare.extra_region_fee,
                        ),
                    )
                    result.updated += 1
            except LogiOpsError as e:
                add_row_error(result, row_number, e.message)
                self.logger.warning("import_row_rejected", row=row_number, error=e.message)

        self.audit(
            "IMPORT",
            "CenterFare",
            "import",
            metadata={
                "filename": filename,
                "total": result.total,
                "imported": result.imported,
                "updated": result.updated,
            },
        )
        self.logger.info(
            "center_fare_import_committed", total=result.total, imported=result.imported, updated=result.updated
        )
        return result
