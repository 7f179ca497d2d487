"""
Loading point (center) management.

A loading point is identified by its center name plus loading point name;
the pair is unique. Deleting deactivates the record. Centers can be loaded in
bulk from the 9-column CSV/Excel layout (simulate, then commit).
"""

from typing import Any, Optional

from pydantic import ValidationError
from sqlalchemy import and_, func, or_, select

from logiops.core.errors import BusinessRuleError, DuplicateError, LogiOpsError
from logiops.data.models.common import ImportMode, ImportResult, Pagination
from logiops.data.models.loading_point import LoadingPointCreate, LoadingPointUpdate
from logiops.data.tables import FixedContract, LoadingPoint
from logiops.services.base import BaseService, changed_fields, column_values
from logiops.services.imports import (
    add_row_error,
    excel_row_number,
    read_import_sheet,
    require_valid_rows,
    resolve_mode,
    validation_message,
)
from logiops.tools.formatting import format_phone_number
from logiops.tools.spreadsheets import ExportFile, build_export, map_row_headers

REQUIRED_HEADERS = ["센터명", "상차지명"]
TEMPLATE_HEADERS = ["센터명", "상차지명", "지번주소", "도로명주소", "담당자1", "연락처1", "담당자2", "연락처2", "비고"]
EXPORT_HEADERS = [*TEMPLATE_HEADERS, "상태"]

# template header -> LoadingPointCreate field
_HEADER_FIELDS = {
    "센터명": "center_name",
    "상차지명": "loading_point_name",
    "지번주소": "lot_address",
    "도로명주소": "road_address",
    "담당자1": "manager1",
    "연락처1": "phone1",
    "담당자2": "manager2",
    "연락처2": "phone2",
    "비고": "remarks",
}


def row_to_loading_point(row: dict[str, str]) -> LoadingPointCreate:
    """Map one import row (keyed by template header) to a validated LoadingPointCreate."""
    mapped = map_row_headers(row, TEMPLATE_HEADERS)
    payload = {field: mapped.get(header, "") for header, field in _HEADER_FIELDS.items()}
    return LoadingPointCreate(**payload)


class LoadingPointService(BaseService):
    """CRUD, suggestions and import for loading points."""

    service_name = "loading_points"

    def list_loading_points(
        self,
        search: Optional[str] = None,
        is_active: Optional[bool] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> tuple[list[LoadingPoint], Pagination]:
        """
        List loading points.

        Args:
            search: Substring of center/loading point name or either address
            is_active: Filter by status (None = all)
            page: 1-based page
            limit: Page size (clamped to the configured maximum)
        """
        stmt = select(LoadingPoint)
        filters = []
        if search:
            term = f"%{search.strip()}%"
            filters.append(
                or_(
                    LoadingPoint.center_name.ilike(term),
                    LoadingPoint.loading_point_name.ilike(term),
                    LoadingPoint.lot_address.ilike(term),
                    LoadingPoint.road_address.ilike(term),
                )
            )
        if is_active is not None:
            filters.append(LoadingPoint.is_active == is_active)
        if filters:
            stmt = stmt.where(and_(*filters))

        stmt = stmt.order_by(LoadingPoint.center_name, LoadingPoint.loading_point_name)
        return self.paginate(stmt, page, limit)

    def get(self, loading_point_id: str) -> LoadingPoint:
        return self.get_or_404(LoadingPoint, loading_point_id, "Loading point")

    def _check_duplicate(self, center_name: str, loading_point_name: str, exclude_id: Optional[str] = None) -> None:
        stmt = select(LoadingPoint.id).where(
            LoadingPoint.center_name == center_name,
            LoadingPoint.loading_point_name == loading_point_name,
        )
        if exclude_id:
            stmt = stmt.where(LoadingPoint.id != exclude_id)
        if self.session.execute(stmt).first() is not None:
            raise DuplicateError(f"Loading point already exists: {center_name} / {loading_point_name}")

    def create(self, data: LoadingPointCreate) -> LoadingPoint:
        self._check_duplicate(data.center_name, data.loading_point_name)

        point = LoadingPoint(**column_values(data))
        self.session.add(point)
        self.session.flush()

        self.audit("CREATE", "LoadingPoint", point.id, metadata={"center_name": point.center_name})
        self.logger.info("loading_point_created", loading_point_id=point.id, center_name=point.center_name)
        return point

    def update(self, loading_point_id: str, data: LoadingPointUpdate) -> LoadingPoint:
        point = self.get(loading_point_id)
        values = column_values(data, exclude_unset=True)

        center_name = values.get("center_name", point.center_name)
        loading_point_name = values.get("loading_point_name", point.loading_point_name)
        if center_name != point.center_name or loading_point_name != point.loading_point_name:
            self._check_duplicate(center_name, loading_point_name, exclude_id=point.id)

        changes = changed_fields(point, values)
        if changes:
            self.session.flush()
            self.audit("UPDATE", "LoadingPoint", point.id, changes=changes)
        return point

    def _active_contract_count(self, loading_point_id: str) -> int:
        stmt = select(func.count(FixedContract.id)).where(
            FixedContract.loading_point_id == loading_point_id,
            FixedContract.is_active.is_(True),
        )
        return self.session.execute(stmt).scalar_one()

    def delete(self, loading_point_id: str) -> LoadingPoint:
        """Deactivate a loading point; refused while active fixed contracts use it."""
        point = self.get(loading_point_id)

        active_contracts = self._active_contract_count(point.id)
        if active_contracts:
            raise BusinessRuleError(
                f"Loading point has {active_contracts} active fixed contract(s); deactivate them first",
                details={"active_contracts": active_contracts},
            )

        point.is_active = False
        self.session.flush()
        self.audit("DELETE", "LoadingPoint", point.id, metadata={"soft_delete": True})
        return point

    def toggle(self, loading_point_id: str) -> LoadingPoint:
        point = self.get(loading_point_id)
        if point.is_active:
            # deactivating goes through the same guard as delete
            return self.delete(loading_point_id)

        point.is_active = True
        self.session.flush()
        self.audit("UPDATE", "LoadingPoint", point.id, changes={"is_active": {"from": False, "to": True}})
        return point

    def suggestions(self, query: str, limit: int = 10) -> list[LoadingPoint]:
        """Active loading points whose names start with or contain ``query``."""
        query = (query or "").strip()
        if not query:
            return []
        term = f"%{query}%"
        stmt = (
            select(LoadingPoint)
            .where(
                LoadingPoint.is_active.is_(True),
                or_(LoadingPoint.center_name.ilike(term), LoadingPoint.loading_point_name.ilike(term)),
            )
            .order_by(LoadingPoint.center_name, LoadingPoint.loading_point_name)
            .limit(max(1, min(limit, 50)))
        )
        return list(self.session.execute(stmt).scalars())

    def list_centers(self) -> list[str]:
        """Distinct active center names, sorted."""
        stmt = (
            select(LoadingPoint.center_name)
            .where(LoadingPoint.is_active.is_(True))
            .distinct()
            .order_by(LoadingPoint.center_name)
        )
        return list(self.session.execute(stmt).scalars())

    def find_by_center_name(self, center_name: str) -> Optional[LoadingPoint]:
        """First active loading point of a center (used by imports)."""
        stmt = (
            select(LoadingPoint)
            .where(LoadingPoint.center_name == center_name.strip(), LoadingPoint.is_active.is_(True))
            .order_by(LoadingPoint.created_at)
            .limit(1)
        )
        return self.session.execute(stmt).scalars().first()

    def export(self, fmt: str = "xlsx", is_active: Optional[bool] = None) -> ExportFile:
        stmt = select(LoadingPoint).order_by(LoadingPoint.center_name, LoadingPoint.loading_point_name)
        if is_active is not None:
            stmt = stmt.where(LoadingPoint.is_active == is_active)

        rows: list[list[Any]] = []
        for point in self.session.execute(stmt).scalars():
            rows.append(
                [
                    point.center_name,
                    point.loading_point_name,
                    point.lot_address or "",
                    point.road_address or "",
                    point.manager1 or "",
                    format_phone_number(point.phone1),
                    point.manager2 or "",
                    format_phone_number(point.phone2),
                    point.remarks or "",
                    "활성" if point.is_active else "비활성",
                ]
            )

        self.logger.info("loading_points_exported", count=len(rows), format=fmt)
        return build_export(EXPORT_HEADERS, rows, "loading_points", fmt, sheet_title="상차지")

    def template(self) -> ExportFile:
        example = [
            "서울물류센터",
            "A동 1층",
            "서울시 강남구 역삼동 123-45",
            "서울시 강남구 테헤란로 123",
            "김담당",
            "02-1234-5678",
            "박부담당",
            "010-9876-5432",
            "",
        ]
        return build_export(TEMPLATE_HEADERS, [example], "loading_point_template", "csv")

    def import_rows(self, filename: str, content: bytes, mode: Optional[str] = None) -> ImportResult:
        """
        Import loading points from an uploaded CSV/Excel file.

        A center + loading point name pair repeated within the file or already
        registered is reported as a row error.

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
        valid: list[tuple[int, LoadingPointCreate]] = []
        seen: set[tuple[str, str]] = set()

        for index, row in enumerate(sheet.rows):
            row_number = excel_row_number(index)
            try:
                point = row_to_loading_point(row)
            except ValidationError as e:
                add_row_error(result, row_number, validation_message(e), row)
                continue

            key = (point.center_name, point.loading_point_name)
            if key in seen:
                add_row_error(result, row_number, f"Duplicate loading point in file: {key[0]} / {key[1]}", row)
                continue
            seen.add(key)

            try:
                self._check_duplicate(point.center_name, point.loading_point_name)
            except DuplicateError as e:
                add_row_error(result, row_number, e.message, row)
                continue

            valid.append((row_number, point))

        result.valid = len(valid)
        result.invalid = result.total - result.valid

        if import_mode == ImportMode.SIMULATE:
            result.preview = [p.model_dump() for _, p in valid[:20]]
            self.logger.info("loading_point_import_simulated", total=result.total, valid=result.valid)
            return result

        require_valid_rows(result)
        for row_number, point in valid:
            try:
                self.create(point)
                result.imported += 1
            except LogiOpsError as e:
                add_row_error(result, row_number, e.message)
                self.logger.warning("import_row_rejected", row=row_number, error=e.message)

        self.audit(
            "IMPORT",
            "LoadingPoint",
            "import",
            metadata={"filename": filename, "total": result.total, "imported": result.imported},
        )
        self.logger.info("loading_point_import_committed", total=result.total, imported=result.imported)
        return result
