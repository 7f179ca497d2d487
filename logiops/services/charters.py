"""
Charter requests.

A charter's center-side fare comes from the fare calculator (or a negotiated
amount); the driver's pay is entered by the dispatcher. Charters in a month
covered by a confirmed settlement for their driver cannot be changed.
Dispatch sheets can be imported in bulk (simulate, then commit).
"""

import datetime as dt
import re
from typing import Optional

from pydantic import ValidationError
from sqlalchemy import and_, or_, select
from sqlalchemy.orm import joinedload, selectinload

from logiops.core.errors import BusinessRuleError, LogiOpsError
from logiops.data.models.charter import (
    CharterCreate,
    CharterImportRow,
    CharterUpdate,
    DestinationIn,
    FareQuote,
    FareQuoteInput,
    quote_summary,
)
from logiops.data.models.common import ImportMode, ImportResult, Pagination
from logiops.data.tables import CharterDestination, CharterRequest, Driver, LoadingPoint
from logiops.services.base import BaseService, changed_fields
from logiops.services.drivers import DriverService
from logiops.services.fare_calculator import FareCalculator, apply_quote
from logiops.services.imports import (
    add_row_error,
    excel_row_number,
    read_import_sheet,
    require_valid_rows,
    resolve_mode,
    validation_message,
)
from logiops.services.loading_points import LoadingPointService
from logiops.services.settlements import ensure_month_unlocked
from logiops.tools.formatting import parse_amount, parse_date
from logiops.tools.spreadsheets import ExportFile, build_export, map_row_headers
from logiops.tools.vehicle_types import normalize_vehicle_type

REQUIRED_HEADERS = ["센터명", "운행일자", "차량톤수", "지역", "기사명", "기사운임"]
TEMPLATE_HEADERS = ["센터명", "운행일자", "차량톤수", "지역", "기사명", "연락처", "기사운임", "추가운임", "협의운임", "비고"]

_REGION_SEPARATORS = re.compile(r"\s*(?:,|>|→|/)\s*")


def parse_regions(text: Optional[str]) -> list[str]:
    """Split a destination list such as "화성시, 오산시" or "화성시 → 오산시" in visit order."""
    if not text:
        return []
    return [region for region in _REGION_SEPARATORS.split(str(text).strip()) if region]


def row_to_charter(row: dict[str, str]) -> CharterImportRow:
    """
    Map one import row (keyed by template header) to a validated import row.

    Raises:
        ValueError: a date, vehicle type, region list or amount is missing or unreadable
    """
    mapped = map_row_headers(row, TEMPLATE_HEADERS)

    trip_date = parse_date(mapped.get("운행일자"))
    if trip_date is None:
        raise ValueError(f"Invalid or missing date: {mapped.get('운행일자', '')}")

    raw_type = mapped.get("차량톤수", "")
    vehicle_type = normalize_vehicle_type(raw_type)
    if vehicle_type is None:
        raise ValueError(f"Unknown vehicle type: {raw_type}")

    regions = parse_regions(mapped.get("지역"))
    if not regions:
        raise ValueError("At least one destination region is required")

    driver_fare = parse_amount(mapped.get("기사운임"))
    if driver_fare is None:
        raise ValueError("Driver fare is required")

    return CharterImportRow(
        center_name=mapped.get("센터명", "").strip(),
        date=trip_date,
        vehicle_type=vehicle_type,
        regions=regions,
        driver_name=mapped.get("기사명", "").strip(),
        phone=mapped.get("연락처"),
        driver_fare=driver_fare,
        extra_fare=parse_amount(mapped.get("추가운임")) or 0,
        negotiated_fare=parse_amount(mapped.get("협의운임")),
        notes=mapped.get("비고"),
    )


class CharterService(BaseService):
    """Quote, create and maintain charter requests."""

    service_name = "charters"

    @property
    def calculator(self) -> FareCalculator:
        return FareCalculator(self.session, self.config_manager, actor=self.actor)

    def quote(self, quote_input: FareQuoteInput) -> FareQuote:
        return self.calculator.calculate(quote_input)

    def list_charters(
        self,
        search: Optional[str] = None,
        driver_id: Optional[str] = None,
        loading_point_id: Optional[str] = None,
        date_from: Optional[dt.date] = None,
        date_to: Optional[dt.date] = None,
        is_negotiated: Optional[bool] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> tuple[list[CharterRequest], Pagination]:
        """
        List charters, newest date first.

        Args:
            search: Substring of driver name, center name, vehicle type or a destination region
            driver_id: Only this driver's charters
            loading_point_id: Only this center's charters
            date_from: Inclusive start date
            date_to: Inclusive end date
            is_negotiated: Filter negotiated/calculated fares
            page: 1-based page
            limit: Page size
        """
        stmt = (
            select(CharterRequest)
            .options(
                joinedload(CharterRequest.driver),
                joinedload(CharterRequest.loading_point),
                selectinload(CharterRequest.destinations),
            )
            .join(CharterRequest.driver)
            .join(CharterRequest.loading_point)
        )
        filters = []
        if search:
            term = f"%{search.strip()}%"
            filters.append(
                or_(
                    Driver.name.ilike(term),
                    LoadingPoint.center_name.ilike(term),
                    CharterRequest.vehicle_type.ilike(term),
                    CharterRequest.destinations.any(CharterDestination.region.ilike(term)),
                )
            )
        if driver_id:
            filters.append(CharterRequest.driver_id == driver_id)
        if loading_point_id:
            filters.append(CharterRequest.loading_point_id == loading_point_id)
        if date_from:
            filters.append(CharterRequest.date >= date_from)
        if date_to:
            filters.append(CharterRequest.date <= date_to)
        if is_negotiated is not None:
            filters.append(CharterRequest.is_negotiated == is_negotiated)
        if filters:
            stmt = stmt.where(and_(*filters))

        stmt = stmt.order_by(CharterRequest.date.desc(), CharterRequest.created_at.desc(), CharterRequest.id)
        return self.paginate(stmt, page, limit)

    def get(self, charter_id: str) -> CharterRequest:
        return self.get_or_404(CharterRequest, charter_id, "Charter")

    def _require_references(self, loading_point_id: str, driver_id: str) -> None:
        point = self.get_or_404(LoadingPoint, loading_point_id, "Loading point")
        if not point.is_active:
            raise BusinessRuleError(f"Loading point is inactive: {point.center_name}")
        driver = self.get_or_404(Driver, driver_id, "Driver")
        if not driver.is_active:
            raise BusinessRuleError(f"Driver is inactive: {driver.name}")

    @staticmethod
    def _destinations(destinations: list[DestinationIn]) -> list[CharterDestination]:
        return [CharterDestination(region=d.region.strip(), order=d.order) for d in destinations]

    def create(self, data: CharterCreate) -> CharterRequest:
        """
        Create a charter priced by the fare calculator.

        Raises:
            NotFoundError: center or driver missing
            BusinessRuleError: center or driver inactive
            SettlementStateError: the driver's month is already settled
            RateNotFoundError: no rate and the fallback is disabled
        """
        self._require_references(data.loading_point_id, data.driver_id)
        ensure_month_unlocked(self.session, data.driver_id, data.date)

        quote = self.quote(
            FareQuoteInput(
                loading_point_id=data.loading_point_id,
                vehicle_type=data.vehicle_type,
                regions=[d.region for d in data.destinations],
                stops=len(data.destinations),
                manual_adjustment=data.extra_fare,
                is_negotiated=data.is_negotiated,
                negotiated_fare=data.negotiated_fare,
            )
        )

        charter = CharterRequest(
            loading_point_id=data.loading_point_id,
            vehicle_type=quote.vehicle_type,
            date=data.date,
            destinations=self._destinations(data.destinations),
            is_negotiated=data.is_negotiated,
            negotiated_fare=data.negotiated_fare,
            extra_fare=data.extra_fare,
            driver_id=data.driver_id,
            driver_fare=data.driver_fare,
            notes=data.notes,
            created_by=self.actor,
        )
        apply_quote(charter, quote)
        self.session.add(charter)
        self.session.flush()

        self.audit("CREATE", "CharterRequest", charter.id, metadata=quote_summary(quote))
        self.logger.info("charter_created", charter_id=charter.id, total_fare=charter.total_fare)
        return charter

    def update(self, charter_id: str, data: CharterUpdate) -> CharterRequest:
        """
        Update a charter; routing or pricing changes trigger a recalculation.

        Both the current and the new month must be unlocked.
        """
        charter = self.get(charter_id)
        ensure_month_unlocked(self.session, charter.driver_id, charter.date)

        values = data.model_dump(exclude_unset=True, exclude={"destinations"})
        values = {k: v for k, v in values.items() if v is not None or k in ("negotiated_fare", "notes")}

        driver_id = values.get("driver_id", charter.driver_id)
        loading_point_id = values.get("loading_point_id", charter.loading_point_id)
        if driver_id != charter.driver_id or loading_point_id != charter.loading_point_id:
            self._require_references(loading_point_id, driver_id)
        if driver_id != charter.driver_id or values.get("date", charter.date) != charter.date:
            ensure_month_unlocked(self.session, driver_id, values.get("date", charter.date))

        if values.get("is_negotiated", charter.is_negotiated) and values.get(
            "negotiated_fare", charter.negotiated_fare
        ) is None:
            raise BusinessRuleError("negotiated_fare is required when is_negotiated is set")

        changes = changed_fields(charter, values)
        if data.destinations is not None:
            previous = [d.region for d in charter.destinations]
            charter.destinations = self._destinations(data.destinations)
            current = [d.region for d in charter.destinations]
            if previous != current:
                changes["destinations"] = {"from": previous, "to": current}

        if data.changes_routing:
            self.session.flush()
            quote = self.calculator.quote_for_charter(charter)
            before = charter.total_fare
            apply_quote(charter, quote)
            if before != charter.total_fare:
                changes["total_fare"] = {"from": before, "to": charter.total_fare}

        if changes:
            self.session.flush()
            self.audit("UPDATE", "CharterRequest", charter.id, changes=changes)
        return charter

    def delete(self, charter_id: str) -> None:
        charter = self.get(charter_id)
        ensure_month_unlocked(self.session, charter.driver_id, charter.date)
        self.audit(
            "DELETE",
            "CharterRequest",
            charter.id,
            metadata={
                "date": charter.date.isoformat(),
                "driver_id": charter.driver_id,
                "total_fare": charter.total_fare,
            },
        )
        self.session.delete(charter)
        self.session.flush()
        self.logger.info("charter_deleted", charter_id=charter_id)

    def template(self) -> ExportFile:
        example = ["쿠팡 동탄", "2025-03-03", "5톤", "화성시, 오산시", "홍길동", "010-1234-5678", "90000", "", "", ""]
        return build_export(TEMPLATE_HEADERS, [example], "charter_template", "csv")

    def _resolve_driver(self, row: CharterImportRow) -> Driver:
        """
        Find the active driver named in an import row, by name and then by phone.

        Raises:
            BusinessRuleError: no active driver matches
        """
        drivers = DriverService(self.session, self.config_manager, actor=self.actor)
        driver = drivers.find_active_by_name(row.driver_name)
        if driver is None and row.phone:
            driver = drivers.find_by_phone_or_vehicle(row.phone, None)
        if driver is None or not driver.is_active:
            raise BusinessRuleError(f"Driver '{row.driver_name}' not found; register the driver first")
        return driver

    def import_rows(self, filename: str, content: bytes, mode: Optional[str] = None) -> ImportResult:
        """
        Import charters from an uploaded dispatch sheet.

        Rows are validated first; in commit mode each valid row is resolved
        (center by name, driver by name or phone) and created through
        ``create``, so fares are priced and locked months are refused per row.

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
        valid: list[tuple[int, CharterImportRow]] = []

        for index, row in enumerate(sheet.rows):
            row_number = excel_row_number(index)
            try:
                valid.append((row_number, row_to_charter(row)))
            except ValidationError as e:
                add_row_error(result, row_number, validation_message(e), row)
            except ValueError as e:
                add_row_error(result, row_number, str(e), row)

        result.valid = len(valid)
        result.invalid = result.total - result.valid

        if import_mode == ImportMode.SIMULATE:
            result.preview = [r.model_dump(mode="json") for _, r in valid[:20]]
            self.logger.info("charter_import_simulated", total=result.total, valid=result.valid)
            return result

        require_valid_rows(result)
        points = LoadingPointService(self.session, self.config_manager, actor=self.actor)
        for row_number, charter_row in valid:
            try:
                point = points.find_by_center_name(charter_row.center_name)
                if point is None:
                    raise BusinessRuleError(f"Center '{charter_row.center_name}' not found")
                driver = self._resolve_driver(charter_row)
                self.create(charter_row.to_create(point.id, driver.id))
                result.imported += 1
            except ValidationError as e:
                add_row_error(result, row_number, validation_message(e), charter_row.model_dump(mode="json"))
            except LogiOpsError as e:
                add_row_error(result, row_number, e.message, charter_row.model_dump(mode="json"))
                self.logger.warning("import_row_rejected", row=row_number, error=e.message)

        self.audit(
            "IMPORT",
            "CharterRequest",
            "import",
            metadata={
                "filename": filename,
                "total": result.total,
                "imported": result.imported,
                "errors": len(result.errors),
            },
        )
        self.logger.info("charter_import_committed", total=result.total, imported=result.imported)
        return result
