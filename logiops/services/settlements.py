"""
Settlements - Monthly driver pay from charter history.

This service:
- Calculates a driver's month from their charters (one trip line per charter)
- Keeps manual additions and deductions on draft settlements
- Runs the DRAFT -> CONFIRMED -> PAID lifecycle, with an audited emergency reopen
- Locks charters of a confirmed month against edits
- Exports a month for payroll
"""

import calendar
import datetime as dt
from datetime import datetime, timezone
from time import time
from typing import Any, Optional

from sqlalchemy import and_, select
from sqlalchemy.orm import Session, joinedload, selectinload

from logiops.core.errors import BusinessRuleError, InvalidInputError, LogiOpsError, SettlementStateError
from logiops.data.models.common import BulkResult, Pagination
from logiops.data.models.settlement import (
    AdjustmentCreate,
    AdjustmentType,
    SettlementItemType,
    SettlementLine,
    SettlementPreview,
    SettlementStatus,
    SettlementTotals,
    validate_year_month,
)
from logiops.data.tables import CharterRequest, Driver, Settlement, SettlementItem
from logiops.services.base import BaseService
from logiops.tools.formatting import format_account_number, format_phone_number
from logiops.tools.spreadsheets import ExportFile, build_export

LOCKED_STATUSES = (SettlementStatus.CONFIRMED.value, SettlementStatus.PAID.value)

STATUS_LABELS = {
    SettlementStatus.DRAFT.value: "작성중",
    SettlementStatus.CONFIRMED.value: "확정",
    SettlementStatus.PAID.value: "지급완료",
}

EXPORT_HEADERS = [
    "기사명",
    "연락처",
    "차량번호",
    "정산월",
    "상태",
    "운행건수",
    "기본운임",
    "추가금액",
    "공제금액",
    "최종금액",
    "은행",
    "계좌번호",
    "확정일시",
]


def check_year_month(year_month: str) -> str:
    try:
        return validate_year_month(year_month)
    except ValueError as e:
        raise InvalidInputError(str(e), details={"year_month": year_month}) from e


def month_range(year_month: str) -> tuple[dt.date, dt.date]:
    """First and last day of a YYYY-MM month."""
    check_year_month(year_month)
    year, month = (int(part) for part in year_month.split("-"))
    return dt.date(year, month, 1), dt.date(year, month, calendar.monthrange(year, month)[1])


def ensure_month_unlocked(session: Session, driver_id: str, day: dt.date) -> None:
    """
    Refuse changes to a driver's charter in a confirmed or paid month.

    Raises:
        SettlementStateError: the month is locked (SETTLEMENT_LOCKED)
    """
    year_month = day.strftime("%Y-%m")
    stmt = select(Settlement.id, Settlement.status).where(
        Settlement.driver_id == driver_id,
        Settlement.year_month == year_month,
        Settlement.status.in_(LOCKED_STATUSES),
    )
    locked = session.execute(stmt).first()
    if locked is not None:
        raise SettlementStateError(
            f"Settlement for {year_month} is {locked.status}; reopen it before changing charters",
            code="SETTLEMENT_LOCKED",
            details={"settlement_id": locked.id, "year_month": year_month},
        )


def calculate_totals(lines: list[SettlementLine]) -> SettlementTotals:
    """final = base + additions - deductions (deduction lines carry negative amounts)."""
    totals = SettlementTotals()
    for line in lines:
        if line.type == SettlementItemType.TRIP:
            totals.total_charters += 1
            totals.total_base_fare += line.amount
        elif line.type == SettlementItemType.ADDITION:
            totals.total_additions += line.amount
        else:
            totals.total_deductions += abs(line.amount)
    totals.final_amount = totals.total_base_fare + totals.total_additions - totals.total_deductions
    return totals


def charter_lines(charter: CharterRequest) -> list[SettlementLine]:
    """Settlement lines produced by one charter."""
    route = " → ".join(d.region for d in charter.destinations)
    center = charter.loading_point.center_name if charter.loading_point else "센터"
    lines = [
        SettlementLine(
            charter_id=charter.id,
            type=SettlementItemType.TRIP,
            description=f"용차: {center} / {charter.vehicle_type} / {route}",
            amount=charter.driver_fare,
            date=charter.date,
        )
    ]
    if charter.is_negotiated:
        # marker only; the negotiated amount is already in driver_fare
        lines.append(
            SettlementLine(
                charter_id=charter.id,
                type=SettlementItemType.ADDITION,
                description=f"협의금액 적용: {charter.notes or '사유 미기재'}",
                amount=0,
                date=charter.date,
            )
        )
    if charter.extra_fare > 0:
        lines.append(
            SettlementLine(
                charter_id=charter.id,
                type=SettlementItemType.ADDITION,
                description=f"추가요금: {charter.notes or '대기/회송/수작업 등'}",
                amount=charter.extra_fare,
                date=charter.date,
            )
        )
    return lines


def _line_from_item(item: SettlementItem) -> SettlementLine:
    return SettlementLine(
        charter_id=item.charter_id,
        type=SettlementItemType(item.type),
        description=item.description,
        amount=item.amount,
        date=item.date,
    )


class SettlementService(BaseService):
    """
    Monthly settlement workflow.

    A settlement is computed from the driver's charters, saved as a DRAFT,
    then confirmed (locking the month) and finally marked paid.
    """

    service_name = "settlements"

    def _check_month(self, year_month: str, today: Optional[dt.date] = None) -> None:
        check_year_month(year_month)
        if not self.config_manager.get_settlement_policy().block_future_months:
            return
        today = today or dt.date.today()
        first_day, _ = month_range(year_month)
        if first_day > today.replace(day=1):
            raise BusinessRuleError(f"Cannot settle a future month: {year_month}", code="INVALID_MONTH")

    def _find(self, driver_id: str, year_month: str) -> Optional[Settlement]:
        stmt = (
            select(Settlement)
            .options(selectinload(Settlement.items))
            .where(Settlement.driver_id == driver_id, Settlement.year_month == year_month)
        )
        return self.session.execute(stmt).scalars().first()

    def _month_charters(self, driver_id: str, year_month: str) -> list[CharterRequest]:
        first_day, last_day = month_range(year_month)
        stmt = (
            select(CharterRequest)
            .options(selectinload(CharterRequest.destinations), joinedload(CharterRequest.loading_point))
            .where(
                CharterRequest.driver_id == driver_id,
                CharterRequest.date >= first_day,
                CharterRequest.date <= last_day,
            )
            .order_by(CharterRequest.date, CharterRequest.created_at)
        )
        return list(self.session.execute(stmt).scalars())

    def calculate_lines(self, driver_id: str, year_month: str) -> list[SettlementLine]:
        """Charter-derived lines of a driver's month, ordered by date."""
        lines: list[SettlementLine] = []
        for charter in self._month_charters(driver_id, year_month):
            lines.extend(charter_lines(charter))
        return lines

    def preview(self, driver_id: str, year_month: str, today: Optional[dt.date] = None) -> SettlementPreview:
        """
        Compute a settlement without writing anything.

        Manual adjustments already recorded on an existing settlement are included.

        Args:
            driver_id: Driver to settle
            year_month: YYYY-MM
            today: Reference date for the future-month check

        Returns:
            SettlementPreview with lines, totals and the existing status (if any)
        """
        start_time = time()
        self._check_month(year_month, today)
        driver = self.get_or_404(Driver, driver_id, "Driver")

        self.logger.info("calculating_settlement", driver_id=driver.id, year_month=year_month)

        existing = self._find(driver.id, year_month)
        lines = self.calculate_lines(driver.id, year_month)
        if existing is not None:
            lines.extend(_line_from_item(item) for item in existing.items if item.is_manual)
        lines.sort(key=lambda line: line.date)
        totals = calculate_totals(lines)

        self.logger.info(
            "settlement_previewed",
            driver_id=driver.id,
            year_month=year_month,
            charters=totals.total_charters,
            final_amount=totals.final_amount,
            execution_time_seconds=round(time() - start_time, 4),
        )
        return SettlementPreview(
            driver_id=driver.id,
            driver_name=driver.name,
            year_month=year_month,
            items=lines,
            totals=totals,
            existing_status=SettlementStatus(existing.status) if existing else None,
        )

    def _apply(self, settlement: Settlement, lines: list[SettlementLine]) -> None:
        """Replace computed items, keep manual ones, and recompute totals."""
        manual = [item for item in settlement.items if item.is_manual]
        computed = [
            SettlementItem(
                charter_id=line.charter_id,
                type=line.type.value,
                description=line.description,
                amount=line.amount,
                date=line.date,
                is_manual=False,
            )
            for line in lines
        ]
        settlement.items = sorted(computed + manual, key=lambda item: item.date)
        self._recompute_totals(settlement)

    def _recompute_totals(self, settlement: Settlement) -> None:
        totals = calculate_totals([_line_from_item(item) for item in settlement.items])
        settlement.total_charters = totals.total_charters
        settlement.total_base_fare = totals.total_base_fare
        settlement.total_additions = totals.total_additions
        settlement.total_deductions = totals.total_deductions
        settlement.final_amount = totals.final_amount
        settlement.updated_by = self.actor

    def create_or_update_draft(self, driver_id: str, year_month: str, today: Optional[dt.date] = None) -> Settlement:
        """
        Save (or refresh) the driver's month as a DRAFT.

        Raises:
            SettlementStateError: the month is already confirmed or paid (ALREADY_CONFIRMED)
        """
        self._check_month(year_month, today)
        driver = self.get_or_404(Driver, driver_id, "Driver")

        settlement = self._find(driver.id, year_month)
        if settlement is not None and settlement.status in LOCKED_STATUSES:
            raise SettlementStateError(
                f"Settlement for {year_month} is already {settlement.status}",
                code="ALREADY_CONFIRMED",
                details={"settlement_id": settlement.id},
            )

        created = settlement is None
        if created:
            settlement = Settlement(
                driver_id=driver.id,
                year_month=year_month,
                status=SettlementStatus.DRAFT.value,
                created_by=self.actor,
                items=[],
            )
            self.session.add(settlement)

        self._apply(settlement, self.calculate_lines(driver.id, year_month))
        self.session.flush()

        self.audit(
            "CREATE" if created else "UPDATE",
            "Settlement",
            settlement.id,
            metadata={
                "year_month": year_month,
                "driver_id": driver.id,
                "status": settlement.status,
                "final_amount": settlement.final_amount,
            },
        )
        return settlement

    def bulk_create(self, driver_ids: list[str], year_month: str, today: Optional[dt.date] = None) -> BulkResult:
        """Create or refresh drafts for several drivers; failures are collected per driver."""
        self._check_month(year_month, today)
        result = BulkResult()
        for driver_id in driver_ids:
            try:
                self.create_or_update_draft(driver_id, year_month, today)
                result.success += 1
            except LogiOpsError as e:
                result.failed += 1
                result.errors.append({"driver_id": driver_id, "error": e.message, "code": e.code})
                self.logger.warning("settlement_bulk_item_failed", driver_id=driver_id, error=e.message)

        self.logger.info(
            "settlement_bulk_created", year_month=year_month, success=result.success, failed=result.failed
        )
        return result

    def finalize(
        self,
        driver_id: str,
        year_month: str,
        remarks: Optional[str] = None,
        today: Optional[dt.date] = None,
    ) -> Settlement:
        """
        Calculate and lock a driver's month in one step.

        Raises:
            BusinessRuleError: future month (INVALID_MONTH)
            SettlementStateError: already confirmed (ALREADY_CONFIRMED)
            LogiOpsError: no charters in the month (NO_DATA)
        """
        self._check_month(year_month, today)
        driver = self.get_or_404(Driver, driver_id, "Driver")

        settlement = self._find(driver.id, year_month)
        previous_status = settlement.status if settlement else None
        if settlement is not None and settlement.status in LOCKED_STATUSES:
            raise SettlementStateError(
                f"Settlement for {year_month} is already confirmed",
                code="ALREADY_CONFIRMED",
                details={"settlement_id": settlement.id, "status": settlement.status},
            )

        lines = self.calculate_lines(driver.id, year_month)
        if not any(line.type == SettlementItemType.TRIP for line in lines):
            raise BusinessRuleError(f"No charters for {driver.name} in {year_month}", code="NO_DATA")

        if settlement is None:
            settlement = Settlement(driver_id=driver.id, year_month=year_month, created_by=self.actor, items=[])
            self.session.add(settlement)

        self._apply(settlement, lines)
        settlement.status = SettlementStatus.CONFIRMED.value
        settlement.confirmed_at = datetime.now(timezone.utc)
        settlement.confirmed_by = self.actor
        if remarks:
            settlement.remarks = remarks
        self.session.flush()

        self.audit(
            "CONFIRM",
            "Settlement",
            settlement.id,
            changes={"status": {"from": previous_status, "to": settlement.status}},
            metadata={"year_month": year_month, "driver_id": driver.id, "final_amount": settlement.final_amount},
        )
        self.logger.info(
            "settlement_confirmed",
            settlement_id=settlement.id,
            driver_id=driver.id,
            year_month=year_month,
            final_amount=settlement.final_amount,
        )
        return settlement

    def get(self, settlement_id: str) -> Settlement:
        return self.get_or_404(Settlement, settlement_id, "Settlement")

    def _require_status(self, settlement: Settlement, *allowed: SettlementStatus) -> None:
        if settlement.status not in {status.value for status in allowed}:
            expected = " or ".join(status.value for status in allowed)
            raise SettlementStateError(
                f"Settlement is {settlement.status}; expected {expected}",
                details={"settlement_id": settlement.id, "status": settlement.status},
            )

    def _transition(
        self, settlement: Settlement, status: SettlementStatus, action: str, **metadata: Any
    ) -> Settlement:
        previous = settlement.status
        settlement.status = status.value
        settlement.updated_by = self.actor
        self.session.flush()
        self.audit(
            action,
            "Settlement",
            settlement.id,
            changes={"status": {"from": previous, "to": status.value}},
            metadata=metadata or None,
        )
        return settlement

    def confirm(self, settlement_id: str) -> Settlement:
        """Lock a DRAFT settlement."""
        settlement = self.get(settlement_id)
        self._require_status(settlement, SettlementStatus.DRAFT)
        settlement.confirmed_at = datetime.now(timezone.utc)
        settlement.confirmed_by = self.actor
        self._transition(settlement, SettlementStatus.CONFIRMED, "CONFIRM", year_month=settlement.year_month)
        self.logger.info("settlement_confirmed", settlement_id=settlement.id, final_amount=settlement.final_amount)
        return settlement

    def mark_paid(self, settlement_id: str) -> Settlement:
        """Record payment of a CONFIRMED settlement."""
        settlement = self.get(settlement_id)
        self._require_status(settlement, SettlementStatus.CONFIRMED)
        settlement.paid_at = datetime.now(timezone.utc)
        self._transition(settlement, SettlementStatus.PAID, "PAY", year_month=settlement.year_month)
        self.logger.info("settlement_paid", settlement_id=settlement.id, final_amount=settlement.final_amount)
        return settlement

    def reopen(self, settlement_id: str, reason: str) -> Settlement:
        """
        Emergency unlock of a CONFIRMED or PAID settlement back to DRAFT.

        The reason is kept in the audit log.
        """
        settlement = self.get(settlement_id)
        self._require_status(settlement, SettlementStatus.CONFIRMED, SettlementStatus.PAID)
        settlement.confirmed_at = None
        settlement.confirmed_by = None
        settlement.paid_at = None
        self._transition(settlement, SettlementStatus.DRAFT, "REOPEN", reason=reason, reopened=True)
        self.logger.warning("settlement_reopened", settlement_id=settlement.id, reason=reason)
        return settlement

    def update(self, settlement_id: str, remarks: Optional[str]) -> Settlement:
        settlement = self.get(settlement_id)
        self._require_status(settlement, SettlementStatus.DRAFT)
        previous = settlement.remarks
        if previous != remarks:
            settlement.remarks = remarks
            settlement.updated_by = self.actor
            self.session.flush()
            self.audit("UPDATE", "Settlement", settlement.id, changes={"remarks": {"from": previous, "to": remarks}})
        return settlement

    def delete(self, settlement_id: str) -> None:
        """Delete a DRAFT settlement and its items."""
        settlement = self.get(settlement_id)
        self._require_status(settlement, SettlementStatus.DRAFT)
        self.audit(
            "DELETE",
            "Settlement",
            settlement.id,
            metadata={"driver_id": settlement.driver_id, "year_month": settlement.year_month},
        )
        self.session.delete(settlement)
        self.session.flush()

    def add_adjustment(self, settlement_id: str, data: AdjustmentCreate) -> Settlement:
        """
        Add a manual addition or deduction to a DRAFT settlement.

        Deductions are stored as negative amounts.
        """
        settlement = self.get(settlement_id)
        self._require_status(settlement, SettlementStatus.DRAFT)

        first_day, last_day = month_range(settlement.year_month)
        day = data.date or min(max(dt.date.today(), first_day), last_day)
        if not first_day <= day <= last_day:
            raise BusinessRuleError(f"Adjustment date must fall within {settlement.year_month}")

        amount = -data.amount if data.type == AdjustmentType.DEDUCTION else data.amount
        settlement.items.append(
            SettlementItem(
                type=data.type.value,
                description=data.description,
                amount=amount,
                date=day,
                is_manual=True,
            )
        )
        self._recompute_totals(settlement)
        self.session.flush()

        self.audit(
            "ADJUST",
            "Settlement",
            settlement.id,
            metadata={"type": data.type.value, "amount": amount, "description": data.description},
        )
        return settlement

    def list_settlements(
        self,
        driver_id: Optional[str] = None,
        year_month: Optional[str] = None,
        status: Optional[str] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> tuple[list[Settlement], Pagination]:
        stmt = select(Settlement).options(joinedload(Settlement.driver))
        filters = []
        if driver_id:
            filters.append(Settlement.driver_id == driver_id)
        if year_month:
            filters.append(Settlement.year_month == check_year_month(year_month))
        if status:
            filters.append(Settlement.status == status)
        if filters:
            stmt = stmt.where(and_(*filters))

        stmt = stmt.order_by(Settlement.year_month.desc(), Settlement.created_at.desc(), Settlement.id)
        return self.paginate(stmt, page, limit)

    def export(self, year_month: str, fmt: str = "xlsx") -> ExportFile:
        check_year_month(year_month)
        stmt = (
            select(Settlement)
            .options(joinedload(Settlement.driver))
            .join(Settlement.driver)
            .where(Settlement.year_month == year_month)
            .order_by(Driver.name)
        )

        rows: list[list[Any]] = []
        for settlement in self.session.execute(stmt).scalars():
            driver = settlement.driver
            rows.append(
                [
                    driver.name,
                    format_phone_number(driver.phone),
                    driver.vehicle_number,
                    settlement.year_month,
                    STATUS_LABELS.get(settlement.status, settlement.status),
                    settlement.total_charters,
                    settlement.total_base_fare,
                    settlement.total_additions,
                    settlement.total_deductions,
                    settlement.final_amount,
                    driver.bank_name or "",
                    format_account_number(driver.account_number),
                    settlement.confirmed_at.strftime("%Y-%m-%d %H:%M") if settlement.confirmed_at else "",
                ]
            )

        self.logger.info("settlements_exported", year_month=year_month, count=len(rows), format=fmt)
        return build_export(EXPORT_HEADERS, rows, f"settlements_{year_month}", fmt, sheet_title=f"정산 {year_month}")
