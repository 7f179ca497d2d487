"""
Fare Calculator - Center-side pricing of charter trips.

This service:
- Looks up the applicable center fare row for a center, vehicle type and region
- Applies per-region and per-stop surcharges on top of the base fare
- Falls back to a tonnage-based estimate when no row matches (if enabled)
- Honors negotiated fares while still reporting the calculated components
- Recalculates stored charters in bulk
"""

import re
from time import time
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from logiops.core.errors import InvalidInputError, LogiOpsError, RateNotFoundError
from logiops.data.models.center_fare import FareType
from logiops.data.models.charter import AppliedRate, FareQuote, FareQuoteInput, quote_summary
from logiops.data.models.common import BulkResult
from logiops.data.tables import CenterFare, CharterRequest, LoadingPoint
from logiops.services.base import BaseService
from logiops.services.settlements import ensure_month_unlocked
from logiops.tools.formatting import format_currency
from logiops.tools.vehicle_types import normalize_vehicle_type, vehicle_type_for_tonnage

_LEADING_TON = re.compile(r"^\s*(\d+(?:\.\d+)?)")


def tonnage_from_vehicle_type(vehicle_type: str) -> Optional[float]:
    """Leading tonnage of a vehicle type label ("3.5톤광폭" -> 3.5); None for "대형"."""
    match = _LEADING_TON.match(vehicle_type or "")
    return float(match.group(1)) if match else None


def unique_regions(regions: list[str]) -> list[str]:
    """Regions in visit order with repeats removed."""
    seen: list[str] = []
    for region in regions:
        if region not in seen:
            seen.append(region)
    return seen


class FareCalculator(BaseService):
    """
    Fare calculator for charter requests.

    total = base + extra_region_fee * extra_regions + extra_stop_fee * extra_stops + manual_adjustment
    """

    service_name = "fare_calculator"

    def resolve_vehicle_type(self, quote_input: FareQuoteInput) -> str:
        """Canonical vehicle type from the label, or from the tonnage when no label is given."""
        if quote_input.vehicle_type:
            vehicle_type = normalize_vehicle_type(quote_input.vehicle_type)
            if vehicle_type is None:
                raise InvalidInputError(f"Unknown vehicle type: {quote_input.vehicle_type}")
            return vehicle_type

        policy = self.config_manager.get_fare_policy()
        return vehicle_type_for_tonnage(quote_input.vehicle_ton, policy.tonnage_bands, policy.oversize_vehicle_type)

    def find_rate(
        self,
        loading_point_id: str,
        vehicle_type: str,
        region: Optional[str],
        fare_type: FareType = FareType.BASIC,
    ) -> Optional[CenterFare]:
        """
        Most recent active row for the key; a region-specific row beats the general one.
        """
        for candidate in (region, None) if region else (None,):
            stmt = (
                select(CenterFare)
                .where(
                    CenterFare.loading_point_id == loading_point_id,
                    CenterFare.vehicle_type == vehicle_type,
                    CenterFare.fare_type == fare_type.value,
                    CenterFare.is_active.is_(True),
                    CenterFare.region.is_(None) if candidate is None else CenterFare.region == candidate,
                )
                .order_by(CenterFare.created_at.desc(), CenterFare.id.desc())
                .limit(1)
            )
            rate = self.session.execute(stmt).scalars().first()
            if rate is not None:
                return rate
        return None

    def _fallback_base_fare(self, vehicle_type: str, vehicle_ton: Optional[float]) -> int:
        fallback = self.config_manager.get_fare_policy().fallback
        ton = vehicle_ton if vehicle_ton is not None else tonnage_from_vehicle_type(vehicle_type)
        if ton is not None:
            for band in sorted(fallback.by_tonnage, key=lambda b: b.max_ton):
                if ton <= band.max_ton:
                    return band.base_fare
        return fallback.default_base_fare

    def calculate(self, quote_input: FareQuoteInput) -> FareQuote:
        """
        Price a charter trip.

        Args:
            quote_input: Center, vehicle type or tonnage, regions, stops,
                manual adjustment and optional negotiated fare

        Returns:
            FareQuote with components, breakdown lines and warnings

        Raises:
            NotFoundError: the center does not exist
            InvalidInputError: unknown vehicle type
            RateNotFoundError: no rate matches and the fallback is disabled
        """
        start_time = time()

        center = self.get_or_404(LoadingPoint, quote_input.loading_point_id, "Loading point")
        vehicle_type = self.resolve_vehicle_type(quote_input)
        regions = unique_regions(quote_input.regions)
        primary_region = regions[0]

        self.logger.info(
            "calculating_fare",
            loading_point_id=center.id,
            vehicle_type=vehicle_type,
            regions=len(regions),
            stops=quote_input.stops,
        )

        warnings: list[str] = []
        breakdown: list[str] = []
        applied_rate: Optional[AppliedRate] = None
        is_fallback = False

        extra_region_count = max(0, len(regions) - 1)
        extra_stop_count = max(0, quote_input.stops - 1)

        rate = self.find_rate(center.id, vehicle_type, primary_region)
        if rate is not None:
            base_fare = rate.base_fare
            extra_region_fee = rate.extra_region_fee
            extra_stop_fee = rate.extra_stop_fee

            stop_rate = self.find_rate(center.id, vehicle_type, primary_region, FareType.STOP_FEE)
            if stop_rate is not None:
                extra_stop_fee = stop_rate.extra_stop_fee

            applied_rate = AppliedRate(
                id=rate.id,
                center_name=center.center_name,
                vehicle_type=rate.vehicle_type,
                region=rate.region,
                fare_type=rate.fare_type,
                stop_fee_rate_id=stop_rate.id if stop_rate else None,
            )
            breakdown.append(f"기본운임: {format_currency(base_fare)} ({rate.region or '전 지역'} 요율)")
        else:
            message = f"No rate for {center.center_name} / {vehicle_type} / {primary_region}"
            fallback = self.config_manager.get_fare_policy().fallback
            if not fallback.enabled and not quote_input.is_negotiated:
                self.logger.warning("rate_not_found", loading_point_id=center.id, vehicle_type=vehicle_type)
                raise RateNotFoundError(
                    message,
                    details={
                        "center_name": center.center_name,
                        "vehicle_type": vehicle_type,
                        "region": primary_region,
                    },
                )

            if fallback.enabled:
                is_fallback = True
                base_fare = self._fallback_base_fare(vehicle_type, quote_input.vehicle_ton)
                extra_region_fee = fallback.extra_region_fee
                extra_stop_fee = fallback.extra_stop_fee
                warnings.append(f"{message}; estimated from tonnage")
                breakdown.append(f"예상 기본운임: {format_currency(base_fare)} ({vehicle_type} 기준)")
            else:
                base_fare = extra_region_fee = extra_stop_fee = 0
                warnings.append(f"{message}; components unavailable")

        region_fare = extra_region_fee * extra_region_count
        stop_fare = extra_stop_fee * extra_stop_count
        subtotal = base_fare + region_fare + stop_fare

        if extra_region_count:
            breakdown.append(
                f"추가 지역: {extra_region_count} × {format_currency(extra_region_fee)} = {format_currency(region_fare)}"
            )
        if extra_stop_count:
            breakdown.append(
                f"추가 경유: {extra_stop_count} × {format_currency(extra_stop_fee)} = {format_currency(stop_fare)}"
            )
        if quote_input.manual_adjustment:
            breakdown.append(f"수동 조정: {format_currency(quote_input.manual_adjustment)}")

        total_fare = max(0, subtotal + quote_input.manual_adjustment)
        if quote_input.is_negotiated:
            total_fare = quote_input.negotiated_fare
            breakdown.append(f"협의운임 적용: {format_currency(total_fare)} (계산 운임 {format_currency(subtotal)})")

        quote = FareQuote(
            vehicle_type=vehicle_type,
            base_fare=base_fare,
            extra_region_fee=extra_region_fee,
            extra_stop_fee=extra_stop_fee,
            extra_region_count=extra_region_count,
            extra_stop_count=extra_stop_count,
            region_fare=region_fare,
            stop_fare=stop_fare,
            subtotal=subtotal,
            manual_adjustment=quote_input.manual_adjustment,
            total_fare=total_fare,
            applied_rate=applied_rate,
            is_fallback=is_fallback,
            is_negotiated=quote_input.is_negotiated,
            breakdown=breakdown,
            warnings=warnings,
        )

        self.logger.info(
            "fare_calculated",
            **quote_summary(quote),
            execution_time_seconds=round(time() - start_time, 4),
        )
        return quote

    def quote_for_charter(self, charter: CharterRequest) -> FareQuote:
        """Price a stored charter from its own routing fields."""
        return self.calculate(
            FareQuoteInput(
                loading_point_id=charter.loading_point_id,
                vehicle_type=charter.vehicle_type,
                regions=[d.region for d in charter.destinations],
                stops=max(1, len(charter.destinations)),
                manual_adjustment=charter.extra_fare,
                is_negotiated=charter.is_negotiated,
                negotiated_fare=charter.negotiated_fare,
            )
        )

    def recalculate_charters(self, charter_ids: list[str]) -> BulkResult:
        """
        Recompute the stored fare components of several charters.

        Charters in a month locked by a confirmed settlement are skipped and
        reported as failures.

        Args:
            charter_ids: Charter ids to recalculate

        Returns:
            BulkResult with per-charter errors
        """
        result = BulkResult()
        charters = {
            c.id: c
            for c in self.session.execute(
                select(CharterRequest)
                .options(selectinload(CharterRequest.destinations))
                .where(CharterRequest.id.in_(charter_ids))
            ).scalars()
        }

        for charter_id in charter_ids:
            charter = charters.get(charter_id)
            if charter is None:
                result.failed += 1
                result.errors.append({"id": charter_id, "error": "Charter not found"})
                continue
            try:
                ensure_month_unlocked(self.session, charter.driver_id, charter.date)
                quote = self.quote_for_charter(charter)
                apply_quote(charter, quote)
                result.success += 1
            except LogiOpsError as e:
                result.failed += 1
                result.errors.append({"id": charter_id, "error": e.message})
                self.logger.error("charter_recalculation_error", charter_id=charter_id, error=e.message)

        self.session.flush()
        self.audit(
            "RECALCULATE",
            "CharterRequest",
            "bulk",
            metadata={"ids": charter_ids, "success": result.success, "failed": result.failed},
        )
        return result


def apply_quote(charter: CharterRequest, quote: FareQuote) -> None:
    """Copy a quote's components onto a charter."""
    charter.vehicle_type = quote.vehicle_type
    charter.base_fare = quote.base_fare
    charter.region_fare = quote.region_fare
    charter.stop_fare = quote.stop_fare
    charter.total_fare = quote.total_fare
