"""
Charter request and fare quote schemas.

A charter is a one-off trip from a center to one or more destination
regions. Its center-side price comes from the fare calculator (or a
negotiated amount); the driver's pay is entered separately.
"""

import datetime as dt
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from logiops.data.models.common import ORMModel, blank_to_none


class FareQuoteInput(BaseModel):
    """Inputs of a single fare calculation."""

    loading_point_id: str = Field(..., min_length=1, description="Center (loading point) id")
    vehicle_type: Optional[str] = Field(None, description="Vehicle type label, e.g. '5톤'")
    vehicle_ton: Optional[float] = Field(None, gt=0, description="Tonnage, used when no type is given")
    regions: list[str] = Field(..., min_length=1, description="Destination regions in visit order")
    stops: int = Field(1, ge=1, description="Number of drop-off stops")
    manual_adjustment: int = Field(0, description="Manual adjustment (won), may be negative")

    # Negotiated override
    is_negotiated: bool = False
    negotiated_fare: Optional[int] = Field(None, ge=0)

    @field_validator("regions")
    @classmethod
    def _regions(cls, value: list[str]) -> list[str]:
        cleaned = [r.strip() for r in value if r and r.strip()]
        if not cleaned:
            raise ValueError("at least one region is required")
        return cleaned

    @model_validator(mode="after")
    def _check(self) -> "FareQuoteInput":
        if not self.vehicle_type and self.vehicle_ton is None:
            raise ValueError("vehicle_type or vehicle_ton is required")
        if self.is_negotiated and self.negotiated_fare is None:
            raise ValueError("negotiated_fare is required when is_negotiated is set")
        return self


class AppliedRate(BaseModel):
    """Rate row a quote was priced from."""

    id: str
    center_name: str
    vehicle_type: str
    region: Optional[str] = None
    fare_type: str
    stop_fee_rate_id: Optional[str] = None


class FareQuote(BaseModel):
    """Result of a fare calculation."""

    vehicle_type: str

    # Components (won)
    base_fare: int
    extra_region_fee: int = Field(..., description="Per extra region")
    extra_stop_fee: int = Field(..., description="Per extra stop")
    extra_region_count: int
    extra_stop_count: int
    region_fare: int = Field(..., description="extra_region_fee * extra_region_count")
    stop_fare: int = Field(..., description="extra_stop_fee * extra_stop_count")
    subtotal: int
    manual_adjustment: int
    total_fare: int

    # Provenance
    applied_rate: Optional[AppliedRate] = None
    is_fallback: bool = False
    is_negotiated: bool = False
    breakdown: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class DestinationIn(BaseModel):
    region: str = Field(..., min_length=1, max_length=100)
    order: int = Field(..., ge=1)


def _check_destinations(destinations: list[DestinationIn]) -> list[DestinationIn]:
    orders = sorted(d.order for d in destinations)
    if orders != list(range(1, len(destinations) + 1)):
        raise ValueError("destination order must run 1..n without gaps")
    return sorted(destinations, key=lambda d: d.order)


class CharterCreate(BaseModel):
    """New charter request."""

    # Routing
    loading_point_id: str = Field(..., min_length=1)
    vehicle_type: str = Field(..., min_length=1, max_length=50)
    date: dt.date
    destinations: list[DestinationIn] = Field(..., min_length=1)

    # Pricing
    is_negotiated: bool = False
    negotiated_fare: Optional[int] = Field(None, ge=0)
    extra_fare: int = Field(0, ge=0, description="Extra charge on top of the calculated fare")

    # Driver
    driver_id: str = Field(..., min_length=1)
    driver_fare: int = Field(..., ge=0, description="Amount paid to the driver (won)")

    notes: Optional[str] = Field(None, max_length=500)

    @field_validator("destinations")
    @classmethod
    def _destinations(cls, value: list[DestinationIn]) -> list[DestinationIn]:
        return _check_destinations(value)

    @field_validator("notes", mode="before")
    @classmethod
    def _blank_optional(cls, value: Optional[str]) -> Optional[str]:
        return blank_to_none(value)

    @model_validator(mode="after")
    def _negotiated(self) -> "CharterCreate":
        if self.is_negotiated and self.negotiated_fare is None:
            raise ValueError("negotiated_fare is required when is_negotiated is set")
        return self


class CharterUpdate(BaseModel):
    """Partial update; routing changes trigger a fare recalculation."""

    loading_point_id: Optional[str] = None
    vehicle_type: Optional[str] = Field(None, max_length=50)
    date: Optional[dt.date] = None
    destinations: Optional[list[DestinationIn]] = None
    is_negotiated: Optional[bool] = None
    negotiated_fare: Optional[int] = Field(None, ge=0)
    extra_fare: Optional[int] = Field(None, ge=0)
    driver_id: Optional[str] = None
    driver_fare: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = Field(None, max_length=500)

    @field_validator("destinations")
    @classmethod
    def _destinations(cls, value: Optional[list[DestinationIn]]) -> Optional[list[DestinationIn]]:
        if value is None:
            return None
        if not value:
            raise ValueError("at least one destination is required")
        return _check_destinations(value)

    @property
    def changes_routing(self) -> bool:
        fields = {"loading_point_id", "vehicle_type", "destinations", "is_negotiated", "negotiated_fare", "extra_fare"}
        return bool(fields & self.model_fields_set)


class CharterImportRow(BaseModel):
    """One validated row of a charter import file, before name resolution."""

    center_name: str = Field(..., min_length=1)
    date: dt.date
    vehicle_type: str = Field(..., min_length=1)
    regions: list[str] = Field(..., min_length=1)
    driver_name: str = Field(..., min_length=1)
    phone: Optional[str] = None
    driver_fare: int = Field(..., ge=0)
    extra_fare: int = Field(0, ge=0)
    negotiated_fare: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = Field(None, max_length=500)

    @field_validator("phone", "notes", mode="before")
    @classmethod
    def _blank_optional(cls, value: Optional[str]) -> Optional[str]:
        return blank_to_none(value)

    def to_create(self, loading_point_id: str, driver_id: str) -> CharterCreate:
        return CharterCreate(
            loading_point_id=loading_point_id,
            vehicle_type=self.vehicle_type,
            date=self.date,
            destinations=[DestinationIn(region=r, order=i) for i, r in enumerate(self.regions, start=1)],
            is_negotiated=self.negotiated_fare is not None,
            negotiated_fare=self.negotiated_fare,
            extra_fare=self.extra_fare,
            driver_id=driver_id,
            driver_fare=self.driver_fare,
            notes=self.notes,
        )


class DestinationOut(ORMModel):
    region: str
    order: int


class CharterDriver(ORMModel):
    id: str
    name: str
    phone: str
    vehicle_number: str


class CharterCenter(ORMModel):
    id: str
    center_name: str
    loading_point_name: str


class CharterOut(ORMModel):
    id: str
    loading_point_id: str
    vehicle_type: str
    date: dt.date
    destinations: list[DestinationOut]
    is_negotiated: bool
    negotiated_fare: Optional[int] = None
    base_fare: int
    region_fare: int
    stop_fare: int
    extra_fare: int
    total_fare: int
    driver_id: str
    driver_fare: int
    notes: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    driver: Optional[CharterDriver] = None
    loading_point: Optional[CharterCenter] = None


class RecalculateRequest(BaseModel):
    ids: list[str] = Field(..., min_length=1)


def quote_summary(quote: FareQuote) -> dict[str, Any]:
    """Compact dict of a quote for audit metadata."""
    return {
        "vehicle_type": quote.vehicle_type,
        "total_fare": quote.total_fare,
        "is_fallback": quote.is_fallback,
        "is_negotiated": quote.is_negotiated,
        "rate_id": quote.applied_rate.id if quote.applied_rate else None,
    }
