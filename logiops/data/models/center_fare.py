"""
Center fare (rate table) schemas.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from logiops.data.models.common import ORMModel, blank_to_none
from logiops.tools.vehicle_types import normalize_vehicle_type


class FareType(str, Enum):
    """Kind of rate row."""

    BASIC = "BASIC"  # base fare plus per-region/per-stop fees
    STOP_FEE = "STOP_FEE"  # per-stop fee override only


FARE_TYPE_LABELS: dict[FareType, str] = {
    FareType.BASIC: "기본운임",
    FareType.STOP_FEE: "경유운임",
}


def _vehicle_type(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    normalized = normalize_vehicle_type(value)
    if normalized is None:
        raise ValueError(f"unknown vehicle type: {value}")
    return normalized


class CenterFareCreate(BaseModel):
    """New rate row for a center."""

    # Key
    loading_point_id: str = Field(..., min_length=1, description="Center (loading point) id")
    vehicle_type: str = Field(..., min_length=1, max_length=50)
    region: Optional[str] = Field(None, max_length=100, description="None = general rate")
    fare_type: FareType = FareType.BASIC

    # Amounts (won)
    base_fare: int = Field(0, ge=0)
    extra_stop_fee: int = Field(0, ge=0)
    extra_region_fee: int = Field(0, ge=0)

    is_active: bool = True

    @field_validator("vehicle_type")
    @classmethod
    def _type(cls, value: str) -> str:
        return _vehicle_type(value)

    @field_validator("region", mode="before")
    @classmethod
    def _region(cls, value: Optional[str]) -> Optional[str]:
        return blank_to_none(value)


class CenterFareUpdate(BaseModel):
    """Partial update; omitted fields are left unchanged."""

    loading_point_id: Optional[str] = None
    vehicle_type: Optional[str] = Field(None, max_length=50)
    region: Optional[str] = Field(None, max_length=100)
    fare_type: Optional[FareType] = None
    base_fare: Optional[int] = Field(None, ge=0)
    extra_stop_fee: Optional[int] = Field(None, ge=0)
    extra_region_fee: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None

    @field_validator("vehicle_type")
    @classmethod
    def _type(cls, value: Optional[str]) -> Optional[str]:
        return _vehicle_type(value)

    @field_validator("region", mode="before")
    @classmethod
    def _region(cls, value: Optional[str]) -> Optional[str]:
        return blank_to_none(value)


class CenterFareValidateRequest(BaseModel):
    """Duplicate pre-check for a (center, vehicle type, region, fare type) key."""

    loading_point_id: str
    vehicle_type: str
    region: Optional[str] = None
    fare_type: FareType = FareType.BASIC
    exclude_id: Optional[str] = None

    @field_validator("vehicle_type")
    @classmethod
    def _type(cls, value: str) -> str:
        return _vehicle_type(value)

    @field_validator("region", mode="before")
    @classmethod
    def _region(cls, value: Optional[str]) -> Optional[str]:
        return blank_to_none(value)


class CenterFareValidation(BaseModel):
    is_valid: bool
    duplicate_id: Optional[str] = None
    message: Optional[str] = None


class FareCenter(ORMModel):
    id: str
    center_name: str
    loading_point_name: str


class CenterFareOut(ORMModel):
    id: str
    loading_point_id: str
    vehicle_type: str
    region: Optional[str] = None
    fare_type: FareType
    base_fare: int
    extra_stop_fee: int
    extra_region_fee: int
    is_active: bool
    created_at: datetime
    updated_at: datetime
    loading_point: Optional[FareCenter] = None


class CenterFareStats(BaseModel):
    total: int
    active: int
    inactive: int
    by_vehicle_type: dict[str, int]
    recent: int


class BulkDeleteRequest(BaseModel):
    ids: list[str] = Field(..., min_length=1)
