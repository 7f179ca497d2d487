"""
Vehicle schemas.
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from logiops.data.models.common import ORMModel
from logiops.tools.vehicle_types import normalize_vehicle_type


class VehicleOwnership(str, Enum):
    """How the vehicle is held."""

    OWNED = "OWNED"
    LEASED = "LEASED"
    CONTRACTED = "CONTRACTED"


PLATE_PATTERN = r"^[가-힣0-9]+$"


def _check_year(value: Optional[int]) -> Optional[int]:
    if value is None:
        return None
    latest = date.today().year + 1
    if not 1980 <= value <= latest:
        raise ValueError(f"year must be between 1980 and {latest}")
    return value


def _vehicle_type(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    if not value:
        raise ValueError("vehicle type is required")
    # unknown labels are kept as typed
    return normalize_vehicle_type(value) or value


class VehicleCreate(BaseModel):
    plate_number: str = Field(..., min_length=1, max_length=20, pattern=PLATE_PATTERN)
    vehicle_type: str = Field(..., min_length=1, max_length=50)
    ownership: VehicleOwnership = VehicleOwnership.OWNED
    driver_id: Optional[str] = None
    year: Optional[int] = None
    capacity_ton: Optional[float] = Field(None, gt=0, le=100)
    is_active: bool = True

    @field_validator("plate_number", mode="before")
    @classmethod
    def _plate(cls, value: str) -> str:
        return value.replace(" ", "").strip() if isinstance(value, str) else value

    @field_validator("vehicle_type")
    @classmethod
    def _type(cls, value: str) -> str:
        return _vehicle_type(value)

    @field_validator("year")
    @classmethod
    def _year(cls, value: Optional[int]) -> Optional[int]:
        return _check_year(value)


class VehicleUpdate(BaseModel):
    """Partial update; omitted fields are left unchanged."""

    plate_number: Optional[str] = Field(None, min_length=1, max_length=20, pattern=PLATE_PATTERN)
    vehicle_type: Optional[str] = Field(None, max_length=50)
    ownership: Optional[VehicleOwnership] = None
    driver_id: Optional[str] = None
    year: Optional[int] = None
    capacity_ton: Optional[float] = Field(None, gt=0, le=100)
    is_active: Optional[bool] = None

    @field_validator("plate_number", mode="before")
    @classmethod
    def _plate(cls, value: Optional[str]) -> Optional[str]:
        return value.replace(" ", "").strip() if isinstance(value, str) else value

    @field_validator("vehicle_type")
    @classmethod
    def _type(cls, value: Optional[str]) -> Optional[str]:
        return _vehicle_type(value)

    @field_validator("year")
    @classmethod
    def _year(cls, value: Optional[int]) -> Optional[int]:
        return _check_year(value)


class VehicleDriver(ORMModel):
    id: str
    name: str
    phone: str


class VehicleOut(ORMModel):
    id: str
    plate_number: str
    vehicle_type: str
    ownership: VehicleOwnership
    driver_id: Optional[str] = None
    driver: Optional[VehicleDriver] = None
    year: Optional[int] = None
    capacity_ton: Optional[float] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class AssignDriverRequest(BaseModel):
    driver_id: str
