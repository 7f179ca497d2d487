"""
Loading point (center) schemas.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from logiops.data.models.common import ORMModel, blank_to_none


class LoadingPointBase(BaseModel):
    """Editable loading point fields."""

    # Identification
    center_name: str = Field(..., min_length=1, max_length=100, description="Logistics center name")
    loading_point_name: str = Field(..., min_length=1, max_length=100, description="Loading dock / point name")

    # Address
    lot_address: Optional[str] = Field(None, max_length=200, description="Lot-number address")
    road_address: Optional[str] = Field(None, max_length=200, description="Road-name address")

    # Contacts
    manager1: Optional[str] = Field(None, max_length=50)
    manager2: Optional[str] = Field(None, max_length=50)
    phone1: Optional[str] = Field(None, max_length=20)
    phone2: Optional[str] = Field(None, max_length=20)

    remarks: Optional[str] = None

    @field_validator("center_name", "loading_point_name", mode="before")
    @classmethod
    def _strip_required(cls, value: str) -> str:
        return value.strip() if isinstance(value, str) else value

    @field_validator(
        "lot_address", "road_address", "manager1", "manager2", "phone1", "phone2", "remarks", mode="before"
    )
    @classmethod
    def _blank_optional(cls, value: Optional[str]) -> Optional[str]:
        return blank_to_none(value)


class LoadingPointCreate(LoadingPointBase):
    is_active: bool = True


class LoadingPointUpdate(BaseModel):
    """Partial update; omitted fields are left unchanged."""

    center_name: Optional[str] = Field(None, min_length=1, max_length=100)
    loading_point_name: Optional[str] = Field(None, min_length=1, max_length=100)
    lot_address: Optional[str] = None
    road_address: Optional[str] = None
    manager1: Optional[str] = None
    manager2: Optional[str] = None
    phone1: Optional[str] = None
    phone2: Optional[str] = None
    remarks: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator(
        "lot_address", "road_address", "manager1", "manager2", "phone1", "phone2", "remarks", mode="before"
    )
    @classmethod
    def _blank_optional(cls, value: Optional[str]) -> Optional[str]:
        return blank_to_none(value)


class LoadingPointOut(ORMModel):
    id: str
    center_name: str
    loading_point_name: str
    lot_address: Optional[str] = None
    road_address: Optional[str] = None
    manager1: Optional[str] = None
    manager2: Optional[str] = None
    phone1: Optional[str] = None
    phone2: Optional[str] = None
    remarks: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class LoadingPointSuggestion(ORMModel):
    id: str
    center_name: str
    loading_point_name: str
    road_address: Optional[str] = None
