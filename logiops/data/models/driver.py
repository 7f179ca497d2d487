"""
Driver schemas.

Phone and account numbers are accepted in any format and stored
digits-only; empty optional strings become None.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from logiops.data.models.common import ORMModel, blank_to_none
from logiops.tools.formatting import sanitize_account_number, sanitize_phone, validate_phone

_OPTIONAL_TEXT = ("business_name", "representative", "business_number", "bank_name", "remarks")


def _clean_phone(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    is_valid, message = validate_phone(value)
    if not is_valid:
        raise ValueError(message)
    return sanitize_phone(value)


def _clean_account(value: Optional[str]) -> Optional[str]:
    value = blank_to_none(value)
    if value is None:
        return None
    return sanitize_account_number(value) or None


class DriverCreate(BaseModel):
    """New driver (9-column import layout)."""

    # Required
    name: str = Field(..., min_length=1, max_length=50, description="Driver name")
    phone: str = Field(..., min_length=1, description="Phone number, stored digits-only")
    vehicle_number: str = Field(..., min_length=1, max_length=20, description="Vehicle plate number")

    # Business
    business_name: Optional[str] = Field(None, max_length=100)
    representative: Optional[str] = Field(None, max_length=50)
    business_number: Optional[str] = Field(None, max_length=50)

    # Payment
    bank_name: Optional[str] = Field(None, max_length=50)
    account_number: Optional[str] = Field(None, max_length=50)

    remarks: Optional[str] = Field(None, max_length=500)
    is_active: bool = True

    @field_validator("name", "vehicle_number", mode="before")
    @classmethod
    def _strip(cls, value: str) -> str:
        return value.strip() if isinstance(value, str) else value

    @field_validator("phone")
    @classmethod
    def _phone(cls, value: str) -> str:
        return _clean_phone(value)

    @field_validator("account_number", mode="before")
    @classmethod
    def _account(cls, value: Optional[str]) -> Optional[str]:
        return _clean_account(value)

    @field_validator(*_OPTIONAL_TEXT, mode="before")
    @classmethod
    def _blank_optional(cls, value: Optional[str]) -> Optional[str]:
        return blank_to_none(value)


class DriverUpdate(BaseModel):
    """Partial update; omitted fields are left unchanged."""

    name: Optional[str] = Field(None, min_length=1, max_length=50)
    phone: Optional[str] = None
    vehicle_number: Optional[str] = Field(None, min_length=1, max_length=20)
    business_name: Optional[str] = Field(None, max_length=100)
    representative: Optional[str] = Field(None, max_length=50)
    business_number: Optional[str] = Field(None, max_length=50)
    bank_name: Optional[str] = Field(None, max_length=50)
    account_number: Optional[str] = Field(None, max_length=50)
    remarks: Optional[str] = Field(None, max_length=500)
    is_active: Optional[bool] = None

    @field_validator("name", "vehicle_number", mode="before")
    @classmethod
    def _strip(cls, value: Optional[str]) -> Optional[str]:
        return value.strip() if isinstance(value, str) else value

    @field_validator("phone")
    @classmethod
    def _phone(cls, value: Optional[str]) -> Optional[str]:
        return _clean_phone(value)

    @field_validator("account_number", mode="before")
    @classmethod
    def _account(cls, value: Optional[str]) -> Optional[str]:
        return _clean_account(value)

    @field_validator(*_OPTIONAL_TEXT, mode="before")
    @classmethod
    def _blank_optional(cls, value: Optional[str]) -> Optional[str]:
        return blank_to_none(value)


class DriverCounts(BaseModel):
    charters: int = 0
    settlements: int = 0
    fixed_contracts: int = 0


class DriverOut(ORMModel):
    id: str
    name: str
    phone: str
    vehicle_number: str
    business_name: Optional[str] = None
    representative: Optional[str] = None
    business_number: Optional[str] = None
    bank_name: Optional[str] = None
    account_number: Optional[str] = None
    remarks: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class DriverDetail(DriverOut):
    counts: DriverCounts = Field(default_factory=DriverCounts)


class DriverSearchResult(ORMModel):
    id: str
    name: str
    phone: str
    vehicle_number: str


class BulkActiveRequest(BaseModel):
    ids: list[str] = Field(..., min_length=1)
    is_active: bool
