"""
Fixed contract schemas.

A fixed contract is a recurring route at a center on given weekdays, with a
center-side contract (what the center pays) and a driver-side contract
(what the driver is paid).
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from logiops.data.models.common import ORMModel, blank_to_none


class ContractType(str, Enum):
    """Contract type enumeration."""

    FIXED_DAILY = "FIXED_DAILY"  # 고정일대
    FIXED_MONTHLY = "FIXED_MONTHLY"  # 고정월대
    CONSIGNED_MONTHLY = "CONSIGNED_MONTHLY"  # 고정지입
    CHARTER_PER_RIDE = "CHARTER_PER_RIDE"  # 건별용차


CONTRACT_TYPE_LABELS: dict[ContractType, str] = {
    ContractType.FIXED_DAILY: "고정일대",
    ContractType.FIXED_MONTHLY: "고정월대",
    ContractType.CONSIGNED_MONTHLY: "고정지입",
    ContractType.CHARTER_PER_RIDE: "건별용차",
}

# 0 = Sunday
WEEKDAY_LABELS: dict[int, str] = {0: "일", 1: "월", 2: "화", 3: "수", 4: "목", 5: "금", 6: "토"}


def normalize_operating_days(days: list[int]) -> list[int]:
    """Sort and de-duplicate weekday numbers, rejecting values outside 0..6."""
    for day in days:
        if not 0 <= day <= 6:
            raise ValueError(f"operating day must be 0..6 (0 = Sunday), got {day}")
    return sorted(set(days))


def format_operating_days(days: Optional[list[int]]) -> str:
    return ",".join(WEEKDAY_LABELS[d] for d in (days or []) if d in WEEKDAY_LABELS)


class FixedContractCreate(BaseModel):
    """New fixed contract."""

    # Assignment
    loading_point_id: str = Field(..., min_length=1)
    driver_id: Optional[str] = None
    route_name: str = Field(..., min_length=1, max_length=100)
    operating_days: list[int] = Field(default_factory=list)

    # Center side
    center_contract_type: ContractType
    center_amount: int = Field(0, ge=0, description="Center contract amount (won)")

    # Driver side (defaults to the center contract type)
    driver_contract_type: Optional[ContractType] = None
    driver_amount: Optional[int] = Field(None, ge=0, description="Driver contract amount (won)")

    # Period
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    special_conditions: Optional[str] = Field(None, max_length=500)
    remarks: Optional[str] = Field(None, max_length=500)
    is_active: bool = True

    @field_validator("route_name", mode="before")
    @classmethod
    def _strip(cls, value: str) -> str:
        return value.strip() if isinstance(value, str) else value

    @field_validator("driver_id", "special_conditions", "remarks", mode="before")
    @classmethod
    def _blank_optional(cls, value: Optional[str]) -> Optional[str]:
        return blank_to_none(value)

    @field_validator("operating_days")
    @classmethod
    def _days(cls, value: list[int]) -> list[int]:
        return normalize_operating_days(value)

    @model_validator(mode="after")
    def _defaults_and_period(self) -> "FixedContractCreate":
        if self.driver_contract_type is None:
            self.driver_contract_type = self.center_contract_type
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class FixedContractUpdate(BaseModel):
    """Partial update; omitted fields are left unchanged."""

    loading_point_id: Optional[str] = None
    driver_id: Optional[str] = None
    route_name: Optional[str] = Field(None, min_length=1, max_length=100)
    operating_days: Optional[list[int]] = None
    center_contract_type: Optional[ContractType] = None
    center_amount: Optional[int] = Field(None, ge=0)
    driver_contract_type: Optional[ContractType] = None
    driver_amount: Optional[int] = Field(None, ge=0)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    special_conditions: Optional[str] = Field(None, max_length=500)
    remarks: Optional[str] = Field(None, max_length=500)
    is_active: Optional[bool] = None

    @field_validator("operating_days")
    @classmethod
    def _days(cls, value: Optional[list[int]]) -> Optional[list[int]]:
        return None if value is None else normalize_operating_days(value)

    @field_validator("special_conditions", "remarks", mode="before")
    @classmethod
    def _blank_optional(cls, value: Optional[str]) -> Optional[str]:
        return blank_to_none(value)


class ContractDriver(ORMModel):
    id: str
    name: str
    phone: str
    vehicle_number: str


class ContractLoadingPoint(ORMModel):
    id: str
    center_name: str
    loading_point_name: str


class FixedContractOut(ORMModel):
    id: str
    loading_point_id: str
    driver_id: Optional[str] = None
    route_name: str
    operating_days: list[int]
    center_contract_type: ContractType
    driver_contract_type: Optional[ContractType] = None
    center_amount: int
    driver_amount: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    special_conditions: Optional[str] = None
    remarks: Optional[str] = None
    is_active: bool
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    driver: Optional[ContractDriver] = None
    loading_point: Optional[ContractLoadingPoint] = None


class FixedContractStats(BaseModel):
    total: int
    active: int
    inactive: int
    by_contract_type: dict[str, int]
    recent: int = Field(..., description="Created in the last 30 days")


class FixedContractImportRow(BaseModel):
    """One validated row of a fixed contract import file, before name resolution."""

    center_name: str = Field(..., min_length=1)
    route_name: str = Field(..., min_length=1, max_length=100)
    driver_name: Optional[str] = None
    vehicle_number: Optional[str] = None
    phone: Optional[str] = None
    operating_days: list[int] = Field(..., min_length=1)
    center_contract_type: ContractType
    center_amount: int = Field(0, ge=0)
    driver_contract_type: Optional[ContractType] = None
    driver_amount: Optional[int] = Field(None, ge=0)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    remarks: Optional[str] = None

    @field_validator("driver_name", "vehicle_number", "phone", "remarks", mode="before")
    @classmethod
    def _blank_optional(cls, value: Optional[str]) -> Optional[str]:
        return blank_to_none(value)

    def to_create(self, loading_point_id: str, driver_id: Optional[str]) -> FixedContractCreate:
        return FixedContractCreate(
            loading_point_id=loading_point_id,
            driver_id=driver_id,
            route_name=self.route_name,
            operating_days=self.operating_days,
            center_contract_type=self.center_contract_type,
            center_amount=self.center_amount,
            driver_contract_type=self.driver_contract_type,
            driver_amount=self.driver_amount,
            start_date=self.start_date,
            end_date=self.end_date,
            remarks=self.remarks,
        )
