"""
Monthly driver settlement schemas.
"""

import datetime as dt
import re
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from logiops.data.models.common import ORMModel

YEAR_MONTH_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


class SettlementStatus(str, Enum):
    """Settlement lifecycle: DRAFT -> CONFIRMED -> PAID."""

    DRAFT = "DRAFT"
    CONFIRMED = "CONFIRMED"
    PAID = "PAID"


class SettlementItemType(str, Enum):
    TRIP = "TRIP"
    DEDUCTION = "DEDUCTION"
    ADDITION = "ADDITION"


class AdjustmentType(str, Enum):
    """Manual line kinds that can be added to a draft."""

    DEDUCTION = "DEDUCTION"
    ADDITION = "ADDITION"


def validate_year_month(value: str) -> str:
    if not YEAR_MONTH_PATTERN.match(value or ""):
        raise ValueError("year_month must be formatted YYYY-MM")
    return value


class SettlementLine(BaseModel):
    """A computed (not yet persisted) settlement line."""

    charter_id: Optional[str] = None
    type: SettlementItemType
    description: str
    amount: int
    date: dt.date


class SettlementTotals(BaseModel):
    total_charters: int = 0
    total_base_fare: int = 0
    total_deductions: int = 0
    total_additions: int = 0
    final_amount: int = 0


class SettlementPreview(BaseModel):
    """Settlement computed from charters without writing anything."""

    driver_id: str
    driver_name: str
    year_month: str
    items: list[SettlementLine]
    totals: SettlementTotals
    existing_status: Optional[SettlementStatus] = None


class SettlementRequest(BaseModel):
    driver_id: str = Field(..., min_length=1)
    year_month: str

    @field_validator("year_month")
    @classmethod
    def _year_month(cls, value: str) -> str:
        return validate_year_month(value)


class BulkSettlementRequest(BaseModel):
    driver_ids: list[str] = Field(..., min_length=1)
    year_month: str

    @field_validator("year_month")
    @classmethod
    def _year_month(cls, value: str) -> str:
        return validate_year_month(value)


class SettlementUpdate(BaseModel):
    remarks: Optional[str] = Field(None, max_length=500)


class ReopenRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500, description="Why a locked settlement is reopened")


class AdjustmentCreate(BaseModel):
    type: AdjustmentType
    amount: int = Field(..., gt=0, description="Positive amount in won")
    description: str = Field(..., min_length=1, max_length=300)
    date: Optional[dt.date] = None


class SettlementItemOut(ORMModel):
    id: str
    charter_id: Optional[str] = None
    type: SettlementItemType
    description: str
    amount: int
    date: dt.date
    is_manual: bool


class SettlementDriver(ORMModel):
    id: str
    name: str
    phone: str
    vehicle_number: str
    bank_name: Optional[str] = None
    account_number: Optional[str] = None


class SettlementOut(ORMModel):
    id: str
    driver_id: str
    year_month: str
    status: SettlementStatus
    total_charters: int
    total_base_fare: int
    total_deductions: int
    total_additions: int
    final_amount: int
    remarks: Optional[str] = None
    confirmed_at: Optional[datetime] = None
    confirmed_by: Optional[str] = None
    paid_at: Optional[datetime] = None
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    driver: Optional[SettlementDriver] = None
    items: list[SettlementItemOut] = Field(default_factory=list)
