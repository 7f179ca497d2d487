"""
ORM tables for the back-office records.

Uniqueness that only applies to active rows (fixed contracts, center fares)
is enforced by service queries; unconditional uniqueness is a database
constraint.
"""

import datetime as dt
import uuid
from datetime import date, datetime, timezone
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from logiops.data.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class LoadingPoint(TimestampMixin, Base):
    __tablename__ = "loading_points"
    __table_args__ = (UniqueConstraint("center_name", "loading_point_name", name="uq_center_loading_point"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    center_name: Mapped[str] = mapped_column(String(100), index=True)
    loading_point_name: Mapped[str] = mapped_column(String(100))
    lot_address: Mapped[Optional[str]] = mapped_column(String(200), default=None)
    road_address: Mapped[Optional[str]] = mapped_column(String(200), default=None)
    manager1: Mapped[Optional[str]] = mapped_column(String(50), default=None)
    manager2: Mapped[Optional[str]] = mapped_column(String(50), default=None)
    phone1: Mapped[Optional[str]] = mapped_column(String(20), default=None)
    phone2: Mapped[Optional[str]] = mapped_column(String(20), default=None)
    remarks: Mapped[Optional[str]] = mapped_column(Text, default=None)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    fixed_contracts: Mapped[list["FixedContract"]] = relationship(back_populates="loading_point")
    center_fares: Mapped[list["CenterFare"]] = relationship(back_populates="loading_point")

    def __repr__(self) -> str:
        return f"<LoadingPoint {self.center_name}/{self.loading_point_name}>"


class Driver(TimestampMixin, Base):
    __tablename__ = "drivers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(50), index=True)
    phone: Mapped[str] = mapped_column(String(20), unique=True)
    vehicle_number: Mapped[str] = mapped_column(String(20))
    business_name: Mapped[Optional[str]] = mapped_column(String(100), default=None)
    representative: Mapped[Optional[str]] = mapped_column(String(50), default=None)
    business_number: Mapped[Optional[str]] = mapped_column(String(50), default=None)
    bank_name: Mapped[Optional[str]] = mapped_column(String(50), default=None)
    account_number: Mapped[Optional[str]] = mapped_column(String(50), default=None)
    remarks: Mapped[Optional[str]] = mapped_column(Text, default=None)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    vehicles: Mapped[list["Vehicle"]] = relationship(back_populates="driver")
    fixed_contracts: Mapped[list["FixedContract"]] = relationship(back_populates="driver")
    charters: Mapped[list["CharterRequest"]] = relationship(back_populates="driver")
    settlements: Mapped[list["Settlement"]] = relationship(back_populates="driver")

    def __repr__(self) -> str:
        return f"<Driver {self.name} ({self.phone})>"


class Vehicle(TimestampMixin, Base):
    __tablename__ = "vehicles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    plate_number: Mapped[str] = mapped_column(String(20), unique=True)
    vehicle_type: Mapped[str] = mapped_column(String(50))
    ownership: Mapped[str] = mapped_column(String(16), default="OWNED")
    driver_id: Mapped[Optional[str]] = mapped_column(ForeignKey("drivers.id"), default=None)
    year: Mapped[Optional[int]] = mapped_column(Integer, default=None)
    capacity_ton: Mapped[Optional[float]] = mapped_column(Float, default=None)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    driver: Mapped[Optional[Driver]] = relationship(back_populates="vehicles")

    def __repr__(self) -> str:
        return f"<Vehicle {self.plate_number}>"


class FixedContract(TimestampMixin, Base):
    __tablename__ = "fixed_contracts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    loading_point_id: Mapped[str] = mapped_column(ForeignKey("loading_points.id"), index=True)
    driver_id: Mapped[Optional[str]] = mapped_column(ForeignKey("drivers.id"), default=None, index=True)
    route_name: Mapped[str] = mapped_column(String(100))
    operating_days: Mapped[list[int]] = mapped_column(JSON, default=list)
    center_contract_type: Mapped[str] = mapped_column(String(32))
    driver_contract_type: Mapped[Optional[str]] = mapped_column(String(32), default=None)
    center_amount: Mapped[int] = mapped_column(Integer, default=0)
    driver_amount: Mapped[Optional[int]] = mapped_column(Integer, default=None)
    start_date: Mapped[Optional[date]] = mapped_column(Date, default=None)
    end_date: Mapped[Optional[date]] = mapped_column(Date, default=None)
    special_conditions: Mapped[Optional[str]] = mapped_column(Text, default=None)
    remarks: Mapped[Optional[str]] = mapped_column(Text, default=None)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_by: Mapped[Optional[str]] = mapped_column(String(64), default=None)

    loading_point: Mapped[LoadingPoint] = relationship(back_populates="fixed_contracts")
    driver: Mapped[Optional[Driver]] = relationship(back_populates="fixed_contracts")

    def __repr__(self) -> str:
        return f"<FixedContract {self.route_name}>"


class CenterFare(TimestampMixin, Base):
    __tablename__ = "center_fares"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    loading_point_id: Mapped[str] = mapped_column(ForeignKey("loading_points.id"), index=True)
    vehicle_type: Mapped[str] = mapped_column(String(50))
    # NULL region is the general rate for the center and vehicle type
    region: Mapped[Optional[str]] = mapped_column(String(100), default=None)
    fare_type: Mapped[str] = mapped_column(String(16), default="BASIC")
    base_fare: Mapped[int] = mapped_column(Integer, default=0)
    extra_stop_fee: Mapped[int] = mapped_column(Integer, default=0)
    extra_region_fee: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    loading_point: Mapped[LoadingPoint] = relationship(back_populates="center_fares")

    def __repr__(self) -> str:
        return f"<CenterFare {self.vehicle_type}/{self.region or '*'} {self.fare_type}>"


class CharterRequest(TimestampMixin, Base):
    __tablename__ = "charter_requests"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    loading_point_id: Mapped[str] = mapped_column(ForeignKey("loading_points.id"), index=True)
    vehicle_type: Mapped[str] = mapped_column(String(50))
    date: Mapped[dt.date] = mapped_column(Date, index=True)
    is_negotiated: Mapped[bool] = mapped_column(Boolean, default=False)
    negotiated_fare: Mapped[Optional[int]] = mapped_column(Integer, default=None)
    base_fare: Mapped[int] = mapped_column(Integer, default=0)
    region_fare: Mapped[int] = mapped_column(Integer, default=0)
    stop_fare: Mapped[int] = mapped_column(Integer, default=0)
    extra_fare: Mapped[int] = mapped_column(Integer, default=0)
    total_fare: Mapped[int] = mapped_column(Integer, default=0)
    driver_id: Mapped[str] = mapped_column(ForeignKey("drivers.id"), index=True)
    driver_fare: Mapped[int] = mapped_column(Integer, default=0)
    notes: Mapped[Optional[str]] = mapped_column(Text, default=None)
    created_by: Mapped[Optional[str]] = mapped_column(String(64), default=None)

    loading_point: Mapped[LoadingPoint] = relationship()
    driver: Mapped[Driver] = relationship(back_populates="charters")
    destinations: Mapped[list["CharterDestination"]] = relationship(
        back_populates="charter",
        cascade="all, delete-orphan",
        order_by="CharterDestination.order",
    )

    def __repr__(self) -> str:
        return f"<CharterRequest {self.date} {self.vehicle_type}>"


class CharterDestination(Base):
    __tablename__ = "charter_destinations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    charter_request_id: Mapped[str] = mapped_column(ForeignKey("charter_requests.id", ondelete="CASCADE"))
    region: Mapped[str] = mapped_column(String(100))
    order: Mapped[int] = mapped_column(Integer, default=1)

    charter: Mapped[CharterRequest] = relationship(back_populates="destinations")


class Settlement(TimestampMixin, Base):
    __tablename__ = "settlements"
    __table_args__ = (UniqueConstraint("driver_id", "year_month", name="uq_settlement_driver_month"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    driver_id: Mapped[str] = mapped_column(ForeignKey("drivers.id"), index=True)
    year_month: Mapped[str] = mapped_column(String(7), index=True)
    status: Mapped[str] = mapped_column(String(16), default="DRAFT")  # DRAFT|CONFIRMED|PAID
    total_charters: Mapped[int] = mapped_column(Integer, default=0)
    total_base_fare: Mapped[int] = mapped_column(Integer, default=0)
    total_deductions: Mapped[int] = mapped_column(Integer, default=0)
    total_additions: Mapped[int] = mapped_column(Integer, default=0)
    final_amount: Mapped[int] = mapped_column(Integer, default=0)
    remarks: Mapped[Optional[str]] = mapped_column(Text, default=None)
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), default=None)
    confirmed_by: Mapped[Optional[str]] = mapped_column(String(64), default=None)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), default=None)
    created_by: Mapped[Optional[str]] = mapped_column(String(64), default=None)
    updated_by: Mapped[Optional[str]] = mapped_column(String(64), default=None)

    driver: Mapped[Driver] = relationship(back_populates="settlements")
    items: Mapped[list["SettlementItem"]] = relationship(
        back_populates="settlement",
        cascade="all, delete-orphan",
        order_by="SettlementItem.date",
    )

    def __repr__(self) -> str:
        return f"<Settlement {self.driver_id} {self.year_month} {self.status}>"


class SettlementItem(Base):
    __tablename__ = "settlement_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    settlement_id: Mapped[str] = mapped_column(ForeignKey("settlements.id", ondelete="CASCADE"), index=True)
    charter_id: Mapped[Optional[str]] = mapped_column(String(36), default=None)
    type: Mapped[str] = mapped_column(String(16))  # TRIP|DEDUCTION|ADDITION
    description: Mapped[str] = mapped_column(String(300))
    # Deductions are stored negative
    amount: Mapped[int] = mapped_column(Integer, default=0)
    date: Mapped[dt.date] = mapped_column(Date)
    is_manual: Mapped[bool] = mapped_column(Boolean, default=False)

    settlement: Mapped[Settlement] = relationship(back_populates="items")


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    actor: Mapped[str] = mapped_column(String(64), default="system")
    action: Mapped[str] = mapped_column(String(32))
    entity_type: Mapped[str] = mapped_column(String(64), index=True)
    entity_id: Mapped[str] = mapped_column(String(64))
    changes: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, default=None)
    extra: Mapped[Optional[dict[str, Any]]] = mapped_column("metadata", JSON, default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
