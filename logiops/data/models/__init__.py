"""
Pydantic schemas for the back-office records.

Core models:
- LoadingPoint: Logistics centers and their loading points
- Driver / Vehicle: Drivers and the vehicles they operate
- FixedContract: Recurring routes with center and driver contract terms
- CenterFare: Rate table rows used by the fare calculator
- Charter: One-off trips and fare quotes
- Settlement: Monthly driver settlements
"""

from .center_fare import CenterFareCreate, CenterFareOut, CenterFareUpdate, FareType
from .charter import CharterCreate, CharterOut, CharterUpdate, FareQuote, FareQuoteInput
from .common import ImportMode, ImportResult, ImportRowError, Pagination
from .driver import DriverCreate, DriverOut, DriverUpdate
from .fixed_contract import ContractType, FixedContractCreate, FixedContractOut, FixedContractUpdate
from .loading_point import LoadingPointCreate, LoadingPointOut, LoadingPointUpdate
from .settlement import SettlementItemType, SettlementOut, SettlementPreview, SettlementStatus
from .vehicle import VehicleCreate, VehicleOut, VehicleOwnership, VehicleUpdate

__all__ = [
    "ImportMode",
    "ImportResult",
    "ImportRowError",
    "Pagination",
    "LoadingPointCreate",
    "LoadingPointUpdate",
    "LoadingPointOut",
    "DriverCreate",
    "DriverUpdate",
    "DriverOut",
    "VehicleOwnership",
    "VehicleCreate",
    "VehicleUpdate",
    "VehicleOut",
    "ContractType",
    "FixedContractCreate",
    "FixedContractUpdate",
    "FixedContractOut",
    "FareType",
    "CenterFareCreate",
    "CenterFareUpdate",
    "CenterFareOut",
    "FareQuoteInput",
    "FareQuote",
    "CharterCreate",
    "CharterUpdate",
    "CharterOut",
    "SettlementStatus",
    "SettlementItemType",
    "SettlementPreview",
    "SettlementOut",
]
