"""
Back-office services.

This module contains one service per resource:
- Loading points: Centers and their loading points
- Drivers / Vehicles: Registry, search and import
- Fixed contracts: Recurring routes and their CSV import
- Center fares: Rate table per center, vehicle type and region
- Fare calculator: Charter pricing from the rate table
- Charters: One-off trips priced by the fare calculator
- Settlements: Monthly driver pay with a confirm/lock workflow
- Dashboard: Summary figures
"""

from .base import AuditEntry, BaseService
from .center_fares import CenterFareService
from .charters import CharterService
from .dashboard import DashboardService, DashboardSummary
from .drivers import DriverService
from .fare_calculator import FareCalculator
from .fixed_contracts import FixedContractService
from .loading_points import LoadingPointService
from .settlements import SettlementService
from .vehicles import VehicleService

__all__ = [
    "BaseService",
    "AuditEntry",
    "LoadingPointService",
    "DriverService",
    "VehicleService",
    "FixedContractService",
    "CenterFareService",
    "FareCalculator",
    "CharterService",
    "SettlementService",
    "DashboardService",
    "DashboardSummary",
]
