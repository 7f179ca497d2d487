"""
API routers, one module per resource.
"""

from . import center_fares, charters, dashboard, drivers, fixed_contracts, health, loading_points, settlements, vehicles

ROUTERS = [
    health.router,
    loading_points.router,
    drivers.router,
    vehicles.router,
    fixed_contracts.router,
    center_fares.router,
    charters.router,
    settlements.router,
    dashboard.router,
]

__all__ = ["ROUTERS"]
