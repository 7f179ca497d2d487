"""
Dashboard summary figures.
"""

import datetime as dt
from typing import Optional

from pydantic import BaseModel
from sqlalchemy import func, select

from logiops.data.models.settlement import SettlementStatus
from logiops.data.tables import CharterRequest, Driver, FixedContract, Settlement, Vehicle
from logiops.services.base import BaseService
from logiops.services.settlements import month_range


class DashboardSummary(BaseModel):
    """Headline numbers for the back-office home screen."""

    date: dt.date
    year_month: str

    active_drivers: int
    active_vehicles: int
    active_fixed_contracts: int

    charters_today: int
    charters_tomorrow: int

    # Current month (won)
    monthly_charters: int
    monthly_revenue: int
    monthly_driver_cost: int
    monthly_margin: int
    margin_rate: float

    settlements_by_status: dict[str, int]


class DashboardService(BaseService):
    """Read-only aggregates; writes nothing and records no audit entries."""

    service_name = "dashboard"

    def _count(self, stmt) -> int:
        return self.session.execute(stmt).scalar_one()

    def summary(self, today: Optional[dt.date] = None) -> DashboardSummary:
        today = today or dt.date.today()
        tomorrow = today + dt.timedelta(days=1)
        year_month = today.strftime("%Y-%m")
        first_day, last_day = month_range(year_month)

        active_drivers = self._count(select(func.count(Driver.id)).where(Driver.is_active.is_(True)))
        active_vehicles = self._count(select(func.count(Vehicle.id)).where(Vehicle.is_active.is_(True)))
        active_contracts = self._count(
            select(func.count(FixedContract.id)).where(FixedContract.is_active.is_(True))
        )
        charters_today = self._count(select(func.count(CharterRequest.id)).where(CharterRequest.date == today))
        charters_tomorrow = self._count(
            select(func.count(CharterRequest.id)).where(CharterRequest.date == tomorrow)
        )

        monthly = self.session.execute(
            select(
                func.count(CharterRequest.id),
                func.coalesce(func.sum(CharterRequest.total_fare), 0),
                func.coalesce(func.sum(CharterRequest.driver_fare), 0),
            ).where(CharterRequest.date >= first_day, CharterRequest.date <= last_day)
        ).one()
        monthly_charters, revenue, driver_cost = int(monthly[0]), int(monthly[1]), int(monthly[2])
        margin = revenue - driver_cost

        by_status = {status.value: 0 for status in SettlementStatus}
        for status, count in self.session.execute(
            select(Settlement.status, func.count(Settlement.id))
            .where(Settlement.year_month == year_month)
            .group_by(Settlement.status)
        ).all():
            by_status[status] = count

        self.logger.info("dashboard_summary_built", date=today.isoformat(), monthly_charters=monthly_charters)
        return DashboardSummary(
            date=today,
            year_month=year_month,
            active_drivers=active_drivers,
            active_vehicles=active_vehicles,
            active_fixed_contracts=active_contracts,
            charters_today=charters_today,
            charters_tomorrow=charters_tomorrow,
            monthly_charters=monthly_charters,
            monthly_revenue=revenue,
            monthly_driver_cost=driver_cost,
            monthly_margin=margin,
            margin_rate=round(margin / revenue * 100, 1) if revenue else 0.0,
            settlements_by_status=by_status,
        )
