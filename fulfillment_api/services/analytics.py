from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment_api.core.constants import UserRole
from fulfillment_api.repositories.analytics import TRUNC_UNITS, AnalyticsRepository
from fulfillment_api.repositories.platform import CompanyRepository
from fulfillment_api.schemas.analytics import (
    AnalyticsFilters,
    CompanyBreakdown,
    CompanyBreakdownRow,
    MarginSummary,
    RevenueSummary,
    TimeRange,
    TimeSeries,
    TimeSeriesPeriod,
    TimeSeriesTotals,
)
from fulfillment_api.services.base import BaseService

MONTH_NAMES = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
ONE_MS = timedelta(milliseconds=1)
EPOCH_START = datetime(2020, 1, 1, tzinfo=timezone.utc)

BREAKDOWN_SORT_KEYS = {
    "revenue": lambda row: row.total_revenue,
    "margin": lambda row: row.total_margin_amount,
    "orderCount": lambda row: row.order_count,
    "companyName": lambda row: row.company_name.lower(),
}


def _utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value.astimezone(timezone.utc)


# PUBLIC_INTERFACE
def period_start(moment: datetime, unit: str) -> datetime:
    """Start of the month, quarter or year containing `moment` (UTC)."""
    moment = _utc(moment)
    if unit == "month":
        return datetime(moment.year, moment.month, 1, tzinfo=timezone.utc)
    if unit == "quarter":
        return datetime(moment.year, (moment.month - 1) // 3 * 3 + 1, 1, tzinfo=timezone.utc)
    if unit == "year":
        return datetime(moment.year, 1, 1, tzinfo=timezone.utc)
    raise ValueError(f"Unsupported time unit: {unit}")


# PUBLIC_INTERFACE
def next_period_start(start: datetime, unit: str) -> datetime:
    start = period_start(start, unit)
    months = {"month": 1, "quarter": 3, "year": 12}[unit]
    index = start.month - 1 + months
    return datetime(start.year + index // 12, index % 12 + 1, 1, tzinfo=timezone.utc)


# PUBLIC_INTERFACE
def period_end(start: datetime, unit: str) -> datetime:
    """Last millisecond of the unit that begins at `start`."""
    return next_period_start(start, unit) - ONE_MS


# PUBLIC_INTERFACE
def period_label(start: datetime, unit: str) -> str:
    start = _utc(start)
    if unit == "month":
        return f"{MONTH_NAMES[start.month - 1]} {start.year}"
    if unit == "quarter":
        return f"Q{(start.month - 1) // 3 + 1} {start.year}"
    return str(start.year)


# PUBLIC_INTERFACE
def calculate_time_range(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    time_period: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Tuple[datetime, datetime]:
    """
    Resolve the reporting window.

    Explicit start/end win when both are present. Otherwise the current month,
    quarter or year is used for `time_period`, falling back to everything from
    2020-01-01 to the end of next year.
    """
    now = _utc(now or datetime.now(tz=timezone.utc))
    if start_date and end_date:
        start, end = _utc(start_date), _utc(end_date)
        if start > end:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="Start date must be before end date"
            )
        return start, end
    if time_period in TRUNC_UNITS:
        start = period_start(now, time_period)
        return start, period_end(start, time_period)
    return EPOCH_START, datetime(now.year + 2, 1, 1, tzinfo=timezone.utc) - ONE_MS


def _avg(total: float, count: int) -> float:
    return round(total / count, 2) if count else 0.0


class AnalyticsService(BaseService):
    """Read-only revenue and margin reporting over paid invoices."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.analytics = AnalyticsRepository(session)
        self.companies = CompanyRepository(session)

    async def _company_filter(
        self, user: Any, company_id: Optional[UUID], time_period: Optional[str] = None
    ) -> AnalyticsFilters:
        if user.role == UserRole.CLIENT.value:
            if company_id and company_id != user.company_id:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN, detail="You can only view your own company's analytics"
                )
            company_id = user.company_id
        name = "All Companies"
        if company_id:
            company = await self.companies.get(user.platform_id, company_id)
            if company is None:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Company not found")
            name = company.name
        return AnalyticsFilters(company_id=company_id, company_name=name, time_period=time_period)

    # PUBLIC_INTERFACE
    async def revenue_summary(
        self,
        user: Any,
        *,
        company_id: Optional[UUID] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        time_period: Optional[str] = None,
    ) -> RevenueSummary:
        start, end = calculate_time_range(start_date, end_date, time_period)
        filters = await self._company_filter(user, company_id, time_period)
        totals = await self.analytics.totals(user.platform_id, start, end, filters.company_id)
        return RevenueSummary(
            total_revenue=round(totals["revenue"], 2),
            order_count=totals["order_count"],
            average_order_value=_avg(totals["revenue"], totals["order_count"]),
            time_range=TimeRange(start=start, end=end),
            filters=filters,
        )

    # PUBLIC_INTERFACE
    async def margin_summary(
        self,
        user: Any,
        *,
        company_id: Optional[UUID] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        time_period: Optional[str] = None,
    ) -> MarginSummary:
        start, end = calculate_time_range(start_date, end_date, time_period)
        filters = await self._company_filter(user, company_id, time_period)
        totals = await self.analytics.totals(user.platform_id, start, end, filters.company_id)
        return MarginSummary(
            total_margin_amount=round(totals["margin"], 2),
            average_margin_percent=round(totals["avg_margin_percent"], 2),
            order_count=totals["order_count"],
            time_range=TimeRange(start=start, end=end),
            filters=filters,
        )

    # PUBLIC_INTERFACE
    async def time_series(
        self,
        user: Any,
        *,
        group_by: str,
        company_id: Optional[UUID] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> TimeSeries:
        """
        Revenue and margin per calendar bucket.

        Buckets come from date_trunc in the database; only buckets holding at
        least one paid order are returned. `totals` is computed separately over
        the same filter.
        """
        start, end = calculate_time_range(start_date, end_date)
        filters = await self._company_filter(user, company_id)
        rows = await self.analytics.time_series(user.platform_id, start, end, group_by, filters.company_id)
        periods: List[TimeSeriesPeriod] = []
        for row in rows:
            bucket = period_start(row["bucket"], group_by)
            periods.append(
                TimeSeriesPeriod(
                    label=period_label(bucket, group_by),
                    period_start=bucket,
                    period_end=period_end(bucket, group_by),
                    total_revenue=row["revenue"],
                    total_margin_amount=row["margin"],
                    average_margin_percent=round(row["avg_margin_percent"], 2),
                    order_count=row["order_count"],
                )
            )
        totals = await self.analytics.totals(user.platform_id, start, end, filters.company_id)
        return TimeSeries(
            group_by=group_by,
            time_range=TimeRange(start=start, end=end),
            filters=filters,
            periods=periods,
            totals=TimeSeriesTotals(
                total_revenue=totals["revenue"],
                total_margin_amount=totals["margin"],
                order_count=totals["order_count"],
            ),
        )

    # PUBLIC_INTERFACE
    async def company_breakdown(
        self,
        user: Any,
        *,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        time_period: Optional[str] = None,
        sort_by: str = "revenue",
        sort_order: str = "desc",
    ) -> CompanyBreakdown:
        start, end = calculate_time_range(start_date, end_date, time_period)
        rows: List[Dict[str, Any]] = await self.analytics.company_breakdown(user.platform_id, start, end)
        companies = [
            CompanyBreakdownRow(
                company_id=row["company_id"],
                company_name=row["company_name"],
                total_revenue=row["revenue"],
                total_margin_amount=row["margin"],
                average_margin_percent=round(row["avg_margin_percent"], 2),
                order_count=row["order_count"],
                average_order_value=_avg(row["revenue"], row["order_count"]),
            )
            for row in rows
        ]
        companies.sort(key=BREAKDOWN_SORT_KEYS[sort_by], reverse=sort_order == "desc")
        return CompanyBreakdown(
            time_range=TimeRange(start=start, end=end),
            companies=companies,
            totals=TimeSeriesTotals(
                total_revenue=sum(c.total_revenue for c in companies),
                total_margin_amount=sum(c.total_margin_amount for c in companies),
                order_count=sum(c.order_count for c in companies),
            ),
        )
