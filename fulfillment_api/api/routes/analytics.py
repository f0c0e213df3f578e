from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment_api.core.constants import UserRole
from fulfillment_api.core.deps import get_db_session, require_roles
from fulfillment_api.schemas.analytics import CompanyBreakdown, MarginSummary, RevenueSummary, TimeSeries
from fulfillment_api.schemas.common import ApiResponse, ok
from fulfillment_api.services.analytics import AnalyticsService

# PUBLIC_INTERFACE
router = APIRouter(
    prefix="/analytics",
    tags=["Analytics"],
)

TimeUnit = Literal["month", "quarter", "year"]


# PUBLIC_INTERFACE
@router.get(
    "/revenue-summary",
    response_model=ApiResponse[RevenueSummary],
    response_model_by_alias=True,
    summary="Revenue summary",
    description="Revenue and order count over orders whose invoice was paid in the window.",
)
async def revenue_summary(
    company_id: Optional[UUID] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    time_period: Optional[TimeUnit] = Query(None),
    user=Depends(require_roles(UserRole.ADMIN.value)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    summary = await AnalyticsService(session).revenue_summary(
        user, company_id=company_id, start_date=start_date, end_date=end_date, time_period=time_period
    )
    return ok(summary, "Revenue summary retrieved successfully")


# PUBLIC_INTERFACE
@router.get(
    "/margin-summary",
    response_model=ApiResponse[MarginSummary],
    response_model_by_alias=True,
    summary="Margin summary",
)
async def margin_summary(
    company_id: Optional[UUID] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    time_period: Optional[TimeUnit] = Query(None),
    user=Depends(require_roles(UserRole.ADMIN.value)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    summary = await AnalyticsService(session).margin_summary(
        user, company_id=company_id, start_date=start_date, end_date=end_date, time_period=time_period
    )
    return ok(summary, "Margin summary retrieved successfully")


# PUBLIC_INTERFACE
@router.get(
    "/time-series",
    response_model=ApiResponse[TimeSeries],
    response_model_by_alias=True,
    summary="Revenue time series",
    description="Paid revenue bucketed by month, quarter or year. CLIENT users see their own company only.",
)
async def time_series(
    group_by: TimeUnit = Query("month", alias="groupBy"),
    company_id: Optional[UUID] = Query(None, alias="companyId"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    user=Depends(require_roles(UserRole.ADMIN.value, UserRole.CLIENT.value)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    series = await AnalyticsService(session).time_series(
        user, group_by=group_by, company_id=company_id, start_date=start_date, end_date=end_date
    )
    return ok(series, "Time series retrieved successfully")


# PUBLIC_INTERFACE
@router.get(
    "/company-breakdown",
    response_model=ApiResponse[CompanyBreakdown],
    response_model_by_alias=True,
    summary="Revenue by company",
)
async def company_breakdown(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    time_period: Optional[TimeUnit] = Query(None),
    sort_by: Literal["revenue", "margin", "orderCount", "companyName"] = Query("revenue"),
    sort_order: Literal["asc", "desc"] = Query("desc"),
    user=Depends(require_roles(UserRole.ADMIN.value)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    breakdown = await AnalyticsService(session).company_breakdown(
        user,
        start_date=start_date,
        end_date=end_date,
        time_period=time_period,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return ok(breakdown, "Company breakdown retrieved successfully")
