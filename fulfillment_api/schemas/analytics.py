from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TimeRange(_CamelModel):
    start: datetime
    end: datetime


class AnalyticsFilters(_CamelModel):
    company_id: Optional[UUID] = None
    company_name: Optional[str] = None
    time_period: Optional[str] = None


class RevenueSummary(_CamelModel):
    total_revenue: float
    order_count: int
    average_order_value: float
    time_range: TimeRange
    filters: AnalyticsFilters


class MarginSummary(_CamelModel):
    total_margin_amount: float
    average_margin_percent: float
    order_count: int
    time_range: TimeRange
    filters: AnalyticsFilters


class TimeSeriesPeriod(_CamelModel):
    label: str
    period_start: datetime
    period_end: datetime
    total_revenue: float
    total_margin_amount: float
    average_margin_percent: float
    order_count: int


class TimeSeriesTotals(_CamelModel):
    total_revenue: float
    total_margin_amount: float
    order_count: int


class TimeSeries(_CamelModel):
    group_by: str
    time_range: TimeRange
    filters: AnalyticsFilters
    periods: List[TimeSeriesPeriod]
    totals: TimeSeriesTotals


class CompanyBreakdownRow(_CamelModel):
    company_id: UUID
    company_name: str
    total_revenue: float
    total_margin_amount: float
    average_margin_percent: float
    order_count: int
    average_order_value: float


class CompanyBreakdown(_CamelModel):
    time_range: TimeRange
    companies: List[CompanyBreakdownRow]
    totals: TimeSeriesTotals
