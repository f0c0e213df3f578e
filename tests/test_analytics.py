import uuid
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from fastapi import HTTPException

from fulfillment_api.services import analytics
from fulfillment_api.services.analytics import (
    AnalyticsService,
    calculate_time_range,
    period_end,
    period_label,
    period_start,
)
from tests.conftest import FakeSession, make_user

UTC = timezone.utc


def test_period_bounds_and_labels():
    moment = datetime(2025, 5, 17, 13, 45, tzinfo=UTC)
    assert period_start(moment, "month") == datetime(2025, 5, 1, tzinfo=UTC)
    assert period_start(moment, "quarter") == datetime(2025, 4, 1, tzinfo=UTC)
    assert period_start(moment, "year") == datetime(2025, 1, 1, tzinfo=UTC)
    assert period_end(datetime(2025, 12, 1, tzinfo=UTC), "month") == datetime(
        2025, 12, 31, 23, 59, 59, 999000, tzinfo=UTC
    )
    assert period_label(datetime(2025, 1, 1, tzinfo=UTC), "month") == "Jan 2025"
    assert period_label(datetime(2025, 10, 1, tzinfo=UTC), "quarter") == "Q4 2025"
    assert period_label(datetime(2025, 1, 1, tzinfo=UTC), "year") == "2025"


def test_time_range_defaults_and_presets():
    now = datetime(2025, 8, 10, tzinfo=UTC)
    start, end = calculate_time_range(now=now)
    assert start == datetime(2020, 1, 1, tzinfo=UTC)
    assert end == datetime(2026, 12, 31, 23, 59, 59, 999000, tzinfo=UTC)

    start, end = calculate_time_range(time_period="quarter", now=now)
    assert start == datetime(2025, 7, 1, tzinfo=UTC)
    assert end == datetime(2025, 9, 30, 23, 59, 59, 999000, tzinfo=UTC)


def test_time_range_rejects_reversed_dates():
    with pytest.raises(HTTPException) as exc:
        calculate_time_range(datetime(2025, 2, 1, tzinfo=UTC), datetime(2025, 1, 1, tzinfo=UTC))
    assert exc.value.status_code == 400
    assert exc.value.detail == "Start date must be before end date"


COMPANY_A = uuid.uuid4()


class FakeAnalyticsRepo:
    calls = []

    def __init__(self, _session):
        pass

    async def time_series(self, platform_id, start, end, unit, company_id):
        self.calls.append(("time_series", company_id))
        return [
            {"bucket": datetime(2025, 1, 1, tzinfo=UTC), "revenue": 1250.0, "margin": 250.0,
             "avg_margin_percent": 25.0, "order_count": 1},
            {"bucket": datetime(2025, 3, 1, tzinfo=UTC), "revenue": 2200.0, "margin": 200.0,
             "avg_margin_percent": 10.0, "order_count": 2},
        ]

    async def totals(self, platform_id, start, end, company_id):
        self.calls.append(("totals", company_id))
        return {"revenue": 3450.0, "margin": 450.0, "avg_margin_percent": 15.0, "order_count": 3}


class FakeCompanyRepo:
    def __init__(self, _session):
        pass

    async def get(self, platform_id, company_id):
        if company_id == COMPANY_A:
            return SimpleNamespace(id=COMPANY_A, name="Acme Events")
        return None


@pytest.fixture
def service(monkeypatch):
    FakeAnalyticsRepo.calls = []
    monkeypatch.setattr(analytics, "AnalyticsRepository", FakeAnalyticsRepo, raising=True)
    monkeypatch.setattr(analytics, "CompanyRepository", FakeCompanyRepo, raising=True)
    return AnalyticsService(FakeSession())


@pytest.mark.anyio
async def test_time_series_periods_sum_to_totals(service):
    series = await service.time_series(make_user("ADMIN"), group_by="month")
    assert [p.label for p in series.periods] == ["Jan 2025", "Mar 2025"]
    assert sum(p.total_revenue for p in series.periods) == series.totals.total_revenue
    assert sum(p.order_count for p in series.periods) == series.totals.order_count
    assert series.filters.company_name == "All Companies"


@pytest.mark.anyio
async def test_client_is_pinned_to_own_company(service):
    client = make_user("CLIENT", company_id=COMPANY_A)
    series = await service.time_series(client, group_by="quarter")
    assert series.filters.company_id == COMPANY_A
    assert series.filters.company_name == "Acme Events"
    assert ("totals", COMPANY_A) in FakeAnalyticsRepo.calls

    with pytest.raises(HTTPException) as exc:
        await service.time_series(client, group_by="month", company_id=uuid.uuid4())
    assert exc.value.status_code == 403


@pytest.mark.anyio
async def test_unknown_company_is_404(service):
    with pytest.raises(HTTPException) as exc:
        await service.revenue_summary(make_user("ADMIN"), company_id=uuid.uuid4())
    assert exc.value.status_code == 404


@pytest.mark.anyio
async def test_revenue_summary_average(service):
    summary = await service.revenue_summary(make_user("ADMIN"))
    assert summary.total_revenue == 3450.0
    assert summary.average_order_value == 1150.0
