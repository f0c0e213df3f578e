import uuid
from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest

from fulfillment_api.services import pricing
from fulfillment_api.services.pricing import (
    find_overlapping_tier,
    format_volume,
    quote_price,
    ranges_overlap,
    select_matching_tier,
)
from tests.conftest import PLATFORM_ID, make_user


def tier(vmin, vmax, base="1000", city="Dubai", country="UAE", **extra):
    now = datetime.now(tz=timezone.utc)
    fields = dict(
        id=uuid.uuid4(),
        platform_id=PLATFORM_ID,
        country=country,
        city=city,
        volume_min=Decimal(vmin),
        volume_max=Decimal(vmax) if vmax is not None else None,
        base_price=Decimal(base),
        is_active=True,
        created_at=now,
        updated_at=now,
    )
    fields.update(extra)
    return SimpleNamespace(**fields)


def test_touching_ranges_do_not_overlap():
    assert not ranges_overlap(0, 10, 10, 20)
    assert not ranges_overlap(10, 20, 0, 10)


def test_unbounded_range_overlaps_everything_above_its_minimum():
    assert ranges_overlap(50, None, 100, 200)
    assert ranges_overlap(0, 60, 50, None)
    assert not ranges_overlap(0, 50, 50, None)


def test_find_overlapping_tier_returns_the_clash():
    existing = [tier("0", "10"), tier("10", "20")]
    assert find_overlapping_tier(existing, 5, 12) is existing[0]
    assert find_overlapping_tier(existing, 20, None) is None


def test_matching_prefers_the_narrowest_range():
    wide = tier("0", None)
    narrow = tier("5", "10")
    assert select_matching_tier([wide, narrow], 7) is narrow
    assert select_matching_tier([wide, narrow], 10) is wide
    assert select_matching_tier([narrow], 10) is None


def test_quote_price_rounds_to_cents():
    quote = quote_price("1000", "25")
    assert quote.margin_amount == Decimal("250.00")
    assert quote.final_total == Decimal("1250.00")

    odd = quote_price("99.99", "12.5")
    assert odd.margin_amount == Decimal("12.50")
    assert odd.final_total == Decimal("112.49")


def test_format_volume():
    assert format_volume(Decimal("10.500")) == "10.5"
    assert format_volume(None) == "unlimited"


class FakeTierRepo:
    store = []
    referenced = set()

    def __init__(self, _session):
        pass

    async def active_tiers_for(self, platform_id, country, city, exclude_id=None):
        return [
            t for t in self.store
            if t.country == country and t.city == city and t.is_active and t.id != exclude_id
        ]

    async def create(self, platform_id, fields):
        created = tier(
            str(fields["volume_min"]),
            str(fields["volume_max"]) if fields["volume_max"] is not None else None,
            base=str(fields["base_price"]),
            city=fields["city"],
            country=fields["country"],
            is_active=fields.get("is_active", True),
        )
        self.store.append(created)
        return created

    async def get(self, platform_id, tier_id):
        return next((t for t in self.store if t.id == tier_id), None)

    async def update(self, existing, fields):
        for field, value in fields.items():
            setattr(existing, field, value)
        return existing

    async def is_referenced(self, tier_id):
        return tier_id in self.referenced

    async def delete(self, existing):
        self.store.remove(existing)


@pytest.fixture
def tier_repo(monkeypatch):
    FakeTierRepo.store = [tier("0", "10")]
    FakeTierRepo.referenced = set()
    monkeypatch.setattr(pricing, "PricingTierRepository", FakeTierRepo, raising=True)
    return FakeTierRepo


@pytest.mark.anyio
async def test_overlapping_tier_is_rejected_with_409(client_for, tier_repo):
    payload = {"country": "UAE", "city": "Dubai", "volume_min": 5, "volume_max": 15, "base_price": 800}
    async with client_for(make_user("ADMIN")) as ac:
        resp = await ac.post("/api/v1/pricing-tiers", json=payload)
    assert resp.status_code == 409
    body = resp.json()
    assert body["success"] is False
    assert body["message"] == "Volume range 5-15 m³ overlaps with existing tier (0-10 m³) for Dubai, UAE"


@pytest.mark.anyio
async def test_adjacent_tier_is_created(client_for, tier_repo, fake_session):
    payload = {"country": "UAE", "city": "Dubai", "volume_min": 10, "volume_max": None, "base_price": 1500}
    async with client_for(make_user("ADMIN")) as ac:
        resp = await ac.post("/api/v1/pricing-tiers", json=payload)
    assert resp.status_code == 201
    data = resp.json()["data"]
    assert data["volume_min"] == 10
    assert data["volume_max"] is None
    assert fake_session.commits == 1
    assert len(tier_repo.store) == 2


@pytest.mark.anyio
async def test_logistics_cannot_create_tiers(client_for, tier_repo):
    payload = {"country": "UAE", "city": "Dubai", "volume_min": 10, "base_price": 1500}
    async with client_for(make_user("LOGISTICS")) as ac:
        resp = await ac.post("/api/v1/pricing-tiers", json=payload)
    assert resp.status_code == 403


@pytest.mark.anyio
async def test_calculate_rejects_negative_volume(client_for, tier_repo):
    async with client_for(make_user("CLIENT", company_id=uuid.uuid4())) as ac:
        resp = await ac.get(
            "/api/v1/pricing-tiers/calculate", params={"country": "UAE", "city": "Dubai", "volume": "-1"}
        )
    assert resp.status_code == 400
    assert resp.json()["message"] == "Volume must be a non-negative number"


@pytest.mark.anyio
async def test_inactive_tier_overlapping_an_active_one_is_rejected(client_for, tier_repo, fake_session):
    payload = {
        "country": "UAE", "city": "Dubai", "volume_min": 5, "volume_max": 15, "base_price": 800, "is_active": False,
    }
    async with client_for(make_user("ADMIN")) as ac:
        resp = await ac.post("/api/v1/pricing-tiers", json=payload)
    assert resp.status_code == 409
    assert fake_session.commits == 0
    assert len(tier_repo.store) == 1


@pytest.mark.anyio
async def test_tier_overlapping_only_inactive_tiers_is_created(client_for, tier_repo):
    tier_repo.store[0].is_active = False
    payload = {"country": "UAE", "city": "Dubai", "volume_min": 5, "volume_max": 15, "base_price": 800}
    async with client_for(make_user("ADMIN")) as ac:
        resp = await ac.post("/api/v1/pricing-tiers", json=payload)
    assert resp.status_code == 201
    assert len(tier_repo.store) == 2


@pytest.mark.anyio
async def test_activating_an_overlapping_tier_is_rejected(client_for, tier_repo, fake_session):
    dormant = tier("5", "15", is_active=False)
    tier_repo.store.append(dormant)
    async with client_for(make_user("ADMIN")) as ac:
        resp = await ac.patch(f"/api/v1/pricing-tiers/{dormant.id}", json={"is_active": True})
    assert resp.status_code == 409
    assert resp.json()["message"] == "Volume range 5-15 m³ overlaps with existing tier (0-10 m³) for Dubai, UAE"
    assert dormant.is_active is False
    assert fake_session.commits == 0


@pytest.mark.anyio
async def test_activating_a_non_overlapping_tier_succeeds(client_for, tier_repo):
    dormant = tier("10", "20", is_active=False)
    tier_repo.store.append(dormant)
    async with client_for(make_user("ADMIN")) as ac:
        resp = await ac.patch(f"/api/v1/pricing-tiers/{dormant.id}", json={"is_active": True})
    assert resp.status_code == 200
    assert resp.json()["data"]["is_active"] is True


@pytest.mark.anyio
async def test_update_does_not_collide_with_itself(client_for, tier_repo, fake_session):
    own = tier_repo.store[0]
    async with client_for(make_user("ADMIN")) as ac:
        resp = await ac.patch(f"/api/v1/pricing-tiers/{own.id}", json={"volume_min": 2, "volume_max": 8})
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["volume_min"] == 2
    assert data["volume_max"] == 8
    assert fake_session.commits == 1


@pytest.mark.anyio
async def test_update_unknown_tier_is_404(client_for, tier_repo):
    async with client_for(make_user("ADMIN")) as ac:
        resp = await ac.patch(f"/api/v1/pricing-tiers/{uuid.uuid4()}", json={"base_price": 900})
    assert resp.status_code == 404
    assert resp.json()["message"] == "Pricing tier not found"


@pytest.mark.anyio
async def test_delete_tier_then_delete_again_is_404(client_for, tier_repo):
    own = tier_repo.store[0]
    async with client_for(make_user("ADMIN")) as ac:
        first = await ac.delete(f"/api/v1/pricing-tiers/{own.id}")
        second = await ac.delete(f"/api/v1/pricing-tiers/{own.id}")
    assert first.status_code == 200
    assert second.status_code == 404
    assert tier_repo.store == []


@pytest.mark.anyio
async def test_delete_referenced_tier_is_409(client_for, tier_repo):
    own = tier_repo.store[0]
    tier_repo.referenced = {own.id}
    async with client_for(make_user("ADMIN")) as ac:
        resp = await ac.delete(f"/api/v1/pricing-tiers/{own.id}")
    assert resp.status_code == 409
    assert resp.json()["message"].startswith("Cannot delete pricing tier because it is referenced")
    assert tier_repo.store == [own]
