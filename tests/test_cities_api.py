import uuid
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from fulfillment_api.api.routes import cities
from tests.conftest import PLATFORM_ID, integrity_error, make_user

COUNTRY_ID = uuid.uuid4()


class FakeCountryRepo:
    def __init__(self, _session):
        pass

    async def get(self, platform_id, country_id):
        if country_id == COUNTRY_ID:
            return SimpleNamespace(id=COUNTRY_ID, platform_id=platform_id, name="United Arab Emirates")
        return None


class FakeCityRepo:
    store = {}
    in_use = set()

    def __init__(self, _session):
        pass

    async def get(self, platform_id, city_id):
        city = self.store.get(city_id)
        return city if city is not None and city.platform_id == platform_id else None

    async def create(self, platform_id, *, name, country_id):
        now = datetime.now(tz=timezone.utc)
        city = SimpleNamespace(
            id=uuid.uuid4(),
            platform_id=platform_id,
            country_id=country_id,
            name=name,
            country=SimpleNamespace(id=country_id, name="United Arab Emirates"),
            created_at=now,
            updated_at=now,
        )
        self.store[city.id] = city
        return city

    async def delete(self, city):
        if city.id in self.in_use:
            raise integrity_error("23503", "fk_orders_venue_city_id_cities")
        self.store.pop(city.id, None)

    async def commit(self):
        return None


@pytest.fixture
def repo(monkeypatch):
    FakeCityRepo.store = {}
    FakeCityRepo.in_use = set()
    monkeypatch.setattr(cities, "CityRepository", FakeCityRepo, raising=True)
    monkeypatch.setattr(cities, "CountryRepository", FakeCountryRepo, raising=True)
    return FakeCityRepo


@pytest.mark.anyio
async def test_create_city_embeds_country(client_for, repo):
    async with client_for(make_user("ADMIN")) as ac:
        resp = await ac.post("/api/v1/cities", json={"name": " Dubai ", "country_id": str(COUNTRY_ID)})
    assert resp.status_code == 201
    data = resp.json()["data"]
    assert data["name"] == "Dubai"
    assert data["country"] == {"id": str(COUNTRY_ID), "name": "United Arab Emirates"}


@pytest.mark.anyio
async def test_city_in_unknown_country_is_404(client_for, repo):
    async with client_for(make_user("ADMIN")) as ac:
        resp = await ac.post("/api/v1/cities", json={"name": "Doha", "country_id": str(uuid.uuid4())})
    assert resp.status_code == 404
    assert resp.json()["message"] == "Country not found"


@pytest.mark.anyio
async def test_delete_city_twice_is_404_the_second_time(client_for, repo):
    city = await FakeCityRepo(None).create(PLATFORM_ID, name="Abu Dhabi", country_id=COUNTRY_ID)
    async with client_for(make_user("ADMIN")) as ac:
        first = await ac.delete(f"/api/v1/cities/{city.id}")
        second = await ac.delete(f"/api/v1/cities/{city.id}")
    assert first.status_code == 200
    assert first.json() == {"success": True, "message": "City deleted successfully"}
    assert second.status_code == 404
    assert second.json()["message"] == "City not found"


@pytest.mark.anyio
async def test_city_used_by_orders_cannot_be_deleted(client_for, repo, fake_session):
    city = await FakeCityRepo(None).create(PLATFORM_ID, name="Sharjah", country_id=COUNTRY_ID)
    repo.in_use = {city.id}
    async with client_for(make_user("ADMIN")) as ac:
        resp = await ac.delete(f"/api/v1/cities/{city.id}")
    assert resp.status_code == 409
    assert resp.json()["message"] == "City is still referenced by orders and cannot be deleted"
    assert fake_session.rollbacks == 1
    assert city.id in repo.store


@pytest.mark.anyio
async def test_client_cannot_delete_city(client_for, repo):
    city = await FakeCityRepo(None).create(PLATFORM_ID, name="Ajman", country_id=COUNTRY_ID)
    async with client_for(make_user("CLIENT", company_id=uuid.uuid4())) as ac:
        resp = await ac.delete(f"/api/v1/cities/{city.id}")
    assert resp.status_code == 403
