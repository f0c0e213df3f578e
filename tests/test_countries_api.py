import uuid
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from fulfillment_api.api.routes import countries
from tests.conftest import PLATFORM_ID, integrity_error, make_user


class FakeCountryRepo:
    store = {}
    in_use = set()

    def __init__(self, _session):
        pass

    async def get(self, platform_id, country_id):
        country = self.store.get(country_id)
        return country if country is not None and country.platform_id == platform_id else None

    async def list_countries(self, platform_id, paging, search=None):
        rows = [c for c in self.store.values() if c.platform_id == platform_id]
        if search:
            rows = [c for c in rows if search.lower() in c.name.lower()]
        return rows[paging.offset: paging.offset + paging.limit], len(rows)

    async def create(self, platform_id, name):
        now = datetime.now(tz=timezone.utc)
        country = SimpleNamespace(id=uuid.uuid4(), platform_id=platform_id, name=name, created_at=now, updated_at=now)
        self.store[country.id] = country
        return country

    async def delete(self, country):
        if country.id in self.in_use:
            raise integrity_error("23503", "fk_orders_venue_country_id_countries")
        self.store.pop(country.id, None)

    async def commit(self):
        return None


@pytest.fixture
def repo(monkeypatch):
    FakeCountryRepo.store = {}
    FakeCountryRepo.in_use = set()
    monkeypatch.setattr(countries, "CountryRepository", FakeCountryRepo, raising=True)
    return FakeCountryRepo


@pytest.mark.anyio
async def test_create_list_and_delete_country(client_for, repo):
    async with client_for(make_user("ADMIN")) as ac:
        created = await ac.post("/api/v1/countries", json={"name": "  United Arab Emirates "})
        assert created.status_code == 201
        country_id = created.json()["data"]["id"]
        assert created.json()["data"]["name"] == "United Arab Emirates"

        listed = await ac.get("/api/v1/countries", params={"search_term": "arab"})
        assert listed.json()["meta"] == {"page": 1, "limit": 10, "total": 1}

        first = await ac.delete(f"/api/v1/countries/{country_id}")
        assert first.status_code == 200
        assert first.json() == {"success": True, "message": "Country deleted successfully"}

        second = await ac.delete(f"/api/v1/countries/{country_id}")
    assert second.status_code == 404
    assert second.json()["message"] == "Country not found"


@pytest.mark.anyio
async def test_client_cannot_create_country(client_for, repo):
    async with client_for(make_user("CLIENT", company_id=uuid.uuid4())) as ac:
        resp = await ac.post("/api/v1/countries", json={"name": "Oman"})
    assert resp.status_code == 403


@pytest.mark.anyio
async def test_unknown_sort_field_is_400(client_for, repo):
    async with client_for(make_user("ADMIN")) as ac:
        resp = await ac.get("/api/v1/countries", params={"sort_by": "population"})
    assert resp.status_code == 400
    assert "population" in resp.json()["message"]


@pytest.mark.anyio
async def test_country_used_by_orders_cannot_be_deleted(client_for, repo, fake_session):
    country = await FakeCountryRepo(None).create(PLATFORM_ID, "Qatar")
    repo.in_use = {country.id}
    async with client_for(make_user("ADMIN")) as ac:
        resp = await ac.delete(f"/api/v1/countries/{country.id}")
    assert resp.status_code == 409
    assert resp.json()["message"] == "Country is still referenced by orders and cannot be deleted"
    assert fake_session.rollbacks == 1
    assert country.id in repo.store
