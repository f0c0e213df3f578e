import uuid
from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest

from fulfillment_api.api.routes import collections
from tests.conftest import PLATFORM_ID, integrity_error, make_user

COMPANY_A = uuid.uuid4()
COMPANY_B = uuid.uuid4()
EVENT = {"event_start_date": "2025-03-01T09:00:00Z", "event_end_date": "2025-03-03T18:00:00Z"}


def _now():
    return datetime.now(tz=timezone.utc)


def make_asset(name, company_id=COMPANY_A, available=5, total=5):
    return SimpleNamespace(
        id=uuid.uuid4(),
        platform_id=PLATFORM_ID,
        company_id=company_id,
        name=name,
        category="Furniture",
        images=[],
        volume_per_unit=Decimal("0.5"),
        weight_per_unit=Decimal("4"),
        status="AVAILABLE",
        condition="GREEN",
        qr_code=f"AST-{name.upper()}",
        available_quantity=available,
        total_quantity=total,
        handling_tags=[],
        deleted_at=None,
    )


class FakeCompanyRepo:
    def __init__(self, _session):
        pass

    async def get(self, platform_id, company_id):
        if company_id in (COMPANY_A, COMPANY_B):
            return SimpleNamespace(id=company_id, platform_id=platform_id, is_active=True)
        return None


class FakeBrandRepo:
    store = {}

    def __init__(self, _session):
        pass

    async def get(self, platform_id, brand_id):
        return self.store.get(brand_id)


class FakeAssetRepo:
    store = {}

    def __init__(self, _session):
        pass

    async def get(self, platform_id, asset_id):
        asset = self.store.get(asset_id)
        return asset if asset is not None and asset.deleted_at is None else None


class FakeCollectionRepo:
    store = {}

    def __init__(self, _session):
        pass

    async def get(self, platform_id, collection_id, company_id=None):
        found = self.store.get(collection_id)
        if found is None or found.deleted_at is not None:
            return None
        if company_id and found.company_id != company_id:
            return None
        return found

    async def list_collections(self, platform_id, paging, *, search=None, company_id=None, **filters):
        rows = [c for c in self.store.values() if c.deleted_at is None and c.is_active]
        if company_id:
            rows = [c for c in rows if c.company_id == company_id]
        return rows[paging.offset: paging.offset + paging.limit], len(rows)

    async def create(self, platform_id, fields):
        now = _now()
        created = SimpleNamespace(
            id=uuid.uuid4(), platform_id=platform_id, deleted_at=None, items=[], created_at=now, updated_at=now,
            **fields,
        )
        self.store[created.id] = created
        return created

    async def update(self, collection, fields):
        for key, value in fields.items():
            setattr(collection, key, value)
        return collection

    async def soft_delete(self, collection):
        collection.deleted_at = _now()
        return collection

    async def get_item(self, collection_id, item_id):
        found = self.store.get(collection_id)
        return next((i for i in found.items if i.id == item_id), None) if found else None

    async def add_item(self, collection, fields):
        if any(i.asset_id == fields["asset_id"] for i in collection.items):
            raise integrity_error("23505", "collection_items_unique")
        now = _now()
        item = SimpleNamespace(
            id=uuid.uuid4(),
            collection_id=collection.id,
            asset=FakeAssetRepo.store[fields["asset_id"]],
            created_at=now,
            updated_at=now,
            **fields,
        )
        collection.items.append(item)
        return item

    async def update_item(self, item, fields):
        for key, value in fields.items():
            setattr(item, key, value)
        return item

    async def remove_item(self, item):
        self.store[item.collection_id].items.remove(item)

    async def commit(self):
        return None


@pytest.fixture
def repos(monkeypatch):
    FakeCollectionRepo.store = {}
    FakeAssetRepo.store = {}
    FakeBrandRepo.store = {}
    monkeypatch.setattr(collections, "CollectionRepository", FakeCollectionRepo, raising=True)
    monkeypatch.setattr(collections, "AssetRepository", FakeAssetRepo, raising=True)
    monkeypatch.setattr(collections, "BrandRepository", FakeBrandRepo, raising=True)
    monkeypatch.setattr(collections, "CompanyRepository", FakeCompanyRepo, raising=True)
    return SimpleNamespace(collections=FakeCollectionRepo, assets=FakeAssetRepo, brands=FakeBrandRepo)


def add_brand(repos, company_id, is_active=True):
    brand = SimpleNamespace(id=uuid.uuid4(), company_id=company_id, is_active=is_active)
    repos.brands.store[brand.id] = brand
    return brand


def add_asset(repos, name, **kwargs):
    asset = make_asset(name, **kwargs)
    repos.assets.store[asset.id] = asset
    return asset


async def seeded_collection(company_id=COMPANY_A, name="Lounge Set"):
    return await FakeCollectionRepo(None).create(
        PLATFORM_ID,
        {"company_id": company_id, "brand_id": None, "name": name, "description": None,
         "category": "Lounge", "images": [], "is_active": True},
    )


@pytest.mark.anyio
async def test_create_collection_with_own_brand(client_for, repos):
    brand = add_brand(repos, COMPANY_A)
    payload = {"company_id": str(COMPANY_A), "brand_id": str(brand.id), "name": "VIP Lounge"}
    async with client_for(make_user("LOGISTICS")) as ac:
        resp = await ac.post("/api/v1/collections", json=payload)
    assert resp.status_code == 201
    data = resp.json()["data"]
    assert data["brand_id"] == str(brand.id)
    assert data["is_active"] is True
    assert resp.json()["message"] == "Collection created successfully"


@pytest.mark.anyio
async def test_brand_from_another_company_is_rejected(client_for, repos, fake_session):
    brand = add_brand(repos, COMPANY_B)
    payload = {"company_id": str(COMPANY_A), "brand_id": str(brand.id), "name": "VIP Lounge"}
    async with client_for(make_user("ADMIN")) as ac:
        resp = await ac.post("/api/v1/collections", json=payload)
    assert resp.status_code == 404
    assert resp.json()["message"] == "Brand not found or does not belong to this company"
    assert repos.collections.store == {}
    assert fake_session.commits == 0


@pytest.mark.anyio
async def test_inactive_brand_cannot_be_attached_on_update(client_for, repos):
    collection = await seeded_collection()
    brand = add_brand(repos, COMPANY_A, is_active=False)
    async with client_for(make_user("ADMIN")) as ac:
        resp = await ac.patch(f"/api/v1/collections/{collection.id}", json={"brand_id": str(brand.id)})
    assert resp.status_code == 404
    assert collection.brand_id is None


@pytest.mark.anyio
async def test_unknown_company_is_404(client_for, repos):
    async with client_for(make_user("ADMIN")) as ac:
        resp = await ac.post("/api/v1/collections", json={"company_id": str(uuid.uuid4()), "name": "Stage"})
    assert resp.status_code == 404
    assert resp.json()["message"] == "Company not found or is archived"


@pytest.mark.anyio
async def test_client_sees_only_its_company(client_for, repos):
    own = await seeded_collection(COMPANY_A, "Ours")
    other = await seeded_collection(COMPANY_B, "Theirs")
    async with client_for(make_user("CLIENT", company_id=COMPANY_A)) as ac:
        listed = await ac.get("/api/v1/collections", params={"company_id": str(COMPANY_B)})
        hidden = await ac.get(f"/api/v1/collections/{other.id}")
        visible = await ac.get(f"/api/v1/collections/{own.id}")
    assert [c["name"] for c in listed.json()["data"]] == ["Ours"]
    assert hidden.status_code == 404
    assert visible.status_code == 200
    assert visible.json()["data"]["items"] == []


@pytest.mark.anyio
async def test_client_without_company_is_401(client_for, repos):
    async with client_for(make_user("CLIENT")) as ac:
        resp = await ac.get("/api/v1/collections")
    assert resp.status_code == 401
    assert resp.json()["message"] == "Company not found"


@pytest.mark.anyio
async def test_client_cannot_create_collection(client_for, repos):
    async with client_for(make_user("CLIENT", company_id=COMPANY_A)) as ac:
        resp = await ac.post("/api/v1/collections", json={"company_id": str(COMPANY_A), "name": "Stage"})
    assert resp.status_code == 403


@pytest.mark.anyio
async def test_asset_must_belong_to_collection_company(client_for, repos):
    collection = await seeded_collection()
    foreign = add_asset(repos, "chair", company_id=COMPANY_B)
    async with client_for(make_user("ADMIN")) as ac:
        resp = await ac.post(f"/api/v1/collections/{collection.id}/items", json={"asset_id": str(foreign.id)})
    assert resp.status_code == 404
    assert resp.json()["message"] == "Asset not found or does not belong to this company"
    assert collection.items == []


@pytest.mark.anyio
async def test_same_asset_twice_is_409(client_for, repos, fake_session):
    collection = await seeded_collection()
    sofa = add_asset(repos, "sofa")
    async with client_for(make_user("ADMIN")) as ac:
        first = await ac.post(
            f"/api/v1/collections/{collection.id}/items", json={"asset_id": str(sofa.id), "default_quantity": 2}
        )
        second = await ac.post(f"/api/v1/collections/{collection.id}/items", json={"asset_id": str(sofa.id)})
    assert first.status_code == 201
    assert first.json()["data"]["default_quantity"] == 2
    assert second.status_code == 409
    assert second.json()["message"] == "This asset is already in the collection"
    assert fake_session.rollbacks == 1


@pytest.mark.anyio
async def test_item_quantity_must_be_positive(client_for, repos):
    collection = await seeded_collection()
    sofa = add_asset(repos, "sofa")
    async with client_for(make_user("ADMIN")) as ac:
        resp = await ac.post(
            f"/api/v1/collections/{collection.id}/items", json={"asset_id": str(sofa.id), "default_quantity": 0}
        )
    assert resp.status_code == 400


@pytest.mark.anyio
async def test_update_and_remove_item(client_for, repos):
    collection = await seeded_collection()
    sofa = add_asset(repos, "sofa")
    item = await FakeCollectionRepo(None).add_item(
        collection, {"asset_id": sofa.id, "default_quantity": 1, "notes": None, "display_order": None}
    )
    base = f"/api/v1/collections/{collection.id}/items/{item.id}"
    async with client_for(make_user("LOGISTICS")) as ac:
        updated = await ac.patch(base, json={"default_quantity": 4, "notes": "corner"})
        removed = await ac.delete(base)
        again = await ac.delete(base)
    assert updated.status_code == 200
    assert updated.json()["data"]["default_quantity"] == 4
    assert updated.json()["data"]["notes"] == "corner"
    assert removed.json() == {"success": True, "message": "Collection item deleted successfully"}
    assert again.status_code == 404
    assert again.json()["message"] == "Collection item not found"


@pytest.mark.anyio
async def test_availability_flags_short_items(client_for, repos):
    collection = await seeded_collection()
    repo = FakeCollectionRepo(None)
    sofa = add_asset(repos, "sofa", available=3, total=6)
    lamp = add_asset(repos, "lamp", available=1, total=4)
    for asset, qty in ((sofa, 3), (lamp, 2)):
        await repo.add_item(
            collection, {"asset_id": asset.id, "default_quantity": qty, "notes": None, "display_order": None}
        )
    async with client_for(make_user("CLIENT", company_id=COMPANY_A)) as ac:
        resp = await ac.get(f"/api/v1/collections/{collection.id}/availability", params=EVENT)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["is_fully_available"] is False
    assert data["collection_name"] == "Lounge Set"
    flags = {i["asset_name"]: i["is_available"] for i in data["items"]}
    assert flags == {"sofa": True, "lamp": False}
    assert data["items"][1]["available_quantity"] == 1


@pytest.mark.anyio
async def test_empty_collection_is_fully_available(client_for, repos):
    collection = await seeded_collection()
    async with client_for(make_user("ADMIN")) as ac:
        resp = await ac.get(f"/api/v1/collections/{collection.id}/availability", params=EVENT)
    assert resp.json()["data"]["is_fully_available"] is True


@pytest.mark.anyio
async def test_availability_requires_event_window(client_for, repos):
    collection = await seeded_collection()
    async with client_for(make_user("ADMIN")) as ac:
        missing = await ac.get(f"/api/v1/collections/{collection.id}/availability")
        reversed_window = await ac.get(
            f"/api/v1/collections/{collection.id}/availability",
            params={"event_start_date": "2025-03-05T00:00:00", "event_end_date": "2025-03-01T00:00:00Z"},
        )
    assert missing.status_code == 400
    assert reversed_window.status_code == 400
    assert reversed_window.json()["message"] == "Event end date must be on or after the start date"


@pytest.mark.anyio
async def test_deleted_collection_disappears(client_for, repos):
    collection = await seeded_collection()
    async with client_for(make_user("LOGISTICS")) as ac:
        forbidden = await ac.delete(f"/api/v1/collections/{collection.id}")
    assert forbidden.status_code == 403

    async with client_for(make_user("ADMIN")) as ac:
        deleted = await ac.delete(f"/api/v1/collections/{collection.id}")
        after = await ac.get(f"/api/v1/collections/{collection.id}")
    assert deleted.status_code == 200
    assert collection.deleted_at is not None
    assert after.status_code == 404
