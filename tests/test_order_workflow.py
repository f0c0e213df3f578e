import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest
from fastapi import HTTPException

from fulfillment_api.schemas.orders import CancelOrder, DeclineQuote, OrderSubmit, StatusProgress
from fulfillment_api.services import orders as orders_service
from fulfillment_api.services.orders import OrderService, item_line
from tests.conftest import PLATFORM_ID, FakeSession, make_user

COMPANY_ID = uuid.uuid4()
COUNTRY_ID = uuid.uuid4()
CITY_ID = uuid.uuid4()


def _now():
    return datetime.now(tz=timezone.utc)


def make_asset(name="Chair", available=10, total=10, company_id=COMPANY_ID):
    return SimpleNamespace(
        id=uuid.uuid4(),
        platform_id=PLATFORM_ID,
        company_id=company_id,
        name=name,
        available_quantity=available,
        total_quantity=total,
        volume_per_unit=Decimal("0.5"),
        weight_per_unit=Decimal("4"),
        handling_tags=[],
    )


class FakeAssetRepo:
    store = {}

    def __init__(self, _session):
        pass

    async def get(self, platform_id, asset_id):
        return self.store.get(asset_id)

    async def get_many(self, platform_id, asset_ids):
        return {i: self.store[i] for i in asset_ids if i in self.store}

    async def update(self, asset, fields):
        for key, value in fields.items():
            setattr(asset, key, value)
        return asset


class FakeOrderRepo:
    store = {}
    history = []

    def __init__(self, _session):
        pass

    async def get(self, platform_id, ref):
        for order in self.store.values():
            if order.id == ref or order.order_id == str(ref):
                return order
        return None

    async def latest_order_id_for_day(self, platform_id, day):
        return None

    async def create_price(self, platform_id, fields):
        return SimpleNamespace(id=uuid.uuid4(), **fields)

    async def update_price(self, price, fields):
        for key, value in fields.items():
            setattr(price, key, value)
        return price

    async def create_order(self, platform_id, fields):
        order = SimpleNamespace(id=uuid.uuid4(), platform_id=platform_id, items=[], pricing=None, **fields)
        self.store[order.id] = order
        return order

    async def update_order(self, order, fields):
        for key, value in fields.items():
            setattr(order, key, value)
        return order

    async def add_items(self, order, lines):
        for line in lines:
            order.items.append(SimpleNamespace(id=uuid.uuid4(), order_id=order.id, **line))

    async def list_items(self, order_id):
        return list(self.store[order_id].items)

    async def get_item(self, order, item_id):
        return next((i for i in order.items if i.id == item_id), None)

    async def update_item(self, item, fields):
        for key, value in fields.items():
            setattr(item, key, value)
        return item

    async def delete_item(self, item):
        self.store[item.order_id].items.remove(item)

    async def add_status_history(self, order, status, notes, user_id):
        self.history.append((order.id, status, notes))

    async def add_financial_history(self, order, status, notes, user_id):
        self.history.append((order.id, f"financial:{status}", notes))


class FakeCompanyRepo:
    def __init__(self, _session):
        pass

    async def get(self, platform_id, company_id):
        return SimpleNamespace(id=company_id, platform_id=platform_id, is_active=True)


class FakeBrandRepo:
    def __init__(self, _session):
        pass

    async def get(self, platform_id, brand_id):
        return None


class FakeCountryRepo:
    def __init__(self, _session):
        pass

    async def get(self, platform_id, country_id):
        return SimpleNamespace(id=country_id, name="UAE")


class FakeCityRepo:
    def __init__(self, _session):
        pass

    async def get(self, platform_id, city_id):
        return SimpleNamespace(id=city_id, country_id=COUNTRY_ID, name="Dubai")


class FakePricing:
    tier = None

    def __init__(self, _session):
        pass

    async def find_matching_tier(self, platform_id, country, city, order_volume):
        return self.tier

    async def margin_percent_for(self, platform_id, company_id):
        return Decimal("25")


class FakeNotifier:
    def __init__(self):
        self.sent = []

    async def notify_order(self, order, notification_type):
        self.sent.append((order.order_id, notification_type.value))


@pytest.fixture
def service(monkeypatch):
    FakeAssetRepo.store = {}
    FakeOrderRepo.store = {}
    FakeOrderRepo.history = []
    FakePricing.tier = None
    for name, fake in (
        ("OrderRepository", FakeOrderRepo),
        ("AssetRepository", FakeAssetRepo),
        ("BrandRepository", FakeBrandRepo),
        ("CompanyRepository", FakeCompanyRepo),
        ("CountryRepository", FakeCountryRepo),
        ("CityRepository", FakeCityRepo),
        ("PricingTierService", FakePricing),
    ):
        monkeypatch.setattr(orders_service, name, fake, raising=True)
    session = FakeSession()
    svc = OrderService(session, notifier=FakeNotifier())
    svc.fake_session = session
    return svc


def add_asset(**kwargs):
    asset = make_asset(**kwargs)
    FakeAssetRepo.store[asset.id] = asset
    return asset


def seed_order(status="PRICING_REVIEW", lines=(), final_total=Decimal("1250.00"), start=None, end=None):
    start = start or _now() + timedelta(days=10)
    order = SimpleNamespace(
        id=uuid.uuid4(),
        order_id=f"ORD-20250114-{len(FakeOrderRepo.store) + 1:03d}",
        platform_id=PLATFORM_ID,
        company_id=COMPANY_ID,
        order_status=status,
        financial_status="PENDING_QUOTE",
        event_start_date=start,
        event_end_date=end or start + timedelta(days=2),
        venue_country_id=COUNTRY_ID,
        venue_city_id=CITY_ID,
        items=[],
        pricing=SimpleNamespace(
            id=uuid.uuid4(),
            final_total=final_total,
            margin={"percent": 25.0, "amount": None, "is_override": False, "override_reason": None},
        ),
    )
    for asset, quantity in lines:
        order.items.append(SimpleNamespace(id=uuid.uuid4(), order_id=order.id, **item_line(asset, quantity)))
    FakeOrderRepo.store[order.id] = order
    return order


def submit_payload(*lines):
    return OrderSubmit.model_validate(
        dict(
            items=[{"asset_id": str(asset.id), "quantity": qty} for asset, qty in lines],
            event_start_date="2025-06-01T10:00:00Z",
            event_end_date="2025-06-03T18:00:00Z",
            venue_name="Expo Hall 3",
            venue_country_id=str(COUNTRY_ID),
            venue_city_id=str(CITY_ID),
            venue_address="Sheikh Zayed Rd",
            contact_name="Dana",
            contact_email="dana@example.com",
            contact_phone="+971500000000",
        )
    )


def client():
    return make_user("CLIENT", company_id=COMPANY_ID)


@pytest.mark.anyio
async def test_submit_without_tier_leaves_price_open(service):
    chair = add_asset(available=10)
    order = await service.submit(client(), submit_payload((chair, 4)))
    assert order.order_status == "PRICING_REVIEW"
    assert order.pricing_tier_id is None
    assert chair.available_quantity == 6
    assert order.calculated_totals == {"volume": 2.0, "weight": 16.0}
    assert service.fake_session.commits == 1
    assert service.notifier.sent == [(order.order_id, "ORDER_SUBMITTED")]


@pytest.mark.anyio
async def test_submit_with_tier_prices_base_plus_margin(service):
    FakePricing.tier = SimpleNamespace(id=uuid.uuid4(), base_price=Decimal("1000"))
    chair = add_asset()
    order = await service.submit(client(), submit_payload((chair, 1)))
    assert order.pricing_tier_id == FakePricing.tier.id


@pytest.mark.anyio
async def test_submit_beyond_availability_is_400(service):
    chair = add_asset(name="Chair", available=2)
    with pytest.raises(HTTPException) as info:
        await service.submit(client(), submit_payload((chair, 3)))
    assert info.value.status_code == 400
    assert info.value.detail == "Insufficient availability for Chair: requested 3, available 2"
    assert chair.available_quantity == 2
    assert service.fake_session.commits == 0


@pytest.mark.anyio
async def test_staff_user_without_company_cannot_submit(service):
    chair = add_asset()
    with pytest.raises(HTTPException) as info:
        await service.submit(make_user("ADMIN"), submit_payload((chair, 1)))
    assert info.value.status_code == 403


@pytest.mark.anyio
async def test_confirmed_is_reached_only_by_approving(service):
    order = seed_order("QUOTED")
    with pytest.raises(HTTPException) as info:
        await service.progress_status(make_user("ADMIN"), order.id, StatusProgress(new_status="CONFIRMED"))
    assert info.value.status_code == 400
    assert info.value.detail == "Orders are confirmed by approving the quote"


@pytest.mark.anyio
async def test_quote_requires_a_final_total(service):
    order = seed_order("PRICING_REVIEW", final_total=None)
    with pytest.raises(HTTPException) as info:
        await service.progress_status(make_user("ADMIN"), order.id, StatusProgress(new_status="QUOTED"))
    assert info.value.status_code == 400
    assert info.value.detail == "Order must be priced before a quote can be sent"
    assert order.order_status == "PRICING_REVIEW"


@pytest.mark.anyio
async def test_quote_sets_financial_status_and_notifies(service):
    order = seed_order("PRICING_REVIEW")
    updated = await service.progress_status(make_user("ADMIN"), order.id, StatusProgress(new_status="QUOTED"))
    assert updated.order_status == "QUOTED"
    assert updated.financial_status == "QUOTE_SENT"
    assert service.notifier.sent == [(order.order_id, "QUOTE_SENT")]


@pytest.mark.anyio
async def test_logistics_cannot_send_quotes(service):
    order = seed_order("PRICING_REVIEW")
    with pytest.raises(HTTPException) as info:
        await service.progress_status(make_user("LOGISTICS"), order.id, StatusProgress(new_status="QUOTED"))
    assert info.value.status_code == 403
    assert info.value.detail == "LOGISTICS users cannot change status from PRICING_REVIEW to QUOTED"


@pytest.mark.anyio
async def test_skipping_a_step_is_400(service):
    order = seed_order("CONFIRMED")
    with pytest.raises(HTTPException) as info:
        await service.progress_status(make_user("LOGISTICS"), order.id, StatusProgress(new_status="IN_TRANSIT"))
    assert info.value.status_code == 400
    assert info.value.detail == "Invalid status transition from CONFIRMED to IN_TRANSIT"


@pytest.mark.anyio
async def test_in_use_waits_for_event_start(service):
    order = seed_order("DELIVERED", start=_now() + timedelta(days=1))
    with pytest.raises(HTTPException) as info:
        await service.progress_status(make_user("LOGISTICS"), order.id, StatusProgress(new_status="IN_USE"))
    assert info.value.detail == "Cannot mark order as in use before the event start date"

    started = seed_order("DELIVERED", start=_now() - timedelta(hours=1))
    updated = await service.progress_status(make_user("LOGISTICS"), started.id, StatusProgress(new_status="IN_USE"))
    assert updated.order_status == "IN_USE"


@pytest.mark.anyio
async def test_awaiting_return_waits_for_event_end(service):
    order = seed_order("IN_USE", start=_now() - timedelta(days=1), end=_now() + timedelta(days=1))
    with pytest.raises(HTTPException) as info:
        await service.progress_status(
            make_user("LOGISTICS"), order.id, StatusProgress(new_status="AWAITING_RETURN")
        )
    assert info.value.status_code == 400
    assert info.value.detail == "Cannot mark order as awaiting return before the event end date"


@pytest.mark.anyio
async def test_quote_answers_require_quoted_status(service):
    order = seed_order("PRICING_REVIEW")
    with pytest.raises(HTTPException) as approve:
        await service.approve_quote(client(), order.id)
    with pytest.raises(HTTPException) as decline:
        await service.decline_quote(client(), order.id, DeclineQuote(decline_reason="Budget was cut this quarter"))
    assert approve.value.status_code == 400
    assert decline.value.status_code == 400
    assert approve.value.detail == "Order is not awaiting quote approval (current status: PRICING_REVIEW)"


@pytest.mark.anyio
async def test_approving_a_quote_confirms_the_order(service):
    order = seed_order("QUOTED")
    updated = await service.approve_quote(client(), order.id)
    assert updated.order_status == "CONFIRMED"
    assert updated.financial_status == "QUOTE_ACCEPTED"
    assert service.notifier.sent == [(order.order_id, "QUOTE_APPROVED")]


@pytest.mark.anyio
async def test_declining_releases_reserved_assets(service):
    chair = add_asset(available=6, total=10)
    order = seed_order("QUOTED", lines=[(chair, 4)])
    await service.decline_quote(client(), order.id, DeclineQuote(decline_reason="Venue changed its mind"))
    assert order.order_status == "DECLINED"
    assert chair.available_quantity == 10


@pytest.mark.anyio
async def test_closed_orders_cannot_be_cancelled(service):
    order = seed_order("CLOSED")
    with pytest.raises(HTTPException) as info:
        await service.cancel(make_user("ADMIN"), order.id, CancelOrder(reason="Duplicate"))
    assert info.value.status_code == 400
    assert info.value.detail == "Order cannot be cancelled in CLOSED status"


@pytest.mark.anyio
async def test_cancel_records_reason_and_releases_assets(service):
    chair = add_asset(available=7, total=10)
    order = seed_order("CONFIRMED", lines=[(chair, 3)])
    updated = await service.cancel(make_user("ADMIN"), order.id, CancelOrder(reason="Event postponed"))
    assert updated.order_status == "CANCELLED"
    assert updated.financial_status == "CANCELLED"
    assert updated.cancellation_reason == "Event postponed"
    assert chair.available_quantity == 10


@pytest.mark.anyio
async def test_last_item_cannot_be_removed(service):
    chair = add_asset()
    order = seed_order("PRICING_REVIEW", lines=[(chair, 2)])
    with pytest.raises(HTTPException) as info:
        await service.remove_item(make_user("ADMIN"), order.id, order.items[0].id)
    assert info.value.status_code == 400
    assert info.value.detail == "Cannot remove the last item from an order"


@pytest.mark.anyio
async def test_new_quantity_may_use_the_lines_own_reservation(service):
    chair = add_asset(name="Chair", available=2, total=10)
    order = seed_order("PRICING_REVIEW", lines=[(chair, 3)])
    item = order.items[0]

    with pytest.raises(HTTPException) as info:
        await service.update_item_quantity(make_user("ADMIN"), order.id, item.id, 6)
    assert info.value.detail == "Insufficient availability for Chair: requested 6, available 5"

    await service.update_item_quantity(make_user("ADMIN"), order.id, item.id, 5)
    assert item.quantity == 5
    assert item.total_volume == Decimal("2.5")
    assert chair.available_quantity == 0
    assert order.calculated_totals == {"volume": 2.5, "weight": 20.0}


@pytest.mark.anyio
async def test_items_are_frozen_outside_pricing_review(service):
    chair = add_asset()
    order = seed_order("QUOTED", lines=[(chair, 1)])
    with pytest.raises(HTTPException) as info:
        await service.update_item_quantity(make_user("ADMIN"), order.id, order.items[0].id, 2)
    assert info.value.detail == "Can only adjust items during PRICING_REVIEW"
