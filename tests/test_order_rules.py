import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest
from pydantic import ValidationError

from fulfillment_api.schemas.orders import OrderSubmit
from fulfillment_api.services.orders import (
    is_valid_transition,
    item_line,
    next_reference,
    role_may_transition,
    summarize_items,
)


@pytest.mark.parametrize(
    "current,new",
    [
        ("SUBMITTED", "PRICING_REVIEW"),
        ("PRICING_REVIEW", "PENDING_APPROVAL"),
        ("PENDING_APPROVAL", "QUOTED"),
        ("QUOTED", "DECLINED"),
        ("AWAITING_RETURN", "CLOSED"),
    ],
)
def test_valid_transitions(current, new):
    assert is_valid_transition(current, new)


@pytest.mark.parametrize(
    "current,new",
    [
        ("DRAFT", "QUOTED"),
        ("QUOTED", "IN_TRANSIT"),
        ("CLOSED", "IN_USE"),
        ("CANCELLED", "SUBMITTED"),
        ("QUOTED", "NOT_A_STATUS"),
    ],
)
def test_invalid_transitions(current, new):
    assert not is_valid_transition(current, new)


def test_logistics_only_drives_fulfilment():
    assert role_may_transition("LOGISTICS", "CONFIRMED", "IN_PREPARATION")
    assert role_may_transition("LOGISTICS", "IN_TRANSIT", "DELIVERED")
    assert not role_may_transition("LOGISTICS", "PRICING_REVIEW", "QUOTED")


def test_client_only_answers_quotes():
    assert role_may_transition("CLIENT", "QUOTED", "DECLINED")
    assert not role_may_transition("CLIENT", "CONFIRMED", "IN_PREPARATION")
    assert role_may_transition("ADMIN", "PRICING_REVIEW", "QUOTED")


def test_next_reference_starts_and_increments_daily():
    day = date(2025, 1, 14)
    assert next_reference("ORD", day, None) == "ORD-20250114-001"
    assert next_reference("ORD", day, "ORD-20250114-009") == "ORD-20250114-010"
    # a previous day's id does not continue the sequence
    assert next_reference("INV", day, "INV-20250113-042") == "INV-20250114-001"


def test_item_lines_and_totals():
    chair = SimpleNamespace(
        id="a1", name="Chair", volume_per_unit=Decimal("0.125"), weight_per_unit=Decimal("4.35"), handling_tags=None
    )
    table = SimpleNamespace(
        id="a2", name="Table", volume_per_unit=Decimal("1.5"), weight_per_unit=Decimal("20"), handling_tags=["Fragile"]
    )
    lines = [item_line(chair, 3), item_line(table, 2)]
    assert lines[0]["total_volume"] == Decimal("0.375")
    assert lines[0]["total_weight"] == Decimal("13.05")
    assert lines[1]["handling_tags"] == ["Fragile"]
    assert summarize_items(lines) == {"volume": 3.375, "weight": 53.05}


def submit_payload(**overrides):
    payload = dict(
        items=[{"asset_id": str(uuid.uuid4()), "quantity": 1}],
        event_start_date="2025-01-01T00:00:00Z",
        event_end_date="2025-01-02T00:00:00",
        venue_name="Expo Hall 3",
        venue_country_id=str(uuid.uuid4()),
        venue_city_id=str(uuid.uuid4()),
        venue_address="Sheikh Zayed Rd",
        contact_name="Dana",
        contact_email="dana@example.com",
        contact_phone="+971500000000",
    )
    payload.update(overrides)
    return payload


def test_naive_and_aware_event_dates_compare_as_utc():
    order = OrderSubmit.model_validate(submit_payload())
    assert order.event_start_date == datetime(2025, 1, 1, tzinfo=timezone.utc)
    assert order.event_end_date == datetime(2025, 1, 2, tzinfo=timezone.utc)


def test_mixed_event_dates_in_reverse_order_are_rejected():
    with pytest.raises(ValidationError) as info:
        OrderSubmit.model_validate(
            submit_payload(event_start_date="2025-01-03T00:00:00", event_end_date="2025-01-02T00:00:00+04:00")
        )
    assert "Event end date must be on or after the start date" in str(info.value)


def test_duplicate_assets_in_one_order_are_rejected():
    asset_id = str(uuid.uuid4())
    items = [{"asset_id": asset_id, "quantity": 1}, {"asset_id": asset_id, "quantity": 2}]
    with pytest.raises(ValidationError):
        OrderSubmit.model_validate(submit_payload(items=items))
