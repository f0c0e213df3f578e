import pytest
from fastapi import HTTPException

from fulfillment_api.core.pagination import make_page_request, validate_query_values


def test_defaults():
    paging = make_page_request()
    assert (paging.page, paging.limit, paging.offset) == (1, 10, 0)
    assert paging.sort_by == "created_at"
    assert paging.sort_order == "desc"


def test_limit_is_clamped_and_offset_follows_page():
    paging = make_page_request(page=3, limit=500, sort_order="ASC")
    assert paging.limit == 100
    assert paging.offset == 200
    assert paging.sort_order == "asc"


def test_page_below_one_is_raised_to_one():
    assert make_page_request(page=-4, limit=-1).page == 1
    assert make_page_request(page=-4, limit=-1).limit == 1


def test_comma_separated_values_are_checked_individually():
    validate_query_values("status", "QUOTED,CONFIRMED", ["QUOTED", "CONFIRMED", "CLOSED"])
    with pytest.raises(HTTPException) as exc:
        validate_query_values("status", "QUOTED,BOGUS", ["QUOTED", "CONFIRMED"])
    assert exc.value.status_code == 400
    assert "BOGUS" in exc.value.detail
    assert "Valid values are: QUOTED, CONFIRMED" in exc.value.detail
