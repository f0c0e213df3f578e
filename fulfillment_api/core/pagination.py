from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from fastapi import HTTPException, Query, status

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100
DEFAULT_SORT_BY = "created_at"
DEFAULT_SORT_ORDER = "desc"
SORT_ORDERS = ("asc", "desc")


@dataclass(frozen=True)
class PageRequest:
    """Normalised paging and sorting options for a list query."""

    page: int
    limit: int
    offset: int
    sort_by: str
    sort_order: str


@dataclass(frozen=True)
class ListQuery:
    """Paging options plus the optional free-text search term."""

    paging: PageRequest
    search_term: Optional[str] = None


# PUBLIC_INTERFACE
def make_page_request(
    page: Optional[int] = None,
    limit: Optional[int] = None,
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
) -> PageRequest:
    """
    Clamp raw paging input.

    page defaults to 1 and is never below 1; limit defaults to 10 and is kept in 1..100.
    Sorting defaults to created_at descending.
    """
    page_num = max(1, page) if page else DEFAULT_PAGE
    limit_num = min(max(1, limit), MAX_LIMIT) if limit else DEFAULT_LIMIT
    return PageRequest(
        page=page_num,
        limit=limit_num,
        offset=(page_num - 1) * limit_num,
        sort_by=sort_by or DEFAULT_SORT_BY,
        sort_order=(sort_order or DEFAULT_SORT_ORDER).lower(),
    )


# PUBLIC_INTERFACE
def validate_query_values(key: str, value: str, allowed: Iterable[str]) -> None:
    """
    Reject a (possibly comma-separated) query value that is not in `allowed`.

    Raises:
        HTTPException: 400 naming the invalid values and the valid ones.
    """
    valid = list(allowed)
    parts = [p.strip() for p in value.split(",") if p.strip()]
    invalid = [p for p in parts if p not in valid]
    if invalid or not parts:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=(
                f"Invalid value(s) for '{key}': {', '.join(invalid) or value}. "
                f"Valid values are: {', '.join(valid)}"
            ),
        )


# PUBLIC_INTERFACE
def list_query(*sortable_fields: str):
    """
    Build a dependency parsing page/limit/sort_by/sort_order/search_term.

    sort_by is checked against `sortable_fields`; sort_order against asc/desc.
    """

    async def _dep(
        page: Optional[int] = Query(None, description="Page number (default 1)"),
        limit: Optional[int] = Query(None, description="Page size (default 10, max 100)"),
        sort_by: Optional[str] = Query(None, description=f"Sort field: {', '.join(sortable_fields)}"),
        sort_order: Optional[str] = Query(None, description="asc or desc (default desc)"),
        search_term: Optional[str] = Query(None, description="Free-text search"),
    ) -> ListQuery:
        if sort_by:
            validate_query_values("sort_by", sort_by, sortable_fields)
        if sort_order:
            validate_query_values("sort_order", sort_order.lower(), SORT_ORDERS)
        term = search_term.strip() if search_term else None
        return ListQuery(
            paging=make_page_request(page, limit, sort_by, sort_order),
            search_term=term or None,
        )

    return _dep
