from __future__ import annotations

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Path, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment_api.core.constants import UserRole
from fulfillment_api.core.deps import get_db_session, require_roles
from fulfillment_api.core.errors import raise_for_unique_violation
from fulfillment_api.core.pagination import ListQuery, list_query
from fulfillment_api.repositories.location import COUNTRY_SORT_FIELDS, CountryRepository
from fulfillment_api.schemas.common import ApiResponse, MessageResponse, PaginatedResponse, ok, paginated
from fulfillment_api.schemas.location import CountryCreate, CountryRead, CountryUpdate

router = APIRouter(prefix="/countries", tags=["Locations"])

COUNTRY_CONSTRAINT_MESSAGES = {
    "countries_platform_name_unique": "A country with this name already exists",
    "fk_cities_country_id_countries": "Country still has cities; delete them first",
    "fk_orders_venue_country_id_countries": "Country is still referenced by orders and cannot be deleted",
}

ANY_ROLE = (UserRole.ADMIN.value, UserRole.LOGISTICS.value, UserRole.CLIENT.value)


async def _country_or_404(repo: CountryRepository, platform_id: UUID, country_id: UUID):
    country = await repo.get(platform_id, country_id)
    if country is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Country not found")
    return country


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=ApiResponse[CountryRead],
    status_code=status.HTTP_201_CREATED,
    summary="Create country",
)
async def create_country(
    payload: CountryCreate,
    user=Depends(require_roles(UserRole.ADMIN.value)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    repo = CountryRepository(session)
    try:
        country = await repo.create(user.platform_id, payload.name.strip())
        await repo.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise_for_unique_violation(exc, COUNTRY_CONSTRAINT_MESSAGES)
    return ok(CountryRead.model_validate(country), "Country created successfully")


# PUBLIC_INTERFACE
@router.get("", response_model=PaginatedResponse[CountryRead], summary="List countries")
async def list_countries(
    query: ListQuery = Depends(list_query(*COUNTRY_SORT_FIELDS)),
    user=Depends(require_roles(*ANY_ROLE)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    rows, total = await CountryRepository(session).list_countries(
        user.platform_id, query.paging, search=query.search_term
    )
    return paginated([CountryRead.model_validate(c) for c in rows], total, query.paging, "Countries retrieved successfully")


# PUBLIC_INTERFACE
@router.get("/{country_id}", response_model=ApiResponse[CountryRead], summary="Get country")
async def get_country(
    country_id: UUID = Path(...),
    user=Depends(require_roles(*ANY_ROLE)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    country = await _country_or_404(CountryRepository(session), user.platform_id, country_id)
    return ok(CountryRead.model_validate(country), "Country retrieved successfully")


# PUBLIC_INTERFACE
@router.patch("/{country_id}", response_model=ApiResponse[CountryRead], summary="Update country")
async def update_country(
    payload: CountryUpdate,
    country_id: UUID = Path(...),
    user=Depends(require_roles(UserRole.ADMIN.value)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    repo = CountryRepository(session)
    country = await _country_or_404(repo, user.platform_id, country_id)
    try:
        country = await repo.update(country, **payload.model_dump(exclude_unset=True))
        await repo.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise_for_unique_violation(exc, COUNTRY_CONSTRAINT_MESSAGES)
    return ok(CountryRead.model_validate(country), "Country updated successfully")


# PUBLIC_INTERFACE
@router.delete("/{country_id}", response_model=MessageResponse, summary="Delete country")
async def delete_country(
    country_id: UUID = Path(...),
    user=Depends(require_roles(UserRole.ADMIN.value)),
    session: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    """Permanently delete a country; a second delete of the same id is a 404."""
    repo = CountryRepository(session)
    country = await _country_or_404(repo, user.platform_id, country_id)
    try:
        await repo.delete(country)
        await repo.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise_for_unique_violation(exc, COUNTRY_CONSTRAINT_MESSAGES)
    return MessageResponse(message="Country deleted successfully")
