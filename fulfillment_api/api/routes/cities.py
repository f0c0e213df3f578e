from __future__ import annotations

from typing import Any, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment_api.core.constants import UserRole
from fulfillment_api.core.deps import get_db_session, require_roles
from fulfillment_api.core.errors import raise_for_unique_violation
from fulfillment_api.core.pagination import ListQuery, list_query
from fulfillment_api.repositories.location import CITY_SORT_FIELDS, CityRepository, CountryRepository
from fulfillment_api.schemas.common import ApiResponse, MessageResponse, PaginatedResponse, ok, paginated
from fulfillment_api.schemas.location import CityCreate, CityRead, CityUpdate

router = APIRouter(prefix="/cities", tags=["Locations"])

CITY_CONSTRAINT_MESSAGES = {
    "cities_platform_country_name_unique": "A city with this name already exists in this country",
    "fk_orders_venue_city_id_cities": "City is still referenced by orders and cannot be deleted",
}

ANY_ROLE = (UserRole.ADMIN.value, UserRole.LOGISTICS.value, UserRole.CLIENT.value)


async def _require_country(session: AsyncSession, platform_id: UUID, country_id: UUID) -> None:
    if await CountryRepository(session).get(platform_id, country_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Country not found")


async def _city_or_404(repo: CityRepository, platform_id: UUID, city_id: UUID):
    city = await repo.get(platform_id, city_id)
    if city is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="City not found")
    return city


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=ApiResponse[CityRead],
    status_code=status.HTTP_201_CREATED,
    summary="Create city",
)
async def create_city(
    payload: CityCreate,
    user=Depends(require_roles(UserRole.ADMIN.value)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    await _require_country(session, user.platform_id, payload.country_id)
    repo = CityRepository(session)
    try:
        city = await repo.create(user.platform_id, name=payload.name.strip(), country_id=payload.country_id)
        await repo.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise_for_unique_violation(exc, CITY_CONSTRAINT_MESSAGES)
    return ok(CityRead.model_validate(city), "City created successfully")


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=PaginatedResponse[CityRead],
    summary="List cities",
    description="Each city embeds its country as {id, name}.",
)
async def list_cities(
    query: ListQuery = Depends(list_query(*CITY_SORT_FIELDS)),
    country_id: Optional[UUID] = Query(None),
    user=Depends(require_roles(*ANY_ROLE)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    rows, total = await CityRepository(session).list_cities(
        user.platform_id, query.paging, search=query.search_term, country_id=country_id
    )
    return paginated([CityRead.model_validate(c) for c in rows], total, query.paging, "Cities retrieved successfully")


# PUBLIC_INTERFACE
@router.get("/{city_id}", response_model=ApiResponse[CityRead], summary="Get city")
async def get_city(
    city_id: UUID = Path(...),
    user=Depends(require_roles(*ANY_ROLE)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    city = await _city_or_404(CityRepository(session), user.platform_id, city_id)
    return ok(CityRead.model_validate(city), "City retrieved successfully")


# PUBLIC_INTERFACE
@router.patch("/{city_id}", response_model=ApiResponse[CityRead], summary="Update city")
async def update_city(
    payload: CityUpdate,
    city_id: UUID = Path(...),
    user=Depends(require_roles(UserRole.ADMIN.value)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    repo = CityRepository(session)
    city = await _city_or_404(repo, user.platform_id, city_id)
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("country_id"):
        await _require_country(session, user.platform_id, changes["country_id"])
    try:
        city = await repo.update(city, **changes)
        await repo.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise_for_unique_violation(exc, CITY_CONSTRAINT_MESSAGES)
    return ok(CityRead.model_validate(city), "City updated successfully")


# PUBLIC_INTERFACE
@router.delete("/{city_id}", response_model=MessageResponse, summary="Delete city")
async def delete_city(
    city_id: UUID = Path(...),
    user=Depends(require_roles(UserRole.ADMIN.value)),
    session: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    repo = CityRepository(session)
    city = await _city_or_404(repo, user.platform_id, city_id)
    try:
        await repo.delete(city)
        await repo.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise_for_unique_violation(exc, CITY_CONSTRAINT_MESSAGES)
    return MessageResponse(message="City deleted successfully")
