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
from fulfillment_api.repositories.inventory import BRAND_SORT_FIELDS, BrandRepository
from fulfillment_api.repositories.platform import CompanyRepository
from fulfillment_api.schemas.common import ApiResponse, MessageResponse, PaginatedResponse, ok, paginated
from fulfillment_api.schemas.inventory import BrandCreate, BrandRead, BrandUpdate

router = APIRouter(prefix="/brands", tags=["Brands"])

BRAND_CONSTRAINT_MESSAGES = {"brands_company_name_unique": "A brand with this name already exists for this company"}

ADMIN = UserRole.ADMIN.value
STAFF = (UserRole.ADMIN.value, UserRole.LOGISTICS.value)
ANY_ROLE = STAFF + (UserRole.CLIENT.value,)


async def _brand_for(session: AsyncSession, user, brand_id: UUID):
    brand = await BrandRepository(session).get(user.platform_id, brand_id)
    if brand is None or (user.role == UserRole.CLIENT.value and brand.company_id != user.company_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Brand not found")
    return brand


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=ApiResponse[BrandRead],
    status_code=status.HTTP_201_CREATED,
    summary="Create brand",
)
async def create_brand(
    payload: BrandCreate,
    user=Depends(require_roles(*STAFF)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    if await CompanyRepository(session).get(user.platform_id, payload.company_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Company not found")
    repo = BrandRepository(session)
    try:
        brand = await repo.create(user.platform_id, payload.model_dump())
        await repo.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise_for_unique_violation(exc, BRAND_CONSTRAINT_MESSAGES)
    return ok(BrandRead.model_validate(brand), "Brand created successfully")


# PUBLIC_INTERFACE
@router.get("", response_model=PaginatedResponse[BrandRead], summary="List brands")
async def list_brands(
    query: ListQuery = Depends(list_query(*BRAND_SORT_FIELDS)),
    company_id: Optional[UUID] = Query(None),
    include_inactive: bool = Query(False),
    user=Depends(require_roles(*ANY_ROLE)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    if user.role == UserRole.CLIENT.value:
        company_id = user.company_id
    rows, total = await BrandRepository(session).list_brands(
        user.platform_id,
        query.paging,
        search=query.search_term,
        company_id=company_id,
        include_inactive=include_inactive,
    )
    return paginated([BrandRead.model_validate(b) for b in rows], total, query.paging, "Brands retrieved successfully")


# PUBLIC_INTERFACE
@router.get("/{brand_id}", response_model=ApiResponse[BrandRead], summary="Get brand")
async def get_brand(
    brand_id: UUID = Path(...),
    user=Depends(require_roles(*ANY_ROLE)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    return ok(BrandRead.model_validate(await _brand_for(session, user, brand_id)), "Brand retrieved successfully")


# PUBLIC_INTERFACE
@router.patch("/{brand_id}", response_model=ApiResponse[BrandRead], summary="Update brand")
async def update_brand(
    payload: BrandUpdate,
    brand_id: UUID = Path(...),
    user=Depends(require_roles(*STAFF)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    repo = BrandRepository(session)
    brand = await _brand_for(session, user, brand_id)
    try:
        brand = await repo.update(brand, payload.model_dump(exclude_unset=True))
        await repo.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise_for_unique_violation(exc, BRAND_CONSTRAINT_MESSAGES)
    return ok(BrandRead.model_validate(brand), "Brand updated successfully")


# PUBLIC_INTERFACE
@router.delete("/{brand_id}", response_model=MessageResponse, summary="Delete brand")
async def delete_brand(
    brand_id: UUID = Path(...),
    user=Depends(require_roles(ADMIN)),
    session: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    repo = BrandRepository(session)
    brand = await _brand_for(session, user, brand_id)
    if await repo.is_referenced(brand.id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Brand is referenced by assets or orders; deactivate it instead",
        )
    await repo.delete(brand)
    await repo.commit()
    return MessageResponse(message="Brand deleted successfully")
