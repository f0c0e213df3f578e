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
from fulfillment_api.repositories.inventory import ZONE_SORT_FIELDS, WarehouseRepository, ZoneRepository
from fulfillment_api.repositories.platform import CompanyRepository
from fulfillment_api.schemas.common import ApiResponse, MessageResponse, PaginatedResponse, ok, paginated
from fulfillment_api.schemas.inventory import ZoneCreate, ZoneRead, ZoneUpdate

router = APIRouter(prefix="/zones", tags=["Zones"])

ZONE_CONSTRAINT_MESSAGES = {
    "zones_warehouse_company_name_unique": "A zone with this name already exists for this warehouse and company",
    "fk_assets_zone_id_zones": "Zone still holds assets",
}

STAFF = (UserRole.ADMIN.value, UserRole.LOGISTICS.value)


async def _zone_or_404(repo: ZoneRepository, platform_id: UUID, zone_id: UUID):
    zone = await repo.get(platform_id, zone_id)
    if zone is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Zone not found")
    return zone


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=ApiResponse[ZoneRead],
    status_code=status.HTTP_201_CREATED,
    summary="Create zone",
    description="A zone is a company's area inside a warehouse.",
)
async def create_zone(
    payload: ZoneCreate,
    user=Depends(require_roles(*STAFF)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    if await WarehouseRepository(session).get(user.platform_id, payload.warehouse_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Warehouse not found")
    if await CompanyRepository(session).get(user.platform_id, payload.company_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Company not found")
    repo = ZoneRepository(session)
    try:
        zone = await repo.create(user.platform_id, payload.model_dump())
        await repo.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise_for_unique_violation(exc, ZONE_CONSTRAINT_MESSAGES)
    return ok(ZoneRead.model_validate(zone), "Zone created successfully")


# PUBLIC_INTERFACE
@router.get("", response_model=PaginatedResponse[ZoneRead], summary="List zones")
async def list_zones(
    query: ListQuery = Depends(list_query(*ZONE_SORT_FIELDS)),
    warehouse_id: Optional[UUID] = Query(None),
    company_id: Optional[UUID] = Query(None),
    user=Depends(require_roles(*STAFF)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    rows, total = await ZoneRepository(session).list_zones(
        user.platform_id,
        query.paging,
        search=query.search_term,
        warehouse_id=warehouse_id,
        company_id=company_id,
    )
    return paginated([ZoneRead.model_validate(z) for z in rows], total, query.paging, "Zones retrieved successfully")


# PUBLIC_INTERFACE
@router.get("/{zone_id}", response_model=ApiResponse[ZoneRead], summary="Get zone")
async def get_zone(
    zone_id: UUID = Path(...),
    user=Depends(require_roles(*STAFF)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    zone = await _zone_or_404(ZoneRepository(session), user.platform_id, zone_id)
    return ok(ZoneRead.model_validate(zone), "Zone retrieved successfully")


# PUBLIC_INTERFACE
@router.patch("/{zone_id}", response_model=ApiResponse[ZoneRead], summary="Update zone")
async def update_zone(
    payload: ZoneUpdate,
    zone_id: UUID = Path(...),
    user=Depends(require_roles(*STAFF)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    repo = ZoneRepository(session)
    zone = await _zone_or_404(repo, user.platform_id, zone_id)
    try:
        zone = await repo.update(zone, payload.model_dump(exclude_unset=True))
        await repo.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise_for_unique_violation(exc, ZONE_CONSTRAINT_MESSAGES)
    return ok(ZoneRead.model_validate(zone), "Zone updated successfully")


# PUBLIC_INTERFACE
@router.delete("/{zone_id}", response_model=MessageResponse, summary="Delete zone")
async def delete_zone(
    zone_id: UUID = Path(...),
    user=Depends(require_roles(*STAFF)),
    session: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    repo = ZoneRepository(session)
    zone = await _zone_or_404(repo, user.platform_id, zone_id)
    if await repo.has_assets(zone.id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Zone still holds assets")
    try:
        await repo.delete(zone)
        await repo.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise_for_unique_violation(exc, ZONE_CONSTRAINT_MESSAGES)
    return MessageResponse(message="Zone deleted successfully")
