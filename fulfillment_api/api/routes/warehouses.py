from __future__ import annotations

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment_api.core.constants import UserRole
from fulfillment_api.core.deps import get_db_session, require_roles
from fulfillment_api.core.errors import raise_for_unique_violation
from fulfillment_api.core.pagination import ListQuery, list_query
from fulfillment_api.repositories.inventory import WAREHOUSE_SORT_FIELDS, WarehouseRepository
from fulfillment_api.schemas.common import ApiResponse, MessageResponse, PaginatedResponse, ok, paginated
from fulfillment_api.schemas.inventory import WarehouseCreate, WarehouseRead, WarehouseUpdate

router = APIRouter(prefix="/warehouses", tags=["Warehouses"])

WAREHOUSE_CONSTRAINT_MESSAGES = {
    "warehouses_platform_name_unique": "A warehouse with this name already exists",
    "fk_assets_warehouse_id_warehouses": "Warehouse still holds assets",
    "fk_assets_zone_id_zones": "Warehouse still holds assets",
}

ADMIN = UserRole.ADMIN.value


async def _warehouse_or_404(repo: WarehouseRepository, platform_id: UUID, warehouse_id: UUID):
    warehouse = await repo.get(platform_id, warehouse_id)
    if warehouse is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Warehouse not found")
    return warehouse


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=ApiResponse[WarehouseRead],
    status_code=status.HTTP_201_CREATED,
    summary="Create warehouse",
)
async def create_warehouse(
    payload: WarehouseCreate,
    user=Depends(require_roles(ADMIN)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    repo = WarehouseRepository(session)
    try:
        warehouse = await repo.create(user.platform_id, payload.model_dump())
        await repo.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise_for_unique_violation(exc, WAREHOUSE_CONSTRAINT_MESSAGES)
    return ok(WarehouseRead.model_validate(warehouse), "Warehouse created successfully")


# PUBLIC_INTERFACE
@router.get("", response_model=PaginatedResponse[WarehouseRead], summary="List warehouses")
async def list_warehouses(
    query: ListQuery = Depends(list_query(*WAREHOUSE_SORT_FIELDS)),
    include_inactive: bool = Query(False),
    user=Depends(require_roles(ADMIN, UserRole.LOGISTICS.value)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    rows, total = await WarehouseRepository(session).list_warehouses(
        user.platform_id, query.paging, search=query.search_term, include_inactive=include_inactive
    )
    return paginated(
        [WarehouseRead.model_validate(w) for w in rows], total, query.paging, "Warehouses retrieved successfully"
    )


# PUBLIC_INTERFACE
@router.get("/{warehouse_id}", response_model=ApiResponse[WarehouseRead], summary="Get warehouse")
async def get_warehouse(
    warehouse_id: UUID = Path(...),
    user=Depends(require_roles(ADMIN, UserRole.LOGISTICS.value)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    warehouse = await _warehouse_or_404(WarehouseRepository(session), user.platform_id, warehouse_id)
    return ok(WarehouseRead.model_validate(warehouse), "Warehouse retrieved successfully")


# PUBLIC_INTERFACE
@router.patch("/{warehouse_id}", response_model=ApiResponse[WarehouseRead], summary="Update warehouse")
async def update_warehouse(
    payload: WarehouseUpdate,
    warehouse_id: UUID = Path(...),
    user=Depends(require_roles(ADMIN)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    repo = WarehouseRepository(session)
    warehouse = await _warehouse_or_404(repo, user.platform_id, warehouse_id)
    try:
        warehouse = await repo.update(warehouse, payload.model_dump(exclude_unset=True))
        await repo.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise_for_unique_violation(exc, WAREHOUSE_CONSTRAINT_MESSAGES)
    return ok(WarehouseRead.model_validate(warehouse), "Warehouse updated successfully")


# PUBLIC_INTERFACE
@router.delete("/{warehouse_id}", response_model=MessageResponse, summary="Delete warehouse")
async def delete_warehouse(
    warehouse_id: UUID = Path(...),
    user=Depends(require_roles(ADMIN)),
    session: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    repo = WarehouseRepository(session)
    warehouse = await _warehouse_or_404(repo, user.platform_id, warehouse_id)
    try:
        await repo.delete(warehouse)
        await repo.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise_for_unique_violation(exc, WAREHOUSE_CONSTRAINT_MESSAGES)
    return MessageResponse(message="Warehouse deleted successfully")
