from __future__ import annotations

from typing import Any, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment_api.core.constants import AssetCondition, AssetStatus, UserRole
from fulfillment_api.core.deps import get_db_session, require_roles
from fulfillment_api.core.errors import raise_for_unique_violation
from fulfillment_api.core.pagination import ListQuery, list_query
from fulfillment_api.repositories.inventory import (
    ASSET_SORT_FIELDS,
    AssetRepository,
    BrandRepository,
    WarehouseRepository,
    ZoneRepository,
)
from fulfillment_api.repositories.platform import CompanyRepository
from fulfillment_api.schemas.common import ApiResponse, MessageResponse, PaginatedResponse, ok, paginated
from fulfillment_api.schemas.inventory import AssetCreate, AssetRead, AssetUpdate

router = APIRouter(prefix="/assets", tags=["Assets"])

ASSET_CONSTRAINT_MESSAGES = {"assets_platform_qr_code_unique": "QR code already in use, please retry"}

STAFF = (UserRole.ADMIN.value, UserRole.LOGISTICS.value)
ANY_ROLE = STAFF + (UserRole.CLIENT.value,)


async def _check_placement(
    session: AsyncSession,
    platform_id: UUID,
    company_id: UUID,
    warehouse_id: UUID,
    zone_id: UUID,
    brand_id: Optional[UUID],
) -> None:
    """The zone must sit in the warehouse and belong to the company; a brand must share the company."""
    if await CompanyRepository(session).get(platform_id, company_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Company not found")
    if await WarehouseRepository(session).get(platform_id, warehouse_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Warehouse not found")
    zone = await ZoneRepository(session).get(platform_id, zone_id)
    if zone is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Zone not found")
    if zone.warehouse_id != warehouse_id or zone.company_id != company_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Zone does not belong to the given warehouse and company",
        )
    if brand_id:
        brand = await BrandRepository(session).get(platform_id, brand_id)
        if brand is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Brand not found")
        if brand.company_id != company_id:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Brand does not belong to the company")


async def _asset_for(session: AsyncSession, user, asset_id: UUID):
    asset = await AssetRepository(session).get(user.platform_id, asset_id)
    if asset is None or (user.role == UserRole.CLIENT.value and asset.company_id != user.company_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Asset not found")
    return asset


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=ApiResponse[AssetRead],
    status_code=status.HTTP_201_CREATED,
    summary="Create asset",
    description="Register an asset in a warehouse zone. A QR code is generated.",
)
async def create_asset(
    payload: AssetCreate,
    user=Depends(require_roles(*STAFF)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    await _check_placement(
        session, user.platform_id, payload.company_id, payload.warehouse_id, payload.zone_id, payload.brand_id
    )
    fields = payload.model_dump()
    if fields["available_quantity"] is None:
        fields["available_quantity"] = fields["total_quantity"]
    fields["tracking_method"] = payload.tracking_method.value
    fields["condition"] = payload.condition.value
    repo = AssetRepository(session)
    try:
        asset = await repo.create(user.platform_id, fields)
        await repo.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise_for_unique_violation(exc, ASSET_CONSTRAINT_MESSAGES)
    return ok(AssetRead.model_validate(asset), "Asset created successfully")


# PUBLIC_INTERFACE
@router.get("", response_model=PaginatedResponse[AssetRead], summary="List assets")
async def list_assets(
    query: ListQuery = Depends(list_query(*ASSET_SORT_FIELDS)),
    company_id: Optional[UUID] = Query(None),
    brand_id: Optional[UUID] = Query(None),
    warehouse_id: Optional[UUID] = Query(None),
    zone_id: Optional[UUID] = Query(None),
    category: Optional[str] = Query(None),
    condition: Optional[AssetCondition] = Query(None),
    asset_status: Optional[AssetStatus] = Query(None, alias="status"),
    user=Depends(require_roles(*ANY_ROLE)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    if user.role == UserRole.CLIENT.value:
        company_id = user.company_id
    filters = {
        "company_id": company_id,
        "brand_id": brand_id,
        "warehouse_id": warehouse_id,
        "zone_id": zone_id,
        "category": category,
        "condition": condition.value if condition else None,
        "status": asset_status.value if asset_status else None,
    }
    rows, total = await AssetRepository(session).list_assets(
        user.platform_id, query.paging, search=query.search_term, filters=filters
    )
    return paginated([AssetRead.model_validate(a) for a in rows], total, query.paging, "Assets retrieved successfully")


# PUBLIC_INTERFACE
@router.get("/{asset_id}", response_model=ApiResponse[AssetRead], summary="Get asset")
async def get_asset(
    asset_id: UUID = Path(...),
    user=Depends(require_roles(*ANY_ROLE)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    return ok(AssetRead.model_validate(await _asset_for(session, user, asset_id)), "Asset retrieved successfully")


# PUBLIC_INTERFACE
@router.patch("/{asset_id}", response_model=ApiResponse[AssetRead], summary="Update asset")
async def update_asset(
    payload: AssetUpdate,
    asset_id: UUID = Path(...),
    user=Depends(require_roles(*STAFF)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    repo = AssetRepository(session)
    asset = await _asset_for(session, user, asset_id)
    changes = payload.model_dump(exclude_unset=True)
    if "zone_id" in changes or "brand_id" in changes:
        await _check_placement(
            session,
            user.platform_id,
            asset.company_id,
            asset.warehouse_id,
            changes.get("zone_id") or asset.zone_id,
            changes.get("brand_id", asset.brand_id),
        )
    total = changes.get("total_quantity", asset.total_quantity)
    available = changes.get("available_quantity", asset.available_quantity)
    if available > total:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="available_quantity cannot exceed total_quantity"
        )
    if asset.tracking_method == "INDIVIDUAL" and total != 1:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Individually tracked assets must have a total quantity of 1",
        )
    for key in ("condition", "status"):
        if changes.get(key) is not None:
            changes[key] = changes[key].value
    asset = await repo.update(asset, changes)
    await repo.commit()
    return ok(AssetRead.model_validate(asset), "Asset updated successfully")


# PUBLIC_INTERFACE
@router.delete("/{asset_id}", response_model=MessageResponse, summary="Delete asset (soft)")
async def delete_asset(
    asset_id: UUID = Path(...),
    user=Depends(require_roles(UserRole.ADMIN.value)),
    session: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    repo = AssetRepository(session)
    asset = await _asset_for(session, user, asset_id)
    if await repo.in_open_order(asset.id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Asset is part of an order that is not yet closed or cancelled",
        )
    await repo.soft_delete(asset)
    await repo.commit()
    return MessageResponse(message="Asset deleted successfully")
