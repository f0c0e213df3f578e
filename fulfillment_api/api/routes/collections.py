from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment_api.core.constants import UserRole
from fulfillment_api.core.deps import get_db_session, require_roles
from fulfillment_api.core.errors import raise_for_unique_violation
from fulfillment_api.core.pagination import ListQuery, list_query
from fulfillment_api.repositories.inventory import (
    COLLECTION_SORT_FIELDS,
    AssetRepository,
    BrandRepository,
    CollectionRepository,
)
from fulfillment_api.repositories.platform import CompanyRepository
from fulfillment_api.schemas.common import ApiResponse, MessageResponse, PaginatedResponse, ok, paginated
from fulfillment_api.schemas.inventory import (
    CollectionAvailability,
    CollectionCreate,
    CollectionDetail,
    CollectionItemAvailability,
    CollectionItemCreate,
    CollectionItemRead,
    CollectionItemUpdate,
    CollectionRead,
    CollectionUpdate,
)

router = APIRouter(prefix="/collections", tags=["Collections"])

COLLECTION_CONSTRAINT_MESSAGES = {"collection_items_unique": "This asset is already in the collection"}

ADMIN = UserRole.ADMIN.value
STAFF = (UserRole.ADMIN.value, UserRole.LOGISTICS.value)
ANY_ROLE = STAFF + (UserRole.CLIENT.value,)


def _client_company(user) -> Optional[UUID]:
    """Company a CLIENT is confined to; None for staff."""
    if user.role != UserRole.CLIENT.value:
        return None
    if not user.company_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Company not found")
    return user.company_id


async def _collection_for(session: AsyncSession, user, collection_id: UUID):
    collection = await CollectionRepository(session).get(
        user.platform_id, collection_id, company_id=_client_company(user)
    )
    if collection is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Collection not found")
    return collection


async def _check_brand(session: AsyncSession, platform_id: UUID, company_id: UUID, brand_id: UUID) -> None:
    brand = await BrandRepository(session).get(platform_id, brand_id)
    if brand is None or brand.company_id != company_id or not brand.is_active:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Brand not found or does not belong to this company"
        )


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=ApiResponse[CollectionRead],
    status_code=status.HTTP_201_CREATED,
    summary="Create collection",
    description="Group a company's assets into a reusable set. A brand, when given, must belong to the company.",
)
async def create_collection(
    payload: CollectionCreate,
    user=Depends(require_roles(*STAFF)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    company = await CompanyRepository(session).get(user.platform_id, payload.company_id)
    if company is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Company not found or is archived")
    if payload.brand_id:
        await _check_brand(session, user.platform_id, payload.company_id, payload.brand_id)
    repo = CollectionRepository(session)
    collection = await repo.create(user.platform_id, payload.model_dump())
    await repo.commit()
    return ok(CollectionRead.model_validate(collection), "Collection created successfully")


# PUBLIC_INTERFACE
@router.get("", response_model=PaginatedResponse[CollectionRead], summary="List collections")
async def list_collections(
    query: ListQuery = Depends(list_query(*COLLECTION_SORT_FIELDS)),
    company_id: Optional[UUID] = Query(None),
    brand_id: Optional[UUID] = Query(None),
    category: Optional[str] = Query(None),
    include_inactive: bool = Query(False),
    include_deleted: bool = Query(False),
    user=Depends(require_roles(*ANY_ROLE)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    company_id = _client_company(user) or company_id
    rows, total = await CollectionRepository(session).list_collections(
        user.platform_id,
        query.paging,
        search=query.search_term,
        company_id=company_id,
        brand_id=brand_id,
        category=category,
        include_inactive=include_inactive,
        include_deleted=include_deleted,
    )
    return paginated(
        [CollectionRead.model_validate(c) for c in rows], total, query.paging, "Collections fetched successfully"
    )


# PUBLIC_INTERFACE
@router.get(
    "/{collection_id}",
    response_model=ApiResponse[CollectionDetail],
    summary="Get collection",
    description="The collection with its items, each embedding a summary of its asset.",
)
async def get_collection(
    collection_id: UUID = Path(...),
    user=Depends(require_roles(*ANY_ROLE)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    collection = await _collection_for(session, user, collection_id)
    return ok(CollectionDetail.model_validate(collection), "Collection fetched successfully")


# PUBLIC_INTERFACE
@router.patch("/{collection_id}", response_model=ApiResponse[CollectionRead], summary="Update collection")
async def update_collection(
    payload: CollectionUpdate,
    collection_id: UUID = Path(...),
    user=Depends(require_roles(*STAFF)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    repo = CollectionRepository(session)
    collection = await _collection_for(session, user, collection_id)
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("brand_id"):
        await _check_brand(session, user.platform_id, collection.company_id, changes["brand_id"])
    collection = await repo.update(collection, changes)
    await repo.commit()
    return ok(CollectionRead.model_validate(collection), "Collection updated successfully")


# PUBLIC_INTERFACE
@router.delete("/{collection_id}", response_model=MessageResponse, summary="Delete collection (soft)")
async def delete_collection(
    collection_id: UUID = Path(...),
    user=Depends(require_roles(ADMIN)),
    session: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    repo = CollectionRepository(session)
    collection = await _collection_for(session, user, collection_id)
    await repo.soft_delete(collection)
    await repo.commit()
    return MessageResponse(message="Collection deleted successfully")


# PUBLIC_INTERFACE
@router.post(
    "/{collection_id}/items",
    response_model=ApiResponse[CollectionItemRead],
    status_code=status.HTTP_201_CREATED,
    summary="Add collection item",
    description="The asset must belong to the collection's company; each asset appears at most once.",
)
async def add_collection_item(
    payload: CollectionItemCreate,
    collection_id: UUID = Path(...),
    user=Depends(require_roles(*STAFF)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    repo = CollectionRepository(session)
    collection = await _collection_for(session, user, collection_id)
    asset = await AssetRepository(session).get(user.platform_id, payload.asset_id)
    if asset is None or asset.company_id != collection.company_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Asset not found or does not belong to this company"
        )
    try:
        item = await repo.add_item(collection, payload.model_dump())
        await repo.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise_for_unique_violation(exc, COLLECTION_CONSTRAINT_MESSAGES)
    return ok(CollectionItemRead.model_validate(item), "Item added to collection successfully")


async def _item_for(repo: CollectionRepository, collection_id: UUID, item_id: UUID):
    item = await repo.get_item(collection_id, item_id)
    if item is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Collection item not found")
    return item


# PUBLIC_INTERFACE
@router.patch(
    "/{collection_id}/items/{item_id}",
    response_model=ApiResponse[CollectionItemRead],
    summary="Update collection item",
)
async def update_collection_item(
    payload: CollectionItemUpdate,
    collection_id: UUID = Path(...),
    item_id: UUID = Path(...),
    user=Depends(require_roles(*STAFF)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    repo = CollectionRepository(session)
    collection = await _collection_for(session, user, collection_id)
    item = await _item_for(repo, collection.id, item_id)
    item = await repo.update_item(item, payload.model_dump(exclude_unset=True))
    await repo.commit()
    return ok(CollectionItemRead.model_validate(item), "Collection item updated successfully")


# PUBLIC_INTERFACE
@router.delete(
    "/{collection_id}/items/{item_id}", response_model=MessageResponse, summary="Remove collection item"
)
async def delete_collection_item(
    collection_id: UUID = Path(...),
    item_id: UUID = Path(...),
    user=Depends(require_roles(*STAFF)),
    session: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    repo = CollectionRepository(session)
    collection = await _collection_for(session, user, collection_id)
    item = await _item_for(repo, collection.id, item_id)
    await repo.remove_item(item)
    await repo.commit()
    return MessageResponse(message="Collection item deleted successfully")


# PUBLIC_INTERFACE
@router.get(
    "/{collection_id}/availability",
    response_model=ApiResponse[CollectionAvailability],
    summary="Check collection availability",
    description=(
        "Compare each item's default quantity with its asset's current available quantity. "
        "The event window is echoed back; stock is not projected over time."
    ),
)
async def check_collection_availability(
    collection_id: UUID = Path(...),
    event_start_date: datetime = Query(...),
    event_end_date: datetime = Query(...),
    user=Depends(require_roles(*ANY_ROLE)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    start, end = _as_utc(event_start_date), _as_utc(event_end_date)
    if end < start:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Event end date must be on or after the start date"
        )
    collection = await _collection_for(session, user, collection_id)
    items = [
        CollectionItemAvailability(
            asset_id=item.asset.id,
            asset_name=item.asset.name,
            default_quantity=item.default_quantity,
            available_quantity=item.asset.available_quantity,
            total_quantity=item.asset.total_quantity,
            status=item.asset.status,
            condition=item.asset.condition,
            is_available=item.asset.available_quantity >= item.default_quantity,
        )
        for item in collection.items
        if item.asset is not None and item.asset.deleted_at is None
    ]
    result = CollectionAvailability(
        collection_id=collection.id,
        collection_name=collection.name,
        event_start_date=start,
        event_end_date=end,
        is_fully_available=all(i.is_available for i in items),
        items=items,
    )
    return ok(result, "Collection availability checked successfully")
