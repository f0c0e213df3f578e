from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple
from uuid import UUID, uuid4

from sqlalchemy import func, or_, select

from fulfillment_api.core.pagination import PageRequest
from fulfillment_api.db.models.inventory import Asset, Brand, Collection, CollectionItem, Warehouse, Zone
from fulfillment_api.db.models.orders import Order, OrderItem
from .base import BaseRepository

BRAND_SORT_FIELDS = ("name", "created_at", "updated_at")
WAREHOUSE_SORT_FIELDS = ("name", "country", "city", "created_at", "updated_at")
ZONE_SORT_FIELDS = ("name", "capacity", "created_at", "updated_at")
ASSET_SORT_FIELDS = ("name", "category", "available_quantity", "condition", "status", "created_at", "updated_at")
COLLECTION_SORT_FIELDS = ("name", "category", "created_at", "updated_at")

# Orders in these states no longer hold their assets.
RELEASED_ORDER_STATUSES = ("CLOSED", "CANCELLED", "DECLINED")


def _apply(entity: Any, fields: Dict[str, Any]) -> None:
    for field, value in fields.items():
        setattr(entity, field, value)


class BrandRepository(BaseRepository):
    SORTABLE = {name: getattr(Brand, name) for name in BRAND_SORT_FIELDS}

    async def get(self, platform_id: UUID, brand_id: UUID) -> Optional[Brand]:
        stmt = select(Brand).where(Brand.platform_id == platform_id, Brand.id == brand_id)
        return await self.scalar_one_or_none(stmt)

    async def list_brands(
        self,
        platform_id: UUID,
        paging: PageRequest,
        *,
        search: Optional[str] = None,
        company_id: Optional[UUID] = None,
        include_inactive: bool = False,
    ) -> Tuple[Sequence[Brand], int]:
        stmt = select(Brand).where(Brand.platform_id == platform_id)
        if search:
            stmt = stmt.where(Brand.name.ilike(f"%{search}%"))
        if company_id:
            stmt = stmt.where(Brand.company_id == company_id)
        if not include_inactive:
            stmt = stmt.where(Brand.is_active.is_(True))
        return await self.paginate(stmt, paging, self.SORTABLE)

    async def create(self, platform_id: UUID, fields: Dict[str, Any]) -> Brand:
        return await self.save(Brand(platform_id=platform_id, **fields))

    async def update(self, brand: Brand, fields: Dict[str, Any]) -> Brand:
        _apply(brand, fields)
        return await self.save(brand)

    async def is_referenced(self, brand_id: UUID) -> bool:
        assets = await self.scalar_one_or_none(select(func.count(Asset.id)).where(Asset.brand_id == brand_id))
        orders = await self.scalar_one_or_none(select(func.count(Order.id)).where(Order.brand_id == brand_id))
        return bool(assets) or bool(orders)

    async def delete(self, brand: Brand) -> None:
        await self.remove(brand)


class WarehouseRepository(BaseRepository):
    SORTABLE = {name: getattr(Warehouse, name) for name in WAREHOUSE_SORT_FIELDS}

    async def get(self, platform_id: UUID, warehouse_id: UUID) -> Optional[Warehouse]:
        stmt = select(Warehouse).where(Warehouse.platform_id == platform_id, Warehouse.id == warehouse_id)
        return await self.scalar_one_or_none(stmt)

    async def list_warehouses(
        self,
        platform_id: UUID,
        paging: PageRequest,
        *,
        search: Optional[str] = None,
        include_inactive: bool = False,
    ) -> Tuple[Sequence[Warehouse], int]:
        stmt = select(Warehouse).where(Warehouse.platform_id == platform_id)
        if search:
            like = f"%{search}%"
            stmt = stmt.where(
                or_(Warehouse.name.ilike(like), Warehouse.city.ilike(like), Warehouse.country.ilike(like))
            )
        if not include_inactive:
            stmt = stmt.where(Warehouse.is_active.is_(True))
        return await self.paginate(stmt, paging, self.SORTABLE)

    async def create(self, platform_id: UUID, fields: Dict[str, Any]) -> Warehouse:
        return await self.save(Warehouse(platform_id=platform_id, **fields))

    async def update(self, warehouse: Warehouse, fields: Dict[str, Any]) -> Warehouse:
        _apply(warehouse, fields)
        return await self.save(warehouse)

    async def delete(self, warehouse: Warehouse) -> None:
        await self.remove(warehouse)


class ZoneRepository(BaseRepository):
    SORTABLE = {name: getattr(Zone, name) for name in ZONE_SORT_FIELDS}

    async def get(self, platform_id: UUID, zone_id: UUID) -> Optional[Zone]:
        stmt = select(Zone).where(Zone.platform_id == platform_id, Zone.id == zone_id)
        return await self.scalar_one_or_none(stmt)

    async def list_zones(
        self,
        platform_id: UUID,
        paging: PageRequest,
        *,
        search: Optional[str] = None,
        warehouse_id: Optional[UUID] = None,
        company_id: Optional[UUID] = None,
    ) -> Tuple[Sequence[Zone], int]:
        stmt = select(Zone).where(Zone.platform_id == platform_id)
        if search:
            stmt = stmt.where(Zone.name.ilike(f"%{search}%"))
        if warehouse_id:
            stmt = stmt.where(Zone.warehouse_id == warehouse_id)
        if company_id:
            stmt = stmt.where(Zone.company_id == company_id)
        return await self.paginate(stmt, paging, self.SORTABLE)

    async def create(self, platform_id: UUID, fields: Dict[str, Any]) -> Zone:
        return await self.save(Zone(platform_id=platform_id, **fields))

    async def update(self, zone: Zone, fields: Dict[str, Any]) -> Zone:
        _apply(zone, fields)
        return await self.save(zone)

    async def has_assets(self, zone_id: UUID) -> bool:
        stmt = select(func.count(Asset.id)).where(Asset.zone_id == zone_id, Asset.deleted_at.is_(None))
        return bool(await self.scalar_one_or_none(stmt))

    async def delete(self, zone: Zone) -> None:
        await self.remove(zone)


class AssetRepository(BaseRepository):
    SORTABLE = {name: getattr(Asset, name) for name in ASSET_SORT_FIELDS}

    async def get(self, platform_id: UUID, asset_id: UUID) -> Optional[Asset]:
        stmt = select(Asset).where(
            Asset.platform_id == platform_id, Asset.id == asset_id, Asset.deleted_at.is_(None)
        )
        return await self.scalar_one_or_none(stmt)

    async def get_many(self, platform_id: UUID, asset_ids: List[UUID]) -> Dict[UUID, Asset]:
        if not asset_ids:
            return {}
        stmt = select(Asset).where(
            Asset.platform_id == platform_id, Asset.id.in_(asset_ids), Asset.deleted_at.is_(None)
        )
        return {a.id: a for a in (await self.scalars(stmt)).all()}

    async def list_assets(
        self,
        platform_id: UUID,
        paging: PageRequest,
        *,
        search: Optional[str] = None,
        filters: Optional[Dict[str, Any]] = None,
    ) -> Tuple[Sequence[Asset], int]:
        stmt = select(Asset).where(Asset.platform_id == platform_id, Asset.deleted_at.is_(None))
        if search:
            like = f"%{search}%"
            stmt = stmt.where(or_(Asset.name.ilike(like), Asset.qr_code.ilike(like), Asset.category.ilike(like)))
        for field, value in (filters or {}).items():
            if value is not None:
                stmt = stmt.where(getattr(Asset, field) == value)
        return await self.paginate(stmt, paging, self.SORTABLE)

    async def create(self, platform_id: UUID, fields: Dict[str, Any]) -> Asset:
        fields.setdefault("qr_code", f"AST-{uuid4().hex[:12].upper()}")
        return await self.save(Asset(platform_id=platform_id, **fields))

    async def update(self, asset: Asset, fields: Dict[str, Any]) -> Asset:
        _apply(asset, fields)
        return await self.save(asset)

    async def in_open_order(self, asset_id: UUID) -> bool:
        stmt = (
            select(func.count(OrderItem.id))
            .join(Order, Order.id == OrderItem.order_id)
            .where(OrderItem.asset_id == asset_id, Order.order_status.not_in(RELEASED_ORDER_STATUSES))
        )
        return bool(await self.scalar_one_or_none(stmt))

    async def soft_delete(self, asset: Asset) -> Asset:
        asset.deleted_at = datetime.now(tz=timezone.utc)
        return await self.save(asset)


class CollectionRepository(BaseRepository):
    """Collections and their items; soft-deleted collections are invisible to every read."""

    SORTABLE = {name: getattr(Collection, name) for name in COLLECTION_SORT_FIELDS}

    async def get(
        self, platform_id: UUID, collection_id: UUID, company_id: Optional[UUID] = None
    ) -> Optional[Collection]:
        stmt = (
            select(Collection)
            .where(
                Collection.platform_id == platform_id,
                Collection.id == collection_id,
                Collection.deleted_at.is_(None),
            )
            .execution_options(populate_existing=True)
        )
        if company_id:
            stmt = stmt.where(Collection.company_id == company_id)
        return await self.scalar_one_or_none(stmt)

    async def list_collections(
        self,
        platform_id: UUID,
        paging: PageRequest,
        *,
        search: Optional[str] = None,
        company_id: Optional[UUID] = None,
        brand_id: Optional[UUID] = None,
        category: Optional[str] = None,
        include_inactive: bool = False,
        include_deleted: bool = False,
    ) -> Tuple[Sequence[Collection], int]:
        stmt = select(Collection).where(Collection.platform_id == platform_id)
        if search:
            stmt = stmt.where(Collection.name.ilike(f"%{search}%"))
        if company_id:
            stmt = stmt.where(Collection.company_id == company_id)
        if brand_id:
            stmt = stmt.where(Collection.brand_id == brand_id)
        if category:
            stmt = stmt.where(Collection.category == category)
        if not include_inactive:
            stmt = stmt.where(Collection.is_active.is_(True))
        if not include_deleted:
            stmt = stmt.where(Collection.deleted_at.is_(None))
        return await self.paginate(stmt, paging, self.SORTABLE)

    async def create(self, platform_id: UUID, fields: Dict[str, Any]) -> Collection:
        return await self.save(Collection(platform_id=platform_id, **fields))

    async def update(self, collection: Collection, fields: Dict[str, Any]) -> Collection:
        _apply(collection, fields)
        return await self.save(collection)

    async def soft_delete(self, collection: Collection) -> Collection:
        collection.deleted_at = datetime.now(tz=timezone.utc)
        return await self.save(collection)

    async def get_item(self, collection_id: UUID, item_id: UUID) -> Optional[CollectionItem]:
        stmt = select(CollectionItem).where(
            CollectionItem.collection_id == collection_id, CollectionItem.id == item_id
        )
        return await self.scalar_one_or_none(stmt)

    async def add_item(self, collection: Collection, fields: Dict[str, Any]) -> CollectionItem:
        return await self.save(CollectionItem(collection_id=collection.id, **fields))

    async def update_item(self, item: CollectionItem, fields: Dict[str, Any]) -> CollectionItem:
        _apply(item, fields)
        return await self.save(item)

    async def remove_item(self, item: CollectionItem) -> None:
        await self.remove(item)
