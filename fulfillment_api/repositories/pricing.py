from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import func, or_, select

from fulfillment_api.core.pagination import PageRequest
from fulfillment_api.db.models.orders import Order
from fulfillment_api.db.models.pricing import OrderPrice, PricingTier
from .base import BaseRepository

PRICING_TIER_SORT_FIELDS = (
    "country",
    "city",
    "volume_min",
    "volume_max",
    "base_price",
    "created_at",
    "updated_at",
)


class PricingTierRepository(BaseRepository):
    """Pricing tiers within a platform."""

    SORTABLE = {name: getattr(PricingTier, name) for name in PRICING_TIER_SORT_FIELDS}

    async def get(self, platform_id: UUID, tier_id: UUID) -> Optional[PricingTier]:
        stmt = select(PricingTier).where(PricingTier.platform_id == platform_id, PricingTier.id == tier_id)
        return await self.scalar_one_or_none(stmt)

    async def list_tiers(
        self,
        platform_id: UUID,
        paging: PageRequest,
        *,
        search: Optional[str] = None,
        country: Optional[str] = None,
        city: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> Tuple[Sequence[PricingTier], int]:
        stmt = select(PricingTier).where(PricingTier.platform_id == platform_id)
        if search:
            like = f"%{search}%"
            stmt = stmt.where(or_(PricingTier.country.ilike(like), PricingTier.city.ilike(like)))
        if country:
            stmt = stmt.where(PricingTier.country.ilike(f"%{country}%"))
        if city:
            stmt = stmt.where(PricingTier.city.ilike(f"%{city}%"))
        if is_active is not None:
            stmt = stmt.where(PricingTier.is_active.is_(is_active))
        return await self.paginate(stmt, paging, self.SORTABLE)

    async def active_tiers_for(
        self,
        platform_id: UUID,
        country: str,
        city: str,
        exclude_id: Optional[UUID] = None,
    ) -> List[PricingTier]:
        """Active tiers for one (country, city), case-insensitive, optionally excluding a tier."""
        stmt = select(PricingTier).where(
            PricingTier.platform_id == platform_id,
            func.lower(PricingTier.country) == country.lower(),
            func.lower(PricingTier.city) == city.lower(),
            PricingTier.is_active.is_(True),
        )
        if exclude_id is not None:
            stmt = stmt.where(PricingTier.id != exclude_id)
        return list((await self.scalars(stmt.order_by(PricingTier.volume_min.asc()))).all())

    async def active_locations(self, platform_id: UUID) -> List[Tuple[str, str]]:
        stmt = (
            select(PricingTier.country, PricingTier.city)
            .where(PricingTier.platform_id == platform_id, PricingTier.is_active.is_(True))
            .distinct()
        )
        return [(row.country, row.city) for row in (await self.execute(stmt)).all()]

    async def create(self, platform_id: UUID, fields: Dict[str, Any]) -> PricingTier:
        return await self.save(PricingTier(platform_id=platform_id, **fields))

    async def update(self, tier: PricingTier, fields: Dict[str, Any]) -> PricingTier:
        for field, value in fields.items():
            setattr(tier, field, value)
        return await self.save(tier)

    async def is_referenced(self, tier_id: UUID) -> bool:
        orders = await self.scalar_one_or_none(
            select(func.count(Order.id)).where(Order.pricing_tier_id == tier_id)
        )
        prices = await self.scalar_one_or_none(
            select(func.count(OrderPrice.id)).where(OrderPrice.pricing_tier_id == tier_id)
        )
        return bool(orders) or bool(prices)

    async def delete(self, tier: PricingTier) -> None:
        await self.remove(tier)
