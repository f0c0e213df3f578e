from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, Optional, Sequence
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment_api.core.errors import raise_for_unique_violation
from fulfillment_api.core.settings import get_app_settings
from fulfillment_api.db.models.pricing import PricingTier
from fulfillment_api.repositories.platform import CompanyRepository
from fulfillment_api.repositories.pricing import PricingTierRepository
from fulfillment_api.schemas.pricing import PricingTierCreate, PricingTierUpdate
from fulfillment_api.services.base import BaseService

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
MILLI = Decimal("0.001")
INFINITY = Decimal("Infinity")

TIER_CONSTRAINT_MESSAGES = {
    "pricing_tiers_unique": "A pricing tier with the same location and volume range already exists",
}


def to_decimal(value: Any) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def money(value: Any) -> Decimal:
    """Round to 2 decimal places, half up."""
    return to_decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def volume(value: Any) -> Decimal:
    """Round to 3 decimal places, half up."""
    return to_decimal(value).quantize(MILLI, rounding=ROUND_HALF_UP)


def _upper(value: Optional[Any]) -> Decimal:
    return INFINITY if value is None else to_decimal(value)


def format_volume(value: Optional[Any]) -> str:
    """Render a bound for messages: trailing zeros dropped, None as 'unlimited'."""
    if value is None:
        return "unlimited"
    normalized = to_decimal(value).normalize()
    return format(normalized, "f")


# PUBLIC_INTERFACE
def ranges_overlap(
    a_min: Any, a_max: Optional[Any], b_min: Any, b_max: Optional[Any]
) -> bool:
    """Half-open ranges [min, max) overlap; a None max is unbounded."""
    return to_decimal(a_min) < _upper(b_max) and to_decimal(b_min) < _upper(a_max)


# PUBLIC_INTERFACE
def find_overlapping_tier(
    tiers: Iterable[PricingTier], volume_min: Any, volume_max: Optional[Any]
) -> Optional[PricingTier]:
    """Return the first tier whose range overlaps [volume_min, volume_max)."""
    for tier in tiers:
        if ranges_overlap(volume_min, volume_max, tier.volume_min, tier.volume_max):
            return tier
    return None


# PUBLIC_INTERFACE
def select_matching_tier(tiers: Sequence[PricingTier], order_volume: Any) -> Optional[PricingTier]:
    """
    Pick the tier with min <= volume < max (max None is unbounded).

    When several ranges contain the volume the narrowest wins.
    """
    vol = to_decimal(order_volume)
    candidates = [
        t for t in tiers if to_decimal(t.volume_min) <= vol < _upper(t.volume_max)
    ]
    if not candidates:
        return None
    return min(
        candidates,
        key=lambda t: (_upper(t.volume_max) - to_decimal(t.volume_min), -to_decimal(t.volume_min)),
    )


@dataclass(frozen=True)
class PriceQuote:
    base_price: Decimal
    margin_percent: Decimal
    margin_amount: Decimal
    final_total: Decimal


# PUBLIC_INTERFACE
def quote_price(base_price: Any, margin_percent: Any) -> PriceQuote:
    """base + base * percent / 100, every figure rounded to cents."""
    base = money(base_price)
    pct = money(margin_percent)
    margin_amount = money(base * pct / Decimal(100))
    return PriceQuote(
        base_price=base,
        margin_percent=pct,
        margin_amount=margin_amount,
        final_total=money(base + margin_amount),
    )


def overlap_message(
    volume_min: Any, volume_max: Optional[Any], tier: PricingTier
) -> str:
    return (
        f"Volume range {format_volume(volume_min)}-{format_volume(volume_max)} m³ overlaps with existing tier "
        f"({format_volume(tier.volume_min)}-{format_volume(tier.volume_max)} m³) for {tier.city}, {tier.country}"
    )


class PricingTierService(BaseService):
    """
    Pricing tier management and price estimation.

    Tiers for one (platform, country, city) must not overlap among active tiers;
    the overlap scan is the only guard, so every write path runs it.
    """

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.tiers = PricingTierRepository(session)
        self.companies = CompanyRepository(session)

    # PUBLIC_INTERFACE
    async def check_volume_overlap(
        self,
        platform_id: UUID,
        country: str,
        city: str,
        volume_min: Any,
        volume_max: Optional[Any],
        exclude_id: Optional[UUID] = None,
    ) -> None:
        """Raise 409 when [volume_min, volume_max) overlaps an active tier for the location."""
        existing = await self.tiers.active_tiers_for(platform_id, country, city, exclude_id=exclude_id)
        clash = find_overlapping_tier(existing, volume_min, volume_max)
        if clash is not None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=overlap_message(volume_min, volume_max, clash),
            )

    # PUBLIC_INTERFACE
    async def create_tier(self, platform_id: UUID, payload: PricingTierCreate) -> PricingTier:
        await self.check_volume_overlap(
            platform_id, payload.country, payload.city, payload.volume_min, payload.volume_max
        )
        try:
            async with self.unit_of_work():
                tier = await self.tiers.create(platform_id, payload.model_dump())
        except IntegrityError as exc:
            raise_for_unique_violation(exc, TIER_CONSTRAINT_MESSAGES)
        logger.info("Created pricing tier %s for %s, %s", tier.id, tier.city, tier.country)
        return tier

    # PUBLIC_INTERFACE
    async def update_tier(self, platform_id: UUID, tier_id: UUID, payload: PricingTierUpdate) -> PricingTier:
        tier = await self.tiers.get(platform_id, tier_id)
        if tier is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Pricing tier not found")

        changes = payload.model_dump(exclude_unset=True)
        new_min = changes.get("volume_min", tier.volume_min)
        new_max = changes["volume_max"] if "volume_max" in changes else tier.volume_max
        if new_max is not None and to_decimal(new_max) < to_decimal(new_min):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Maximum volume must be greater than or equal to minimum volume",
            )

        activating = changes.get("is_active") is True and not tier.is_active
        if activating or any(field in changes for field in ("volume_min", "volume_max", "country", "city")):
            await self.check_volume_overlap(
                platform_id,
                changes.get("country", tier.country),
                changes.get("city", tier.city),
                new_min,
                new_max,
                exclude_id=tier.id,
            )
        try:
            async with self.unit_of_work():
                tier = await self.tiers.update(tier, changes)
        except IntegrityError as exc:
            raise_for_unique_violation(exc, TIER_CONSTRAINT_MESSAGES)
        return tier

    # PUBLIC_INTERFACE
    async def delete_tier(self, platform_id: UUID, tier_id: UUID) -> None:
        tier = await self.tiers.get(platform_id, tier_id)
        if tier is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Pricing tier not found")
        if await self.tiers.is_referenced(tier.id):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=(
                    "Cannot delete pricing tier because it is referenced by existing orders. "
                    "You can deactivate it instead."
                ),
            )
        async with self.unit_of_work():
            await self.tiers.delete(tier)
        logger.info("Deleted pricing tier %s", tier_id)

    # PUBLIC_INTERFACE
    async def locations(self, platform_id: UUID) -> Dict[str, Any]:
        """Sorted unique countries and, per country, sorted unique cities of active tiers."""
        by_country: Dict[str, set] = defaultdict(set)
        for country, city in await self.tiers.active_locations(platform_id):
            by_country[country].add(city)
        return {
            "countries": sorted(by_country),
            "locations_by_country": {c: sorted(cities) for c, cities in sorted(by_country.items())},
        }

    async def find_matching_tier(
        self, platform_id: UUID, country: str, city: str, order_volume: Any
    ) -> Optional[PricingTier]:
        tiers = await self.tiers.active_tiers_for(platform_id, country, city)
        return select_matching_tier(tiers, order_volume)

    async def margin_percent_for(self, platform_id: UUID, company_id: Optional[UUID]) -> Decimal:
        """Company margin, or the platform default when there is no company."""
        if company_id:
            company = await self.companies.get(platform_id, company_id)
            if company is not None and company.platform_margin_percent is not None:
                return to_decimal(company.platform_margin_percent)
        return to_decimal(get_app_settings().DEFAULT_PLATFORM_MARGIN_PERCENT)

    # PUBLIC_INTERFACE
    async def calculate(
        self,
        platform_id: UUID,
        country: str,
        city: str,
        order_volume: Any,
        company_id: Optional[UUID] = None,
    ) -> Dict[str, Any]:
        """Estimate the price for shipping `order_volume` m³ to (city, country)."""
        tier = await self.find_matching_tier(platform_id, country, city, order_volume)
        if tier is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=(
                    f"No active pricing tier found for {city}, {country} "
                    f"with volume {format_volume(order_volume)}m³"
                ),
            )
        quote = quote_price(tier.base_price, await self.margin_percent_for(platform_id, company_id))
        return {
            "pricing_tier_id": tier.id,
            "country": tier.country,
            "city": tier.city,
            "volume_min": float(tier.volume_min),
            "volume_max": float(tier.volume_max) if tier.volume_max is not None else None,
            "base_price": float(quote.base_price),
            "platform_margin_percent": float(quote.margin_percent),
            "platform_margin_amount": float(quote.margin_amount),
            "estimated_total": float(quote.final_total),
            "matched_volume": float(order_volume),
        }
