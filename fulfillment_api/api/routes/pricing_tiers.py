from __future__ import annotations

import math
from typing import Any, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment_api.core.constants import UserRole
from fulfillment_api.core.deps import get_db_session, require_roles
from fulfillment_api.core.pagination import ListQuery, list_query
from fulfillment_api.repositories.pricing import PRICING_TIER_SORT_FIELDS, PricingTierRepository
from fulfillment_api.schemas.common import ApiResponse, MessageResponse, PaginatedResponse, ok, paginated
from fulfillment_api.schemas.pricing import (
    PricingCalculation,
    PricingTierCreate,
    PricingTierLocations,
    PricingTierRead,
    PricingTierUpdate,
)
from fulfillment_api.services.pricing import PricingTierService

router = APIRouter(prefix="/pricing-tiers", tags=["Pricing Tiers"])

ADMIN = UserRole.ADMIN.value
STAFF = (UserRole.ADMIN.value, UserRole.LOGISTICS.value)
ANY_ROLE = STAFF + (UserRole.CLIENT.value,)


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=ApiResponse[PricingTierRead],
    status_code=status.HTTP_201_CREATED,
    summary="Create pricing tier",
    description=(
        "Create a flat-rate tier for [volume_min, volume_max) m³ in a city. "
        "Ranges may not overlap another active tier for the same location."
    ),
)
async def create_pricing_tier(
    payload: PricingTierCreate,
    user=Depends(require_roles(ADMIN)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    tier = await PricingTierService(session).create_tier(user.platform_id, payload)
    return ok(PricingTierRead.model_validate(tier), "Pricing tier created successfully")


# PUBLIC_INTERFACE
@router.get("", response_model=PaginatedResponse[PricingTierRead], summary="List pricing tiers")
async def list_pricing_tiers(
    query: ListQuery = Depends(list_query(*PRICING_TIER_SORT_FIELDS)),
    country: Optional[str] = Query(None),
    city: Optional[str] = Query(None),
    include_inactive: Optional[bool] = Query(None, description="When given, filters on is_active"),
    user=Depends(require_roles(*STAFF)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    rows, total = await PricingTierRepository(session).list_tiers(
        user.platform_id,
        query.paging,
        search=query.search_term,
        country=country,
        city=city,
        is_active=include_inactive,
    )
    return paginated(
        [PricingTierRead.model_validate(t) for t in rows], total, query.paging, "Pricing tiers retrieved successfully"
    )


# PUBLIC_INTERFACE
@router.get(
    "/locations",
    response_model=ApiResponse[PricingTierLocations],
    summary="Priced locations",
    description="Countries and cities that have at least one active tier.",
)
async def pricing_tier_locations(
    user=Depends(require_roles(*ANY_ROLE)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    return ok(await PricingTierService(session).locations(user.platform_id), "Locations retrieved successfully")


# PUBLIC_INTERFACE
@router.get(
    "/calculate",
    response_model=ApiResponse[PricingCalculation],
    summary="Estimate a price",
    description="Match the active tier for (country, city, volume) and apply the caller's company margin.",
)
async def calculate_price(
    country: str = Query(..., min_length=1),
    city: str = Query(..., min_length=1),
    volume: str = Query(..., description="Total volume in m³"),
    user=Depends(require_roles(*ANY_ROLE)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    try:
        order_volume = float(volume)
    except ValueError:
        order_volume = -1.0
    if math.isnan(order_volume) or order_volume < 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Volume must be a non-negative number")
    result = await PricingTierService(session).calculate(
        user.platform_id, country, city, order_volume, company_id=user.company_id
    )
    return ok(result, "Pricing calculated successfully")


async def _tier_or_404(session: AsyncSession, platform_id: UUID, tier_id: UUID):
    tier = await PricingTierRepository(session).get(platform_id, tier_id)
    if tier is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Pricing tier not found")
    return tier


# PUBLIC_INTERFACE
@router.get("/{tier_id}", response_model=ApiResponse[PricingTierRead], summary="Get pricing tier")
async def get_pricing_tier(
    tier_id: UUID = Path(...),
    user=Depends(require_roles(*STAFF)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    tier = await _tier_or_404(session, user.platform_id, tier_id)
    return ok(PricingTierRead.model_validate(tier), "Pricing tier retrieved successfully")


# PUBLIC_INTERFACE
@router.patch("/{tier_id}", response_model=ApiResponse[PricingTierRead], summary="Update pricing tier")
async def update_pricing_tier(
    payload: PricingTierUpdate,
    tier_id: UUID = Path(...),
    user=Depends(require_roles(ADMIN)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    tier = await PricingTierService(session).update_tier(user.platform_id, tier_id, payload)
    return ok(PricingTierRead.model_validate(tier), "Pricing tier updated successfully")


# PUBLIC_INTERFACE
@router.delete("/{tier_id}", response_model=MessageResponse, summary="Delete pricing tier")
async def delete_pricing_tier(
    tier_id: UUID = Path(...),
    user=Depends(require_roles(ADMIN)),
    session: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    """Permanent delete; tiers referenced by orders must be deactivated instead."""
    await PricingTierService(session).delete_tier(user.platform_id, tier_id)
    return MessageResponse(message="Pricing tier deleted successfully")
