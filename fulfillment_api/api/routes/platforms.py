from __future__ import annotations

from typing import Any, Dict
from uuid import UUID

from fastapi import APIRouter, Body, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment_api.core.constants import UserRole
from fulfillment_api.core.deps import get_current_user, get_db_session, get_platform_id, require_roles
from fulfillment_api.repositories.platform import PlatformRepository
from fulfillment_api.schemas.common import ApiResponse, ok
from fulfillment_api.schemas.platform import PlatformRead

router = APIRouter(prefix="/platforms", tags=["Platforms"])


async def _platform_or_404(repo: PlatformRepository, platform_id: UUID):
    platform = await repo.get(platform_id)
    if platform is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Platform not found")
    return platform


# PUBLIC_INTERFACE
@router.get(
    "/me",
    response_model=ApiResponse[PlatformRead],
    summary="Current platform",
    dependencies=[Depends(get_current_user)],
)
async def read_platform(
    platform_id: UUID = Depends(get_platform_id),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    platform = await _platform_or_404(PlatformRepository(session), platform_id)
    return ok(PlatformRead.model_validate(platform), "Platform retrieved successfully")


async def _merge(session: AsyncSession, platform_id: UUID, field: str, values: Dict[str, Any]):
    repo = PlatformRepository(session)
    platform = await _platform_or_404(repo, platform_id)
    platform = await repo.merge_json(platform, field, values)
    await repo.commit()
    return PlatformRead.model_validate(platform)


# PUBLIC_INTERFACE
@router.patch(
    "/config",
    response_model=ApiResponse[PlatformRead],
    summary="Update platform config",
    description="Shallow-merge the body into the platform's config document.",
    dependencies=[Depends(require_roles(UserRole.ADMIN.value))],
)
async def update_config(
    values: Dict[str, Any] = Body(...),
    platform_id: UUID = Depends(get_platform_id),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    return ok(await _merge(session, platform_id, "config", values), "Platform config updated successfully")


# PUBLIC_INTERFACE
@router.patch(
    "/features",
    response_model=ApiResponse[PlatformRead],
    summary="Update platform feature flags",
    description="Shallow-merge the body into the platform's features document.",
    dependencies=[Depends(require_roles(UserRole.ADMIN.value))],
)
async def update_features(
    values: Dict[str, Any] = Body(...),
    platform_id: UUID = Depends(get_platform_id),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    return ok(await _merge(session, platform_id, "features", values), "Platform features updated successfully")
