"""
Bootstrap data for a fresh database.

Seeds:
- One platform (SEED_PLATFORM_NAME / SEED_PLATFORM_DOMAIN)
- Its first ADMIN user (SYSTEM_USER_EMAIL / SYSTEM_USER_PASSWORD)

Both steps are idempotent; existing rows are left untouched.

Usage:
  python -m fulfillment_api.db.run_migrations upgrade head
  python -m fulfillment_api.db.seed
"""

from __future__ import annotations

import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment_api.core.constants import UserRole
from fulfillment_api.core.security import get_password_hash
from fulfillment_api.core.settings import AppSettings, get_app_settings
from fulfillment_api.db.models.platform import Platform
from fulfillment_api.db.session import get_session_maker
from fulfillment_api.repositories.platform import PlatformRepository
from fulfillment_api.repositories.security import UserRepository

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
async def seed_all(settings: AppSettings | None = None) -> None:
    """Create the seed platform and its admin user if they do not exist yet."""
    settings = settings or get_app_settings()
    async with get_session_maker()() as session:
        platform = await _ensure_platform(session, settings)
        await _ensure_admin(session, platform, settings)
        await session.commit()


async def _ensure_platform(session: AsyncSession, settings: AppSettings) -> Platform:
    platforms = PlatformRepository(session)
    platform = await platforms.get_by_domain(settings.SEED_PLATFORM_DOMAIN)
    if platform is not None:
        return platform
    platform = await platforms.create(
        name=settings.SEED_PLATFORM_NAME,
        domain=settings.SEED_PLATFORM_DOMAIN,
    )
    logger.info("Created platform %s (%s)", platform.name, platform.id)
    return platform


async def _ensure_admin(session: AsyncSession, platform: Platform, settings: AppSettings) -> None:
    users = UserRepository(session)
    if await users.get_by_email(platform.id, settings.SYSTEM_USER_EMAIL) is not None:
        return
    await users.create(
        platform.id,
        name=settings.SYSTEM_USER_NAME,
        email=settings.SYSTEM_USER_EMAIL,
        hashed_password=get_password_hash(settings.SYSTEM_USER_PASSWORD),
        role=UserRole.ADMIN.value,
    )
    logger.info("Created admin user %s on platform %s", settings.SYSTEM_USER_EMAIL, platform.id)


if __name__ == "__main__":
    from fulfillment_api.core.logging import configure_logging

    configure_logging(get_app_settings().LOG_LEVEL)
    asyncio.run(seed_all())
