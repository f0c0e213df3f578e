from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import or_, select

from fulfillment_api.core.pagination import PageRequest
from fulfillment_api.db.models.platform import Company, CompanyDomain, Platform
from fulfillment_api.schemas.platform import CompanyCreate, CompanyUpdate
from .base import BaseRepository

COMPANY_SORT_FIELDS = ("name", "domain", "platform_margin_percent", "created_at", "updated_at")


class PlatformRepository(BaseRepository):
    """Platforms and hostname resolution."""

    async def get(self, platform_id: UUID) -> Optional[Platform]:
        return await self.scalar_one_or_none(select(Platform).where(Platform.id == platform_id))

    async def get_by_domain(self, domain: str) -> Optional[Platform]:
        return await self.scalar_one_or_none(
            select(Platform).where(Platform.domain == domain, Platform.is_active.is_(True))
        )

    async def get_company_domain(self, hostname: str) -> Optional[CompanyDomain]:
        stmt = select(CompanyDomain).where(
            CompanyDomain.hostname == hostname, CompanyDomain.is_active.is_(True)
        )
        return await self.scalar_one_or_none(stmt)

    async def create(self, *, name: str, domain: str, config: Dict[str, Any] | None = None) -> Platform:
        return await self.save(Platform(name=name, domain=domain, config=config or {}, features={}))

    async def merge_json(self, platform: Platform, field: str, values: Dict[str, Any]) -> Platform:
        """Shallow-merge `values` into the platform's `config` or `features` document."""
        merged = {**(getattr(platform, field) or {}), **values}
        setattr(platform, field, merged)
        return await self.save(platform)


class CompanyRepository(BaseRepository):
    """Client companies within a platform (soft-deleted rows are hidden)."""

    SORTABLE = {name: getattr(Company, name) for name in COMPANY_SORT_FIELDS}

    async def get(self, platform_id: UUID, company_id: UUID) -> Optional[Company]:
        stmt = select(Company).where(
            Company.platform_id == platform_id,
            Company.id == company_id,
            Company.deleted_at.is_(None),
        )
        return await self.scalar_one_or_none(stmt)

    async def list_companies(
        self,
        platform_id: UUID,
        paging: PageRequest,
        *,
        search: Optional[str] = None,
        include_inactive: bool = False,
    ) -> Tuple[Sequence[Company], int]:
        stmt = select(Company).where(Company.platform_id == platform_id, Company.deleted_at.is_(None))
        if search:
            like = f"%{search}%"
            stmt = stmt.where(or_(Company.name.ilike(like), Company.domain.ilike(like)))
        if not include_inactive:
            stmt = stmt.where(Company.is_active.is_(True))
        return await self.paginate(stmt, paging, self.SORTABLE)

    async def create(self, platform_id: UUID, payload: CompanyCreate, hostname: str) -> Company:
        """Insert the company plus its vanity hostname (flushed, not committed)."""
        company = await self.save(Company(platform_id=platform_id, **payload.model_dump()))
        await self.save(
            CompanyDomain(
                platform_id=platform_id,
                company_id=company.id,
                hostname=hostname,
                type="VANITY",
                is_verified=True,
            )
        )
        return company

    async def update(self, company: Company, payload: CompanyUpdate) -> Company:
        for field, value in payload.model_dump(exclude_unset=True).items():
            setattr(company, field, value)
        return await self.save(company)

    async def soft_delete(self, company: Company) -> Company:
        company.deleted_at = datetime.now(tz=timezone.utc)
        company.is_active = False
        return await self.save(company)

