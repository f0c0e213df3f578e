from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import func, or_, select

from fulfillment_api.core.pagination import PageRequest
from fulfillment_api.db.models.security import User
from .base import BaseRepository

USER_SORT_FIELDS = ("name", "email", "role", "last_login_at", "created_at", "updated_at")


class UserRepository(BaseRepository):
    """Repository for user management within a platform."""

    SORTABLE = {name: getattr(User, name) for name in USER_SORT_FIELDS}

    async def get_by_email(self, platform_id: UUID, email: str) -> Optional[User]:
        stmt = select(User).where(User.platform_id == platform_id, func.lower(User.email) == email.lower())
        return await self.scalar_one_or_none(stmt)

    async def get(self, platform_id: UUID, user_id: UUID) -> Optional[User]:
        stmt = select(User).where(User.platform_id == platform_id, User.id == user_id)
        return await self.scalar_one_or_none(stmt)

    async def list_users(
        self,
        platform_id: UUID,
        paging: PageRequest,
        *,
        search: Optional[str] = None,
        role: Optional[str] = None,
        company_id: Optional[UUID] = None,
    ) -> Tuple[Sequence[User], int]:
        stmt = select(User).where(User.platform_id == platform_id)
        if search:
            like = f"%{search}%"
            stmt = stmt.where(or_(User.name.ilike(like), User.email.ilike(like)))
        if role:
            stmt = stmt.where(User.role == role)
        if company_id:
            stmt = stmt.where(User.company_id == company_id)
        return await self.paginate(stmt, paging, self.SORTABLE)

    async def admin_emails(self, platform_id: UUID) -> List[str]:
        stmt = select(User.email).where(
            User.platform_id == platform_id,
            User.role == "ADMIN",
            User.is_active.is_(True),
        )
        return list((await self.scalars(stmt)).all())

    async def create(
        self,
        platform_id: UUID,
        *,
        name: str,
        email: str,
        hashed_password: str,
        role: str,
        company_id: Optional[UUID] = None,
        is_active: bool = True,
    ) -> User:
        user = User(
            platform_id=platform_id,
            name=name,
            email=email.lower(),
            password=hashed_password,
            role=role,
            company_id=company_id,
            is_active=is_active,
        )
        return await self.save(user)

    async def update(self, user: User, **fields) -> User:
        for field, value in fields.items():
            setattr(user, field, value)
        return await self.save(user)

    async def touch_last_login(self, user: User) -> User:
        user.last_login_at = datetime.now(tz=timezone.utc)
        return await self.save(user)

    async def set_password(self, user: User, hashed_password: str) -> User:
        user.password = hashed_password
        user.password_changed_at = datetime.now(tz=timezone.utc)
        return await self.save(user)
