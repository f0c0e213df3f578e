from __future__ import annotations

from typing import Any, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment_api.core.constants import UserRole
from fulfillment_api.core.deps import get_db_session, require_roles
from fulfillment_api.core.errors import raise_for_unique_violation
from fulfillment_api.core.pagination import ListQuery, list_query
from fulfillment_api.core.security import get_password_hash
from fulfillment_api.repositories.platform import CompanyRepository
from fulfillment_api.repositories.security import USER_SORT_FIELDS, UserRepository
from fulfillment_api.schemas.auth import UserCreate, UserRead, UserUpdate
from fulfillment_api.schemas.common import ApiResponse, PaginatedResponse, ok, paginated

router = APIRouter(
    prefix="/users",
    tags=["Users"],
)

USER_CONSTRAINT_MESSAGES = {"user_platform_email_unique": "A user with this email already exists"}


async def _check_company(session: AsyncSession, platform_id: UUID, role: str, company_id: Optional[UUID]) -> None:
    """CLIENT users need a company on this platform; staff roles carry none."""
    if role == UserRole.CLIENT.value:
        if not company_id:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="company_id is required for CLIENT users")
        if await CompanyRepository(session).get(platform_id, company_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Company not found")
    elif company_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=f"{role} users cannot be linked to a company"
        )


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=ApiResponse[UserRead],
    status_code=status.HTTP_201_CREATED,
    summary="Create user",
    description="Admin-only: create a user on the current platform.",
)
async def create_user(
    payload: UserCreate,
    admin=Depends(require_roles(UserRole.ADMIN.value)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    await _check_company(session, admin.platform_id, payload.role.value, payload.company_id)
    repo = UserRepository(session)
    if await repo.get_by_email(admin.platform_id, payload.email):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A user with this email already exists")
    try:
        user = await repo.create(
            admin.platform_id,
            name=payload.name,
            email=payload.email,
            hashed_password=get_password_hash(payload.password),
            role=payload.role.value,
            company_id=payload.company_id,
            is_active=payload.is_active,
        )
        await repo.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise_for_unique_violation(exc, USER_CONSTRAINT_MESSAGES)
    return ok(UserRead.model_validate(user), "User created successfully")


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=PaginatedResponse[UserRead],
    summary="List users",
)
async def list_users(
    query: ListQuery = Depends(list_query(*USER_SORT_FIELDS)),
    role: Optional[UserRole] = Query(None),
    company_id: Optional[UUID] = Query(None),
    admin=Depends(require_roles(UserRole.ADMIN.value)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    rows, total = await UserRepository(session).list_users(
        admin.platform_id,
        query.paging,
        search=query.search_term,
        role=role.value if role else None,
        company_id=company_id,
    )
    return paginated([UserRead.model_validate(u) for u in rows], total, query.paging, "Users retrieved successfully")


async def _user_or_404(repo: UserRepository, platform_id: UUID, user_id: UUID):
    user = await repo.get(platform_id, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


# PUBLIC_INTERFACE
@router.get("/{user_id}", response_model=ApiResponse[UserRead], summary="Get user")
async def get_user(
    user_id: UUID = Path(...),
    admin=Depends(require_roles(UserRole.ADMIN.value)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    user = await _user_or_404(UserRepository(session), admin.platform_id, user_id)
    return ok(UserRead.model_validate(user), "User retrieved successfully")


# PUBLIC_INTERFACE
@router.patch("/{user_id}", response_model=ApiResponse[UserRead], summary="Update user")
async def update_user(
    payload: UserUpdate,
    user_id: UUID = Path(...),
    admin=Depends(require_roles(UserRole.ADMIN.value)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    repo = UserRepository(session)
    user = await _user_or_404(repo, admin.platform_id, user_id)
    changes = payload.model_dump(exclude_unset=True)
    if "role" in changes or "company_id" in changes:
        role = changes.get("role") or user.role
        await _check_company(
            session,
            admin.platform_id,
            role.value if isinstance(role, UserRole) else role,
            changes.get("company_id", user.company_id),
        )
    if "role" in changes and changes["role"] is not None:
        changes["role"] = changes["role"].value
    password = changes.pop("password", None)
    if changes:
        user = await repo.update(user, **changes)
    if password:
        user = await repo.set_password(user, get_password_hash(password))
    await repo.commit()
    return ok(UserRead.model_validate(user), "User updated successfully")
