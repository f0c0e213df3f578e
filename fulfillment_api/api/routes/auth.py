from __future__ import annotations

from typing import Any, Dict
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment_api.core.deps import get_current_user, get_db_session, get_platform_id
from fulfillment_api.core.security import (
    REFRESH_TOKEN,
    build_claims,
    create_access_token,
    create_refresh_token,
    decode_token,
    get_password_hash,
    verify_password,
)
from fulfillment_api.repositories.platform import CompanyRepository, PlatformRepository
from fulfillment_api.repositories.security import UserRepository
from fulfillment_api.schemas.auth import (
    LoginRequest,
    LoginResult,
    PlatformContext,
    RefreshRequest,
    ResetPasswordRequest,
    TokenPair,
    UserRead,
)
from fulfillment_api.schemas.common import ApiResponse, MessageResponse, ok

router = APIRouter(prefix="/auth", tags=["Auth"])


def _token_pair(user) -> Dict[str, str]:
    claims = build_claims(user)
    return {
        "token_type": "bearer",
        "access_token": create_access_token(claims),
        "refresh_token": create_refresh_token(claims),
    }


# PUBLIC_INTERFACE
@router.post(
    "/login",
    response_model=ApiResponse[LoginResult],
    summary="Login",
    description="Authenticate with email and password on the platform named by X-Platform.",
)
async def login(
    payload: LoginRequest,
    platform_id: UUID = Depends(get_platform_id),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    """Verify credentials, stamp last_login_at and issue an access/refresh token pair."""
    repo = UserRepository(session)
    user = await repo.get_by_email(platform_id, payload.email)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User account is not active")
    if not verify_password(payload.password, user.password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid password")

    user = await repo.touch_last_login(user)
    await repo.commit()
    result = {**_token_pair(user), "user": UserRead.model_validate(user)}
    return ok(result, "User logged in successfully")


# PUBLIC_INTERFACE
@router.post(
    "/refresh",
    response_model=ApiResponse[TokenPair],
    summary="Refresh tokens",
    description="Exchange a valid refresh token for a new token pair.",
)
async def refresh_tokens(
    payload: RefreshRequest,
    platform_id: UUID = Depends(get_platform_id),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    try:
        claims = decode_token(payload.refresh_token, token_type=REFRESH_TOKEN)
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token")
    if str(claims.get("platform_id")) != str(platform_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Token does not belong to this platform")

    try:
        user_id = UUID(str(claims.get("id")))
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token")
    user = await UserRepository(session).get(platform_id, user_id)
    if not user or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found or inactive")
    return ok(_token_pair(user), "Token refreshed successfully")


# PUBLIC_INTERFACE
@router.post(
    "/reset-password",
    response_model=MessageResponse,
    summary="Change own password",
    description="Verify the current password and store a new one. Existing tokens stop working.",
)
async def reset_password(
    payload: ResetPasswordRequest,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    if not verify_password(payload.current_password, user.password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Current password is incorrect")
    repo = UserRepository(session)
    await repo.set_password(user, get_password_hash(payload.new_password))
    await repo.commit()
    return MessageResponse(message="Password reset successfully")


# PUBLIC_INTERFACE
@router.get(
    "/me",
    response_model=ApiResponse[UserRead],
    summary="Read current user",
)
async def read_current_user(user=Depends(get_current_user)) -> Any:
    return ok(UserRead.model_validate(user), "User retrieved successfully")


# PUBLIC_INTERFACE
@router.get(
    "/context",
    response_model=ApiResponse[PlatformContext],
    summary="Resolve platform by hostname",
    description="Public lookup used before login: hostname is a platform domain or a company domain.",
)
async def resolve_context(
    hostname: str = Query(..., min_length=1, description="Host the client app is served from"),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    repo = PlatformRepository(session)
    host = hostname.strip().lower()
    platform = await repo.get_by_domain(host)
    company = None
    if platform is None:
        company_domain = await repo.get_company_domain(host)
        if company_domain is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No platform found for this hostname")
        platform = await repo.get(company_domain.platform_id)
        company = await CompanyRepository(session).get(company_domain.platform_id, company_domain.company_id)
    if platform is None or not platform.is_active:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No platform found for this hostname")
    context = PlatformContext(
        platform_id=platform.id,
        platform_name=platform.name,
        config=platform.config or {},
        features=platform.features or {},
        company_id=company.id if company else None,
        company_name=company.name if company else None,
    )
    return ok(context, "Platform context resolved")
