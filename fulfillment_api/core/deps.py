from __future__ import annotations

import logging
from typing import AsyncGenerator, Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment_api.core.logging import platform_id_var
from fulfillment_api.core.security import decode_token, issued_before
from fulfillment_api.db.session import get_async_session
from fulfillment_api.repositories.security import UserRepository

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


# PUBLIC_INTERFACE
async def get_platform_id(x_platform: str | None = Header(default=None, alias="X-Platform")) -> UUID:
    """
    Extract and validate the platform id from the X-Platform header.

    Raises:
        HTTPException: 400 Bad Request if header missing or invalid UUID.
    Returns:
        UUID: platform identifier
    """
    if not x_platform:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Platform ID is required. Please provide 'x-platform' header.",
        )
    try:
        platform_id = UUID(x_platform)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid Platform ID format. Must be a valid UUID.",
        )
    platform_id_var.set(str(platform_id))
    return platform_id


# PUBLIC_INTERFACE
async def get_db_session(
    session_dep=Depends(get_async_session),
) -> AsyncGenerator[AsyncSession, None]:
    """Yield the request-scoped AsyncSession."""
    yield session_dep


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


# PUBLIC_INTERFACE
async def get_current_user(
    platform_id: UUID = Depends(get_platform_id),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Resolve and return the current user from the Authorization bearer token.

    Validates the token, ensures its platform claim matches the X-Platform header,
    and rejects inactive users or tokens issued before the last password change.
    """
    if credentials is None or not credentials.credentials:
        raise _unauthorized("You are not authorized")
    try:
        payload = decode_token(credentials.credentials)
    except JWTError:
        raise _unauthorized("Invalid or expired token")

    if str(payload.get("platform_id")) != str(platform_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Token does not belong to this platform")

    user_id = payload.get("id")
    try:
        uid = UUID(str(user_id))
    except ValueError:
        raise _unauthorized("Invalid or expired token")

    user = await UserRepository(session).get(platform_id, uid)
    if not user:
        raise _unauthorized("User not found")
    if not user.is_active:
        raise _unauthorized("User account is not active")
    if issued_before(payload, user.password_changed_at):
        raise _unauthorized("Password changed recently")
    return user


# PUBLIC_INTERFACE
def require_roles(*required: str):
    """
    Create a dependency that requires the current user to hold one of the given roles.

    Returns the user so routes can depend on it directly.
    """

    async def _dep(user=Depends(get_current_user)):
        if user.role not in required:
            logger.info("Role %s denied; requires one of %s", user.role, ",".join(required))
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You do not have permission for this action")
        return user

    return _dep
