from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from fulfillment_api.core.constants import UserRole


class LoginRequest(BaseModel):
    """Credentials for password login on the platform named by X-Platform."""
    model_config = ConfigDict(extra="forbid")

    email: EmailStr = Field(..., description="User email")
    password: str = Field(..., min_length=1, description="User password")


class RefreshRequest(BaseModel):
    """Request to refresh an access token."""
    refresh_token: str = Field(..., description="Refresh token")


class ResetPasswordRequest(BaseModel):
    """Change the caller's own password."""
    model_config = ConfigDict(extra="forbid")

    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=50)


class TokenPair(BaseModel):
    """Access and refresh tokens."""
    token_type: str = Field("bearer", description="Token type, typically 'bearer'")
    access_token: str = Field(..., description="JWT access token")
    refresh_token: str = Field(..., description="JWT refresh token")


class UserRead(BaseModel):
    """User read model (never includes the password hash)."""
    id: UUID
    platform_id: UUID
    company_id: Optional[UUID] = None
    name: str
    email: EmailStr
    role: UserRole
    is_active: bool
    last_login_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class LoginResult(TokenPair):
    """Login response: the user plus a token pair."""
    user: UserRead


class UserCreate(BaseModel):
    """Admin create user payload."""
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=50)
    role: UserRole = Field(UserRole.CLIENT)
    company_id: Optional[UUID] = Field(None, description="Required for CLIENT users")
    is_active: bool = True


class UserUpdate(BaseModel):
    """Admin partial update of a user."""
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    role: Optional[UserRole] = None
    company_id: Optional[UUID] = None
    is_active: Optional[bool] = None
    password: Optional[str] = Field(None, min_length=8, max_length=50)


class PlatformContext(BaseModel):
    """Branding/context resolved from a hostname before login."""
    platform_id: UUID
    platform_name: str
    config: Dict[str, Any] = Field(default_factory=dict)
    features: Dict[str, Any] = Field(default_factory=dict)
    company_id: Optional[UUID] = None
    company_name: Optional[str] = None
