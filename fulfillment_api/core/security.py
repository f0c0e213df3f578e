from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from fulfillment_api.core.settings import get_app_settings

_pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=get_app_settings().SALT_ROUNDS,
)

ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"


# PUBLIC_INTERFACE
def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against a hashed password using bcrypt."""
    return _pwd_context.verify(plain_password, hashed_password)


# PUBLIC_INTERFACE
def get_password_hash(password: str) -> str:
    """Hash a password using bcrypt."""
    return _pwd_context.hash(password)


def _secret_for(token_type: str) -> str:
    settings = get_app_settings()
    if token_type == REFRESH_TOKEN:
        return settings.JWT_REFRESH_SECRET
    return settings.JWT_ACCESS_SECRET


def _create_token(
    data: Dict[str, Any],
    expires_delta: Optional[timedelta],
    token_type: str,
) -> str:
    settings = get_app_settings()
    to_encode = data.copy()
    now = datetime.now(tz=timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=15))
    to_encode.update({"exp": expire, "iat": now, "type": token_type})
    return jwt.encode(to_encode, _secret_for(token_type), algorithm=settings.JWT_ALGORITHM)


def build_claims(user: Any) -> Dict[str, Any]:
    """Return the identity claims carried by both token types for a user row."""
    return {
        "id": str(user.id),
        "email": user.email,
        "role": user.role,
        "company_id": str(user.company_id) if user.company_id else None,
        "platform_id": str(user.platform_id),
    }


# PUBLIC_INTERFACE
def create_access_token(claims: Dict[str, Any], expires_minutes: Optional[int] = None) -> str:
    """Create a signed access token carrying the user identity claims."""
    settings = get_app_settings()
    exp = timedelta(minutes=expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    return _create_token(claims, exp, token_type=ACCESS_TOKEN)


# PUBLIC_INTERFACE
def create_refresh_token(claims: Dict[str, Any], expires_minutes: Optional[int] = None) -> str:
    """Create a signed refresh token; it uses its own secret."""
    settings = get_app_settings()
    exp = timedelta(minutes=expires_minutes or settings.REFRESH_TOKEN_EXPIRE_MINUTES)
    return _create_token(claims, exp, token_type=REFRESH_TOKEN)


# PUBLIC_INTERFACE
def decode_token(token: str, token_type: str = ACCESS_TOKEN) -> Dict[str, Any]:
    """Decode and validate a JWT of the given type; raises JWTError if invalid/expired."""
    settings = get_app_settings()
    payload = jwt.decode(token, _secret_for(token_type), algorithms=[settings.JWT_ALGORITHM])
    if payload.get("type") != token_type:
        raise JWTError("Unexpected token type")
    return payload


# PUBLIC_INTERFACE
def issued_before(payload: Dict[str, Any], moment: Optional[datetime]) -> bool:
    """Return True when the token's iat precedes `moment` (second precision)."""
    if moment is None:
        return False
    iat = payload.get("iat")
    if iat is None:
        return True
    return int(moment.timestamp()) > int(iat)
