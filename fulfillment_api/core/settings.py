from __future__ import annotations

from decimal import Decimal
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Application-level settings for the FastAPI service.

    This is separate from fulfillment_api.db.config.Settings, which focuses on the database layer.
    """

    # FastAPI metadata
    APP_NAME: str = Field(default="Asset Fulfillment System")
    APP_DESCRIPTION: str = Field(
        default=(
            "Backend API for a multi-platform event asset rental and logistics service. "
            "Covers companies, inventory, pricing tiers, orders, invoices and analytics."
        )
    )
    APP_VERSION: str = Field(default="0.1.0")

    # CORS
    CORS_ORIGINS: List[str] = Field(
        default_factory=lambda: ["*"],
        description="Comma-separated list or JSON array of allowed origins. Default: *",
    )
    CORS_ALLOW_CREDENTIALS: bool = Field(default=True)
    CORS_ALLOW_METHODS: List[str] = Field(default_factory=lambda: ["*"])
    CORS_ALLOW_HEADERS: List[str] = Field(default_factory=lambda: ["*"])

    # Startup behavior
    RUN_MIGRATIONS_ON_STARTUP: bool = Field(
        default=True,
        description="If true, run Alembic migrations (upgrade head) at app startup.",
    )
    AUTO_SEED: bool = Field(
        default=False,
        description="If true, bootstrap a platform and its first admin after migrations.",
    )

    # Tokens
    JWT_ACCESS_SECRET: str = Field(default="change-me-access", description="Access token signing secret")
    JWT_REFRESH_SECRET: str = Field(default="change-me-refresh", description="Refresh token signing secret")
    JWT_ALGORITHM: str = Field(default="HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=60 * 24)
    REFRESH_TOKEN_EXPIRE_MINUTES: int = Field(default=60 * 24 * 30)
    SALT_ROUNDS: int = Field(default=12, ge=4, le=31, description="bcrypt cost factor")

    # Email delivery (Resend HTTP API)
    RESEND_API_KEY: Optional[str] = Field(default=None)
    RESEND_API_URL: str = Field(default="https://api.resend.com/emails")
    EMAIL_FROM: str = Field(default="no-reply@example.com")
    CLIENT_URL: str = Field(default="http://localhost:3000", description="Frontend base URL used in emails")
    EMAIL_TIMEOUT_SECONDS: float = Field(default=10.0)

    # Invoice document storage
    AWS_REGION: str = Field(default="us-east-1")
    AWS_BUCKET_NAME: Optional[str] = Field(default=None)

    # Pricing
    DEFAULT_PLATFORM_MARGIN_PERCENT: Decimal = Field(default=Decimal("25.00"))

    # Seeding
    SEED_PLATFORM_NAME: str = Field(default="Demo Platform")
    SEED_PLATFORM_DOMAIN: str = Field(default="localhost")
    SYSTEM_USER_EMAIL: str = Field(default="admin@example.com")
    SYSTEM_USER_PASSWORD: str = Field(default="ChangeMe123!")
    SYSTEM_USER_NAME: str = Field(default="Platform Admin")

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Root log level (DEBUG, INFO, WARNING, ...)")

    # Environment label
    ENVIRONMENT: Optional[str] = Field(
        default=None, description="Environment label (dev/test/prod)"
    )

    # Automatically load from .env at runtime.
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v):
        """
        Accept both JSON array format and comma-separated formats for CORS origins.
        """
        if v is None:
            return ["*"]
        if isinstance(v, str):
            parts = [p.strip() for p in v.split(",") if p.strip()]
            return parts or ["*"]
        if isinstance(v, list):
            return v or ["*"]
        return ["*"]


# PUBLIC_INTERFACE
def get_app_settings() -> AppSettings:
    """
    Return a new AppSettings instance populated from environment variables.

    Note:
      For simplicity we construct a new instance each time so tests can
      monkeypatch the environment between calls.
    """
    return AppSettings()
