from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID as PyUUID

from sqlalchemy import Boolean, DateTime, ForeignKey, Numeric, Text, UniqueConstraint, text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from fulfillment_api.db.base import Base, PlatformMixin, TimestampMixin, UUIDPkMixin


class Platform(UUIDPkMixin, TimestampMixin, Base):
    """Tenant root; every other business row hangs off a platform."""
    __tablename__ = "platforms"
    __table_args__ = (
        UniqueConstraint("domain", name="platforms_domain_unique"),
    )

    name: Mapped[str] = mapped_column(Text, nullable=False)
    domain: Mapped[str] = mapped_column(Text, nullable=False)
    config: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict, server_default=text("'{}'::jsonb"))
    features: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict, server_default=text("'{}'::jsonb"))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")


class Company(UUIDPkMixin, PlatformMixin, TimestampMixin, Base):
    """Client company renting assets on a platform."""
    __tablename__ = "companies"
    __table_args__ = (
        UniqueConstraint("platform_id", "domain", name="companies_platform_domain_unique"),
    )

    name: Mapped[str] = mapped_column(Text, nullable=False)
    domain: Mapped[str] = mapped_column(Text, nullable=False)
    settings: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict, server_default=text("'{}'::jsonb"))
    platform_margin_percent: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("25.00"), server_default="25.00"
    )
    warehouse_ops_rate: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("25.20"), server_default="25.20"
    )
    contact_email: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    contact_phone: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    features: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict, server_default=text("'{}'::jsonb"))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class CompanyDomain(UUIDPkMixin, PlatformMixin, TimestampMixin, Base):
    """Hostname that resolves to a company (vanity or custom domain)."""
    __tablename__ = "company_domains"
    __table_args__ = (
        UniqueConstraint("hostname", name="company_domains_hostname_unique"),
    )

    company_id: Mapped[PyUUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True
    )
    hostname: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(Text, nullable=False, default="VANITY", server_default="VANITY")
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
