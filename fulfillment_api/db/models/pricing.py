from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID as PyUUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Numeric,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from fulfillment_api.db.base import Base, PlatformMixin, TimestampMixin, UUIDPkMixin


class PricingTier(UUIDPkMixin, PlatformMixin, TimestampMixin, Base):
    """Flat base price for a volume range [volume_min, volume_max) delivered to a city."""
    __tablename__ = "pricing_tiers"
    __table_args__ = (
        UniqueConstraint(
            "platform_id", "country", "city", "volume_min", "volume_max", name="pricing_tiers_unique"
        ),
        CheckConstraint("volume_min >= 0", name="volume_min_non_negative"),
        CheckConstraint("volume_max IS NULL OR volume_max >= volume_min", name="volume_range_ordered"),
        CheckConstraint("base_price >= 0", name="base_price_non_negative"),
    )

    country: Mapped[str] = mapped_column(Text, nullable=False)
    city: Mapped[str] = mapped_column(Text, nullable=False)
    volume_min: Mapped[Decimal] = mapped_column(Numeric(8, 3), nullable=False)
    volume_max: Mapped[Optional[Decimal]] = mapped_column(Numeric(8, 3), nullable=True)
    base_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")


class OrderPrice(UUIDPkMixin, PlatformMixin, TimestampMixin, Base):
    """Priced snapshot of an order: tier base, margin breakdown and final total."""
    __tablename__ = "order_prices"

    pricing_tier_id: Mapped[Optional[PyUUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("pricing_tiers.id", ondelete="RESTRICT"), nullable=True, index=True
    )
    volume: Mapped[Decimal] = mapped_column(Numeric(10, 3), nullable=False, default=Decimal("0"))
    base_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    logistics_sub_total: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    # {percent, amount, is_override, override_reason}
    margin: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict, server_default=text("'{}'::jsonb"))
    final_total: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    calculated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("now()")
    )
    calculated_by: Mapped[Optional[PyUUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
