from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID as PyUUID

from sqlalchemy import DateTime, ForeignKey, Integer, Numeric, Text, UniqueConstraint, text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fulfillment_api.db.base import Base, PlatformMixin, TimestampMixin, UUIDPkMixin
from fulfillment_api.db.models.platform import Company
from fulfillment_api.db.models.pricing import OrderPrice


class Order(UUIDPkMixin, PlatformMixin, TimestampMixin, Base):
    """Client order for a set of assets delivered to an event venue."""
    __tablename__ = "orders"
    __table_args__ = (
        UniqueConstraint("platform_id", "order_id", name="orders_platform_order_id_unique"),
    )

    order_id: Mapped[str] = mapped_column(Text, nullable=False)
    company_id: Mapped[PyUUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("companies.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    brand_id: Mapped[Optional[PyUUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("brands.id", ondelete="RESTRICT"), nullable=True, index=True
    )
    created_by: Mapped[Optional[PyUUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    contact_name: Mapped[str] = mapped_column(Text, nullable=False)
    contact_email: Mapped[str] = mapped_column(Text, nullable=False)
    contact_phone: Mapped[str] = mapped_column(Text, nullable=False)
    event_start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    event_end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    venue_name: Mapped[str] = mapped_column(Text, nullable=False)
    venue_country_id: Mapped[PyUUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("countries.id", ondelete="RESTRICT", name="fk_orders_venue_country_id_countries"),
        nullable=False,
    )
    venue_city_id: Mapped[PyUUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("cities.id", ondelete="RESTRICT", name="fk_orders_venue_city_id_cities"),
        nullable=False,
    )
    venue_address: Mapped[str] = mapped_column(Text, nullable=False)
    venue_access_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    special_instructions: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    trip_type: Mapped[str] = mapped_column(Text, nullable=False, default="ROUND_TRIP", server_default="ROUND_TRIP")
    # {volume, weight}
    calculated_totals: Mapped[dict] = mapped_column(
        JSONB, nullable=False, default=dict, server_default=text("'{}'::jsonb")
    )
    pricing_tier_id: Mapped[Optional[PyUUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("pricing_tiers.id", ondelete="RESTRICT"), nullable=True, index=True
    )
    order_pricing_id: Mapped[Optional[PyUUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("order_prices.id", ondelete="SET NULL"), nullable=True
    )
    order_status: Mapped[str] = mapped_column(Text, nullable=False, default="DRAFT", server_default="DRAFT")
    financial_status: Mapped[str] = mapped_column(
        Text, nullable=False, default="PENDING_QUOTE", server_default="PENDING_QUOTE"
    )
    cancellation_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    items: Mapped[List["OrderItem"]] = relationship(
        "OrderItem", lazy="selectin", order_by="OrderItem.created_at", cascade="all, delete-orphan"
    )
    pricing: Mapped[Optional[OrderPrice]] = relationship(OrderPrice, lazy="selectin")
    company: Mapped[Company] = relationship(Company, lazy="selectin")


class OrderItem(UUIDPkMixin, PlatformMixin, TimestampMixin, Base):
    """Asset line on an order with volume/weight snapshotted at submission time."""
    __tablename__ = "order_items"
    __table_args__ = (
        UniqueConstraint("order_id", "asset_id", name="order_items_order_asset_unique"),
    )

    order_id: Mapped[PyUUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    asset_id: Mapped[PyUUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("assets.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    asset_name: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    volume_per_unit: Mapped[Decimal] = mapped_column(Numeric(8, 3), nullable=False)
    weight_per_unit: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    total_volume: Mapped[Decimal] = mapped_column(Numeric(10, 3), nullable=False)
    total_weight: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    handling_tags: Mapped[list] = mapped_column(JSONB, nullable=False, default=list, server_default=text("'[]'::jsonb"))


class OrderStatusHistory(UUIDPkMixin, PlatformMixin, Base):
    """Append-only log of order status changes."""
    __tablename__ = "order_status_history"

    order_id: Mapped[PyUUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(Text, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    updated_by: Mapped[Optional[PyUUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=text("now()"))


class FinancialStatusHistory(UUIDPkMixin, PlatformMixin, Base):
    """Append-only log of order financial status changes."""
    __tablename__ = "financial_status_history"

    order_id: Mapped[PyUUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(Text, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    updated_by: Mapped[Optional[PyUUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=text("now()"))
