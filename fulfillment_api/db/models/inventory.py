from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID as PyUUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fulfillment_api.db.base import Base, PlatformMixin, TimestampMixin, UUIDPkMixin


class Brand(UUIDPkMixin, PlatformMixin, TimestampMixin, Base):
    """Brand owned by a client company; assets and orders may carry one."""
    __tablename__ = "brands"
    __table_args__ = (
        UniqueConstraint("company_id", "name", name="brands_company_name_unique"),
    )

    company_id: Mapped[PyUUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    logo_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")


class Warehouse(UUIDPkMixin, PlatformMixin, TimestampMixin, Base):
    """Physical warehouse holding assets."""
    __tablename__ = "warehouses"
    __table_args__ = (
        UniqueConstraint("platform_id", "name", name="warehouses_platform_name_unique"),
    )

    name: Mapped[str] = mapped_column(Text, nullable=False)
    country: Mapped[str] = mapped_column(Text, nullable=False)
    city: Mapped[str] = mapped_column(Text, nullable=False)
    address: Mapped[str] = mapped_column(Text, nullable=False)
    coordinates: Mapped[Optional[dict]] = mapped_column(JSONB, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")


class Zone(UUIDPkMixin, PlatformMixin, TimestampMixin, Base):
    """Area inside a warehouse allocated to one company."""
    __tablename__ = "zones"
    __table_args__ = (
        UniqueConstraint("warehouse_id", "company_id", "name", name="zones_warehouse_company_name_unique"),
    )

    warehouse_id: Mapped[PyUUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("warehouses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    company_id: Mapped[PyUUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    capacity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")


class Asset(UUIDPkMixin, PlatformMixin, TimestampMixin, Base):
    """Rentable inventory item (or batch of identical items)."""
    __tablename__ = "assets"
    __table_args__ = (
        UniqueConstraint("platform_id", "qr_code", name="assets_platform_qr_code_unique"),
        CheckConstraint("available_quantity >= 0", name="available_quantity_non_negative"),
        CheckConstraint("available_quantity <= total_quantity", name="available_within_total"),
    )

    company_id: Mapped[PyUUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True
    )
    warehouse_id: Mapped[PyUUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("warehouses.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    zone_id: Mapped[PyUUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("zones.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    brand_id: Mapped[Optional[PyUUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("brands.id", ondelete="RESTRICT"), nullable=True, index=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(Text, nullable=False)
    tracking_method: Mapped[str] = mapped_column(Text, nullable=False, default="INDIVIDUAL", server_default="INDIVIDUAL")
    total_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    available_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    qr_code: Mapped[str] = mapped_column(Text, nullable=False)
    weight_per_unit: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    volume_per_unit: Mapped[Decimal] = mapped_column(Numeric(8, 3), nullable=False)
    condition: Mapped[str] = mapped_column(Text, nullable=False, default="GREEN", server_default="GREEN")
    status: Mapped[str] = mapped_column(Text, nullable=False, default="AVAILABLE", server_default="AVAILABLE")
    handling_tags: Mapped[list] = mapped_column(JSONB, nullable=False, default=list, server_default=text("'[]'::jsonb"))
    images: Mapped[list] = mapped_column(JSONB, nullable=False, default=list, server_default=text("'[]'::jsonb"))
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class Collection(UUIDPkMixin, PlatformMixin, TimestampMixin, Base):
    """Named, reusable set of a company's assets with default quantities."""
    __tablename__ = "collections"

    company_id: Mapped[PyUUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True
    )
    brand_id: Mapped[Optional[PyUUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("brands.id", ondelete="SET NULL"), nullable=True, index=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    images: Mapped[list] = mapped_column(JSONB, nullable=False, default=list, server_default=text("'[]'::jsonb"))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    items: Mapped[List["CollectionItem"]] = relationship(
        "CollectionItem",
        lazy="selectin",
        order_by="[CollectionItem.display_order, CollectionItem.created_at]",
        cascade="all, delete-orphan",
    )


class CollectionItem(UUIDPkMixin, TimestampMixin, Base):
    __tablename__ = "collection_items"
    __table_args__ = (
        UniqueConstraint("collection_id", "asset_id", name="collection_items_unique"),
        CheckConstraint("default_quantity >= 1", name="default_quantity_positive"),
    )

    collection_id: Mapped[PyUUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("collections.id", ondelete="CASCADE"), nullable=False, index=True
    )
    asset_id: Mapped[PyUUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("assets.id", ondelete="CASCADE"), nullable=False, index=True
    )
    default_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    display_order: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    asset: Mapped[Asset] = relationship(Asset, lazy="selectin")
