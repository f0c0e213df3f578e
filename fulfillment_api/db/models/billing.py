from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID as PyUUID

from sqlalchemy import DateTime, ForeignKey, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from fulfillment_api.db.base import Base, PlatformMixin, TimestampMixin, UUIDPkMixin


class Invoice(UUIDPkMixin, PlatformMixin, TimestampMixin, Base):
    """Invoice issued for an order; one per order."""
    __tablename__ = "invoices"
    __table_args__ = (
        UniqueConstraint("platform_id", "invoice_id", name="platform_invoice_id_unique"),
        UniqueConstraint("order_id", name="invoices_order_id_unique"),
    )

    order_id: Mapped[PyUUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False
    )
    invoice_id: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(Text, nullable=False, default="ORDER", server_default="ORDER")
    invoice_pdf_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    invoice_paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    payment_method: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    payment_reference: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    payment_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    generated_by: Mapped[Optional[PyUUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
