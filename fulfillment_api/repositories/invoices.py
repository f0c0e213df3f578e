from __future__ import annotations

from datetime import date
from typing import Any, Dict, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import select

from fulfillment_api.core.pagination import PageRequest
from fulfillment_api.db.models.billing import Invoice
from fulfillment_api.db.models.orders import Order
from .base import BaseRepository

INVOICE_SORT_FIELDS = ("invoice_id", "invoice_paid_at", "created_at", "updated_at")


class InvoiceRepository(BaseRepository):
    """Invoices within a platform."""

    SORTABLE = {name: getattr(Invoice, name) for name in INVOICE_SORT_FIELDS}

    async def get_for_order(self, platform_id: UUID, order_id: UUID) -> Optional[Invoice]:
        stmt = select(Invoice).where(Invoice.platform_id == platform_id, Invoice.order_id == order_id)
        return await self.scalar_one_or_none(stmt)

    async def get_by_invoice_id(self, platform_id: UUID, invoice_id: str) -> Optional[Invoice]:
        stmt = select(Invoice).where(Invoice.platform_id == platform_id, Invoice.invoice_id == invoice_id)
        return await self.scalar_one_or_none(stmt)

    async def list_invoices(
        self,
        platform_id: UUID,
        paging: PageRequest,
        *,
        search: Optional[str] = None,
        company_id: Optional[UUID] = None,
        order_id: Optional[UUID] = None,
        paid: Optional[bool] = None,
    ) -> Tuple[Sequence[Invoice], int]:
        stmt = select(Invoice).where(Invoice.platform_id == platform_id)
        if company_id:
            stmt = stmt.join(Order, Order.id == Invoice.order_id).where(Order.company_id == company_id)
        if search:
            stmt = stmt.where(Invoice.invoice_id.ilike(f"%{search}%"))
        if order_id:
            stmt = stmt.where(Invoice.order_id == order_id)
        if paid is True:
            stmt = stmt.where(Invoice.invoice_paid_at.is_not(None))
        elif paid is False:
            stmt = stmt.where(Invoice.invoice_paid_at.is_(None))
        return await self.paginate(stmt, paging, self.SORTABLE)

    async def latest_invoice_id_for_day(self, platform_id: UUID, day: date) -> Optional[str]:
        prefix = f"INV-{day.strftime('%Y%m%d')}-"
        stmt = (
            select(Invoice.invoice_id)
            .where(Invoice.platform_id == platform_id, Invoice.invoice_id.like(f"{prefix}%"))
            .order_by(Invoice.invoice_id.desc())
            .limit(1)
        )
        return await self.scalar_one_or_none(stmt)

    async def create(self, platform_id: UUID, fields: Dict[str, Any]) -> Invoice:
        return await self.save(Invoice(platform_id=platform_id, **fields))

    async def update(self, invoice: Invoice, fields: Dict[str, Any]) -> Invoice:
        for field, value in fields.items():
            setattr(invoice, field, value)
        return await self.save(invoice)
