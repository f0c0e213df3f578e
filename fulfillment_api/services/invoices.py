from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional, Sequence, Tuple
from uuid import UUID

from fastapi import HTTPException, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment_api.core.constants import FinancialStatus, NotificationType, OrderStatus, UserRole
from fulfillment_api.core.errors import raise_for_unique_violation
from fulfillment_api.core.pagination import PageRequest
from fulfillment_api.db.models.billing import Invoice
from fulfillment_api.db.models.orders import Order
from fulfillment_api.repositories.invoices import InvoiceRepository
from fulfillment_api.repositories.orders import OrderRepository
from fulfillment_api.repositories.platform import CompanyRepository
from fulfillment_api.schemas.invoices import ConfirmPayment, GenerateInvoice
from fulfillment_api.services.base import BaseService
from fulfillment_api.services.documents import render_invoice_pdf
from fulfillment_api.services.notifications import NotificationService
from fulfillment_api.services.orders import next_reference
from fulfillment_api.services.storage import InvoiceStorage, invoice_key

logger = logging.getLogger(__name__)

INVOICEABLE_STATUSES = frozenset(
    {
        OrderStatus.CONFIRMED,
        OrderStatus.IN_PREPARATION,
        OrderStatus.READY_FOR_DELIVERY,
        OrderStatus.IN_TRANSIT,
        OrderStatus.DELIVERED,
        OrderStatus.IN_USE,
        OrderStatus.AWAITING_RETURN,
        OrderStatus.CLOSED,
    }
)

INVOICE_CONSTRAINT_MESSAGES = {
    "platform_invoice_id_unique": "Another invoice was issued at the same moment, please retry",
    "invoices_order_id_unique": "Order is already invoiced",
}


class InvoiceService(BaseService):
    """Invoice generation (PDF + storage) and payment confirmation."""

    def __init__(
        self,
        session: AsyncSession,
        storage: Optional[InvoiceStorage] = None,
        notifier: Optional[NotificationService] = None,
    ) -> None:
        super().__init__(session)
        self.invoices = InvoiceRepository(session)
        self.orders = OrderRepository(session)
        self.companies = CompanyRepository(session)
        self.storage = storage or InvoiceStorage()
        self.notifier = notifier or NotificationService(session)

    async def _order_or_404(self, platform_id: UUID, order_id: UUID) -> Order:
        order = await self.orders.get(platform_id, order_id)
        if order is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
        return order

    async def _render(self, invoice_id: str, order: Order, issued_at: datetime) -> bytes:
        company = await self.companies.get(order.platform_id, order.company_id)
        company_name = company.name if company else "N/A"
        return await run_in_threadpool(render_invoice_pdf, invoice_id, order, company_name, issued_at)

    # PUBLIC_INTERFACE
    async def generate(self, user: Any, payload: GenerateInvoice) -> Invoice:
        """
        Issue (or re-issue) the invoice for an order.

        The order must be between CONFIRMED and CLOSED. The PDF is rendered and
        uploaded before the database writes so a storage failure leaves nothing
        half-written.
        """
        platform_id = user.platform_id
        order = await self._order_or_404(platform_id, payload.order_id)
        if OrderStatus(order.order_status) not in INVOICEABLE_STATUSES:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Cannot generate invoice for order in {order.order_status} status",
            )
        existing = await self.invoices.get_for_order(platform_id, order.id)
        if existing is not None and existing.invoice_paid_at is not None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invoice is already paid")
        if order.financial_status == FinancialStatus.INVOICED.value and not payload.regenerate:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Order is already invoiced")

        now = datetime.now(tz=timezone.utc)
        if existing is not None:
            invoice_ref = existing.invoice_id
        else:
            latest = await self.invoices.latest_invoice_id_for_day(platform_id, now.date())
            invoice_ref = next_reference("INV", now.date(), latest)

        pdf = await self._render(invoice_ref, order, now)
        pdf_url = await self.storage.upload_pdf(invoice_key(str(platform_id), invoice_ref), pdf)

        note = "Invoice regenerated" if existing is not None else "Invoice generated"
        try:
            async with self.unit_of_work():
                fields = {"invoice_pdf_url": pdf_url, "generated_by": user.id}
                if existing is not None:
                    invoice = await self.invoices.update(existing, fields)
                else:
                    invoice = await self.invoices.create(
                        platform_id, {"order_id": order.id, "invoice_id": invoice_ref, **fields}
                    )
                await self.orders.update_order(order, {"financial_status": FinancialStatus.INVOICED.value})
                await self.orders.add_financial_history(order, FinancialStatus.INVOICED.value, note, user.id)
        except IntegrityError as exc:
            raise_for_unique_violation(exc, INVOICE_CONSTRAINT_MESSAGES)

        logger.info("%s %s for order %s", note, invoice_ref, order.order_id)
        await self.notifier.notify_order(order, NotificationType.INVOICE_GENERATED)
        return invoice

    # PUBLIC_INTERFACE
    async def confirm_payment(self, user: Any, order_id: UUID, payload: ConfirmPayment) -> Invoice:
        """Mark the order's invoice as paid and move the order to PAID."""
        platform_id = user.platform_id
        order = await self._order_or_404(platform_id, order_id)
        invoice = await self.invoices.get_for_order(platform_id, order.id)
        if invoice is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice not found")
        if invoice.invoice_paid_at is not None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="Payment already confirmed for this invoice"
            )
        now = datetime.now(tz=timezone.utc)
        paid_at = payload.payment_date or now
        if paid_at.tzinfo is None:
            paid_at = paid_at.replace(tzinfo=timezone.utc)
        if paid_at > now:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Payment date cannot be in the future")

        notes = payload.notes or f"Payment confirmed via {payload.payment_method}"
        async with self.unit_of_work():
            invoice = await self.invoices.update(
                invoice,
                {
                    "invoice_paid_at": paid_at,
                    "payment_method": payload.payment_method,
                    "payment_reference": payload.payment_reference,
                    "payment_notes": payload.notes,
                },
            )
            await self.orders.update_order(order, {"financial_status": FinancialStatus.PAID.value})
            await self.orders.add_financial_history(order, FinancialStatus.PAID.value, notes, user.id)
        logger.info("Payment confirmed for invoice %s (%s)", invoice.invoice_id, payload.payment_reference)
        return invoice

    # PUBLIC_INTERFACE
    async def list_for(
        self,
        user: Any,
        paging: PageRequest,
        *,
        search: Optional[str] = None,
        company_id: Optional[UUID] = None,
        order_id: Optional[UUID] = None,
        paid: Optional[bool] = None,
    ) -> Tuple[Sequence[Invoice], int]:
        if user.role == UserRole.CLIENT.value:
            company_id = user.company_id
        return await self.invoices.list_invoices(
            user.platform_id, paging, search=search, company_id=company_id, order_id=order_id, paid=paid
        )

    # PUBLIC_INTERFACE
    async def get(self, user: Any, invoice_id: str) -> Invoice:
        invoice = await self.invoices.get_by_invoice_id(user.platform_id, invoice_id)
        if invoice is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice not found")
        if user.role == UserRole.CLIENT.value:
            order = await self.orders.get(user.platform_id, invoice.order_id)
            if order is None or order.company_id != user.company_id:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN, detail="You do not have access to this invoice"
                )
        return invoice

    # PUBLIC_INTERFACE
    async def pdf(self, user: Any, invoice_id: str) -> bytes:
        """Freshly rendered PDF for an invoice the user may see."""
        invoice = await self.get(user, invoice_id)
        order = await self._order_or_404(user.platform_id, invoice.order_id)
        return await self._render(invoice.invoice_id, order, invoice.created_at)
