from __future__ import annotations

import io
from typing import Any, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment_api.core.constants import UserRole
from fulfillment_api.core.deps import get_db_session, require_roles
from fulfillment_api.core.pagination import ListQuery, list_query
from fulfillment_api.repositories.invoices import INVOICE_SORT_FIELDS
from fulfillment_api.schemas.common import ApiResponse, PaginatedResponse, ok, paginated
from fulfillment_api.schemas.invoices import ConfirmPayment, GenerateInvoice, InvoiceRead
from fulfillment_api.services.invoices import InvoiceService

router = APIRouter(prefix="/invoices", tags=["Invoices"])

ADMIN = UserRole.ADMIN.value
STAFF = (UserRole.ADMIN.value, UserRole.LOGISTICS.value)
ANY_ROLE = STAFF + (UserRole.CLIENT.value,)


# PUBLIC_INTERFACE
@router.post(
    "/generate",
    response_model=ApiResponse[InvoiceRead],
    summary="Generate invoice",
    description="Render the invoice PDF for a confirmed order, store it, and mark the order INVOICED.",
)
async def generate_invoice(
    payload: GenerateInvoice,
    user=Depends(require_roles(*STAFF)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    invoice = await InvoiceService(session).generate(user, payload)
    return ok(InvoiceRead.model_validate(invoice), "Invoice generated successfully")


# PUBLIC_INTERFACE
@router.post(
    "/{order_id}/confirm-payment",
    response_model=ApiResponse[InvoiceRead],
    summary="Confirm payment",
)
async def confirm_payment(
    payload: ConfirmPayment,
    order_id: UUID = Path(...),
    user=Depends(require_roles(ADMIN)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    invoice = await InvoiceService(session).confirm_payment(user, order_id, payload)
    return ok(InvoiceRead.model_validate(invoice), "Payment confirmed successfully")


# PUBLIC_INTERFACE
@router.get("", response_model=PaginatedResponse[InvoiceRead], summary="List invoices")
async def list_invoices(
    query: ListQuery = Depends(list_query(*INVOICE_SORT_FIELDS)),
    company_id: Optional[UUID] = Query(None),
    order_id: Optional[UUID] = Query(None),
    paid: Optional[bool] = Query(None),
    user=Depends(require_roles(*ANY_ROLE)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    rows, total = await InvoiceService(session).list_for(
        user, query.paging, search=query.search_term, company_id=company_id, order_id=order_id, paid=paid
    )
    return paginated([InvoiceRead.model_validate(i) for i in rows], total, query.paging, "Invoices retrieved successfully")


# PUBLIC_INTERFACE
@router.get("/{invoice_id}", response_model=ApiResponse[InvoiceRead], summary="Get invoice")
async def get_invoice(
    invoice_id: str = Path(...),
    user=Depends(require_roles(*ANY_ROLE)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    invoice = await InvoiceService(session).get(user, invoice_id)
    return ok(InvoiceRead.model_validate(invoice), "Invoice retrieved successfully")


# PUBLIC_INTERFACE
@router.get("/{invoice_id}/pdf", summary="Download invoice PDF", response_class=StreamingResponse)
async def download_invoice_pdf(
    invoice_id: str = Path(...),
    user=Depends(require_roles(*ANY_ROLE)),
    session: AsyncSession = Depends(get_db_session),
) -> StreamingResponse:
    pdf = await InvoiceService(session).pdf(user, invoice_id)
    headers = {"Content-Disposition": f'attachment; filename="{invoice_id}.pdf"'}
    return StreamingResponse(io.BytesIO(pdf), media_type="application/pdf", headers=headers)
