from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class GenerateInvoice(BaseModel):
    model_config = ConfigDict(extra="forbid")

    order_id: UUID
    regenerate: bool = False


class ConfirmPayment(BaseModel):
    model_config = ConfigDict(extra="forbid")

    payment_method: str = Field(..., min_length=1, max_length=50)
    payment_reference: str = Field(..., min_length=1, max_length=100)
    payment_date: Optional[datetime] = Field(None, description="Defaults to now; cannot be in the future")
    notes: Optional[str] = Field(None, max_length=500)


class InvoiceRead(BaseModel):
    id: UUID
    platform_id: UUID
    order_id: UUID
    invoice_id: str
    type: str
    invoice_pdf_url: Optional[str] = None
    invoice_paid_at: Optional[datetime] = None
    payment_method: Optional[str] = None
    payment_reference: Optional[str] = None
    payment_notes: Optional[str] = None
    generated_by: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
