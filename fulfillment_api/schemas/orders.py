from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from fulfillment_api.core.constants import OrderStatus, TripType


class OrderItemInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    asset_id: UUID
    quantity: int = Field(..., ge=1)


class OrderSubmit(BaseModel):
    """Cart checkout: assets plus event, venue and contact details."""
    model_config = ConfigDict(extra="forbid")

    items: List[OrderItemInput] = Field(..., min_length=1)
    brand_id: Optional[UUID] = None
    trip_type: TripType = TripType.ROUND_TRIP
    event_start_date: datetime
    event_end_date: datetime
    venue_name: str = Field(..., min_length=1, max_length=200)
    venue_country_id: UUID
    venue_city_id: UUID
    venue_address: str = Field(..., min_length=1)
    venue_access_notes: Optional[str] = None
    contact_name: str = Field(..., min_length=1, max_length=100)
    contact_email: EmailStr
    contact_phone: str = Field(..., min_length=1, max_length=50)
    special_instructions: Optional[str] = None

    @field_validator("event_start_date", "event_end_date")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # Naive timestamps are read as UTC.
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @model_validator(mode="after")
    def _check(self):
        if self.event_end_date < self.event_start_date:
            raise ValueError("Event end date must be on or after the start date")
        asset_ids = [i.asset_id for i in self.items]
        if len(asset_ids) != len(set(asset_ids)):
            raise ValueError("Each asset may appear only once in an order")
        return self


class OrderItemRead(BaseModel):
    id: UUID
    asset_id: UUID
    asset_name: str
    quantity: int
    volume_per_unit: float
    weight_per_unit: float
    total_volume: float
    total_weight: float
    handling_tags: List[str] = Field(default_factory=list)

    class Config:
        from_attributes = True


class OrderPricingRead(BaseModel):
    id: UUID
    pricing_tier_id: Optional[UUID] = None
    volume: float
    base_price: Optional[float] = None
    logistics_sub_total: Optional[float] = None
    margin: Dict[str, Any] = Field(default_factory=dict)
    final_total: Optional[float] = None
    calculated_at: datetime

    class Config:
        from_attributes = True


class OrderSummary(BaseModel):
    """Order as shown in lists."""
    id: UUID
    order_id: str
    company_id: UUID
    brand_id: Optional[UUID] = None
    contact_name: str
    venue_name: str
    event_start_date: datetime
    event_end_date: datetime
    order_status: OrderStatus
    financial_status: str
    calculated_totals: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class OrderRead(OrderSummary):
    """Full order with items and pricing."""
    created_by: Optional[UUID] = None
    contact_email: str
    contact_phone: str
    venue_country_id: UUID
    venue_city_id: UUID
    venue_address: str
    venue_access_notes: Optional[str] = None
    special_instructions: Optional[str] = None
    trip_type: str
    pricing_tier_id: Optional[UUID] = None
    cancellation_reason: Optional[str] = None
    items: List[OrderItemRead] = Field(default_factory=list)
    pricing: Optional[OrderPricingRead] = None


class StatusProgress(BaseModel):
    model_config = ConfigDict(extra="forbid")

    new_status: OrderStatus
    notes: Optional[str] = Field(None, max_length=500)


class DeclineQuote(BaseModel):
    model_config = ConfigDict(extra="forbid")

    decline_reason: str = Field(..., min_length=10, max_length=500)


class CancelOrder(BaseModel):
    model_config = ConfigDict(extra="forbid")

    reason: str = Field(..., min_length=1, max_length=500)


class AddOrderItem(OrderItemInput):
    """Asset to add while the order is in pricing review."""


class UpdateOrderItemQuantity(BaseModel):
    model_config = ConfigDict(extra="forbid")

    quantity: int = Field(..., ge=1)


class MarginOverride(BaseModel):
    model_config = ConfigDict(extra="forbid")

    margin_percent: Decimal = Field(..., ge=0, le=100)
    override_reason: str = Field(..., min_length=1, max_length=500)


class StatusHistoryRead(BaseModel):
    id: UUID
    order_id: UUID
    status: str
    notes: Optional[str] = None
    updated_by: Optional[UUID] = None
    timestamp: datetime

    class Config:
        from_attributes = True
