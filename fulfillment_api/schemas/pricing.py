from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator


class PricingTierCreate(BaseModel):
    """New tier for a (country, city) volume range; volume_max null means unbounded."""
    model_config = ConfigDict(extra="forbid")

    country: str = Field(..., min_length=1, max_length=50)
    city: str = Field(..., min_length=1, max_length=50)
    volume_min: Decimal = Field(..., ge=0, description="Inclusive lower bound in m³")
    volume_max: Optional[Decimal] = Field(None, ge=0, description="Exclusive upper bound in m³")
    base_price: Decimal = Field(..., ge=0)
    is_active: bool = True

    @model_validator(mode="after")
    def _range_ordered(self):
        if self.volume_max is not None and self.volume_max < self.volume_min:
            raise ValueError("Maximum volume must be greater than or equal to minimum volume")
        return self


class PricingTierUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    country: Optional[str] = Field(None, min_length=1, max_length=50)
    city: Optional[str] = Field(None, min_length=1, max_length=50)
    volume_min: Optional[Decimal] = Field(None, ge=0)
    volume_max: Optional[Decimal] = Field(None, ge=0)
    base_price: Optional[Decimal] = Field(None, ge=0)
    is_active: Optional[bool] = None

    @model_validator(mode="after")
    def _range_ordered(self):
        if (
            self.volume_min is not None
            and self.volume_max is not None
            and self.volume_max <= self.volume_min
        ):
            raise ValueError("Maximum volume must be greater than minimum volume")
        return self


class PricingTierRead(BaseModel):
    id: UUID
    platform_id: UUID
    country: str
    city: str
    volume_min: float
    volume_max: Optional[float] = None
    base_price: float
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PricingTierLocations(BaseModel):
    """Distinct countries and cities that have an active tier."""
    countries: List[str] = Field(default_factory=list)
    locations_by_country: Dict[str, List[str]] = Field(default_factory=dict)


class PricingCalculation(BaseModel):
    """Estimate for one (country, city, volume) lookup."""
    pricing_tier_id: UUID
    country: str
    city: str
    volume_min: float
    volume_max: Optional[float] = None
    base_price: float
    platform_margin_percent: float
    platform_margin_amount: float
    estimated_total: float
    matched_volume: float
    note: str = "Flat rate for this volume range. Final price may vary after logistics review."
