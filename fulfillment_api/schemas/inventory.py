from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from fulfillment_api.core.constants import AssetCondition, AssetStatus, TrackingMethod


class BrandCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    company_id: UUID
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    logo_url: Optional[str] = None
    is_active: bool = True


class BrandUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    logo_url: Optional[str] = None
    is_active: Optional[bool] = None


class BrandRead(BaseModel):
    id: UUID
    platform_id: UUID
    company_id: UUID
    name: str
    description: Optional[str] = None
    logo_url: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class WarehouseCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=100)
    country: str = Field(..., min_length=1, max_length=50)
    city: str = Field(..., min_length=1, max_length=50)
    address: str = Field(..., min_length=1)
    coordinates: Optional[Dict[str, float]] = None
    is_active: bool = True


class WarehouseUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    country: Optional[str] = Field(None, min_length=1, max_length=50)
    city: Optional[str] = Field(None, min_length=1, max_length=50)
    address: Optional[str] = Field(None, min_length=1)
    coordinates: Optional[Dict[str, float]] = None
    is_active: Optional[bool] = None


class WarehouseRead(BaseModel):
    id: UUID
    platform_id: UUID
    name: str
    country: str
    city: str
    address: str
    coordinates: Optional[Dict[str, Any]] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ZoneCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    warehouse_id: UUID
    company_id: UUID
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    capacity: Optional[int] = Field(None, ge=0)
    is_active: bool = True


class ZoneUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    capacity: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


class ZoneRead(BaseModel):
    id: UUID
    platform_id: UUID
    warehouse_id: UUID
    company_id: UUID
    name: str
    description: Optional[str] = None
    capacity: Optional[int] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class AssetCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    company_id: UUID
    warehouse_id: UUID
    zone_id: UUID
    brand_id: Optional[UUID] = None
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    category: str = Field(..., min_length=1, max_length=100)
    tracking_method: TrackingMethod = TrackingMethod.INDIVIDUAL
    total_quantity: int = Field(1, ge=1)
    available_quantity: Optional[int] = Field(None, ge=0, description="Defaults to total_quantity")
    weight_per_unit: Decimal = Field(..., ge=0)
    volume_per_unit: Decimal = Field(..., ge=0)
    condition: AssetCondition = AssetCondition.GREEN
    handling_tags: List[str] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _quantities(self):
        if self.tracking_method == TrackingMethod.INDIVIDUAL and self.total_quantity != 1:
            raise ValueError("Individually tracked assets must have a total quantity of 1")
        if self.available_quantity is not None and self.available_quantity > self.total_quantity:
            raise ValueError("available_quantity cannot exceed total_quantity")
        return self


class AssetUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    zone_id: Optional[UUID] = None
    brand_id: Optional[UUID] = None
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    total_quantity: Optional[int] = Field(None, ge=1)
    available_quantity: Optional[int] = Field(None, ge=0)
    weight_per_unit: Optional[Decimal] = Field(None, ge=0)
    volume_per_unit: Optional[Decimal] = Field(None, ge=0)
    condition: Optional[AssetCondition] = None
    status: Optional[AssetStatus] = None
    handling_tags: Optional[List[str]] = None
    images: Optional[List[str]] = None


class AssetRead(BaseModel):
    id: UUID
    platform_id: UUID
    company_id: UUID
    warehouse_id: UUID
    zone_id: UUID
    brand_id: Optional[UUID] = None
    name: str
    description: Optional[str] = None
    category: str
    tracking_method: str
    total_quantity: int
    available_quantity: int
    qr_code: str
    weight_per_unit: float
    volume_per_unit: float
    condition: str
    status: str
    handling_tags: List[str] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CollectionCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    company_id: UUID
    brand_id: Optional[UUID] = None
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=50)
    images: List[str] = Field(default_factory=list)
    is_active: bool = True


class CollectionUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    brand_id: Optional[UUID] = None
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=50)
    images: Optional[List[str]] = None
    is_active: Optional[bool] = None


class CollectionRead(BaseModel):
    id: UUID
    platform_id: UUID
    company_id: UUID
    brand_id: Optional[UUID] = None
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CollectionItemCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    asset_id: UUID
    default_quantity: int = Field(1, ge=1)
    notes: Optional[str] = None
    display_order: Optional[int] = None


class CollectionItemUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    default_quantity: Optional[int] = Field(None, ge=1)
    notes: Optional[str] = None
    display_order: Optional[int] = None


class CollectionAsset(BaseModel):
    """Asset summary embedded in a collection item."""
    id: UUID
    name: str
    category: str
    images: List[str] = Field(default_factory=list)
    volume_per_unit: float
    weight_per_unit: float
    status: str
    condition: str
    qr_code: str
    available_quantity: int
    total_quantity: int
    handling_tags: List[str] = Field(default_factory=list)

    class Config:
        from_attributes = True


class CollectionItemRead(BaseModel):
    id: UUID
    collection_id: UUID
    asset_id: UUID
    default_quantity: int
    notes: Optional[str] = None
    display_order: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CollectionItemDetail(CollectionItemRead):
    asset: Optional[CollectionAsset] = None


class CollectionDetail(CollectionRead):
    items: List[CollectionItemDetail] = Field(default_factory=list)


class CollectionItemAvailability(BaseModel):
    asset_id: UUID
    asset_name: str
    default_quantity: int
    available_quantity: int
    total_quantity: int
    status: str
    condition: str
    is_available: bool


class CollectionAvailability(BaseModel):
    collection_id: UUID
    collection_name: str
    event_start_date: datetime
    event_end_date: datetime
    is_fully_available: bool
    items: List[CollectionItemAvailability] = Field(default_factory=list)
