from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class PlatformRead(BaseModel):
    """Platform read model."""
    id: UUID
    name: str
    domain: str
    config: Dict[str, Any] = Field(default_factory=dict)
    features: Dict[str, Any] = Field(default_factory=dict)
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CompanyCreate(BaseModel):
    """Create a client company; `domain` also becomes its vanity hostname."""
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=100)
    domain: str = Field(..., min_length=1, max_length=50, pattern=r"^[a-z0-9-]+$")
    settings: Dict[str, Any] = Field(default_factory=dict)
    platform_margin_percent: Decimal = Field(Decimal("25.00"), ge=0, le=100)
    warehouse_ops_rate: Decimal = Field(Decimal("25.20"), ge=0)
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = Field(None, max_length=50)
    features: Dict[str, Any] = Field(default_factory=dict)
    is_active: bool = True


class CompanyUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    settings: Optional[Dict[str, Any]] = None
    platform_margin_percent: Optional[Decimal] = Field(None, ge=0, le=100)
    warehouse_ops_rate: Optional[Decimal] = Field(None, ge=0)
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = Field(None, max_length=50)
    features: Optional[Dict[str, Any]] = None
    is_active: Optional[bool] = None


class CompanyRead(BaseModel):
    id: UUID
    platform_id: UUID
    name: str
    domain: str
    settings: Dict[str, Any] = Field(default_factory=dict)
    platform_margin_percent: float
    warehouse_ops_rate: float
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    features: Dict[str, Any] = Field(default_factory=dict)
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
