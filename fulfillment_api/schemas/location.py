from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class CountryCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=100)


class CountryUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, min_length=1, max_length=100)


class CountryRead(BaseModel):
    id: UUID
    platform_id: UUID
    name: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CountryRef(BaseModel):
    """Country embedded in a city response."""
    id: UUID
    name: str

    class Config:
        from_attributes = True


class CityCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=100)
    country_id: UUID


class CityUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    country_id: Optional[UUID] = None


class CityRead(BaseModel):
    id: UUID
    platform_id: UUID
    country_id: UUID
    name: str
    country: Optional[CountryRef] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
