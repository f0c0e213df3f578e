from __future__ import annotations

from datetime import datetime
from typing import Generic, List, Optional, Sequence, TypeVar
from uuid import UUID

from pydantic import BaseModel, Field

from fulfillment_api.core.pagination import PageRequest

T = TypeVar("T")


class MessageResponse(BaseModel):
    """Standard message response."""
    success: bool = Field(True)
    message: str = Field(..., description="Human readable message")


class PlatformEcho(BaseModel):
    """Model to echo platform context."""
    platform_id: UUID = Field(..., description="Platform ID extracted from request header")


class PageMeta(BaseModel):
    """Paging metadata for list responses."""
    page: int = Field(..., ge=1)
    limit: int = Field(..., ge=1)
    total: int = Field(..., ge=0)


# PUBLIC_INTERFACE
class ApiResponse(BaseModel, Generic[T]):
    """Single-object success envelope."""
    success: bool = Field(True)
    message: str = Field(...)
    data: Optional[T] = Field(default=None)


# PUBLIC_INTERFACE
class PaginatedResponse(BaseModel, Generic[T]):
    """List success envelope with paging metadata."""
    success: bool = Field(True)
    message: str = Field(...)
    meta: PageMeta
    data: List[T] = Field(default_factory=list)


def ok(data, message: str):
    """Wrap `data` in the success envelope."""
    return {"success": True, "message": message, "data": data}


def paginated(data: Sequence, total: int, paging: PageRequest, message: str):
    """Wrap a page of rows in the list envelope."""
    return {
        "success": True,
        "message": message,
        "meta": {"page": paging.page, "limit": paging.limit, "total": total},
        "data": list(data),
    }


class ErrorSource(BaseModel):
    """One offending input or cause."""
    path: str = Field("", description="Field path or empty for request-level errors")
    message: str = Field(...)


# PUBLIC_INTERFACE
class ErrorResponse(BaseModel):
    """Standardized API error envelope returned by exception handlers."""
    success: bool = Field(False)
    message: str = Field(..., description="Human-readable error message")
    error_sources: List[ErrorSource] = Field(default_factory=list)
    correlation_id: Optional[str] = Field(default=None, description="Request correlation ID")
    platform_id: Optional[str] = Field(default=None, description="Platform ID (if available)")
    path: Optional[str] = Field(default=None, description="Request path")
    method: Optional[str] = Field(default=None, description="HTTP method")
    timestamp: datetime = Field(..., description="Error timestamp (UTC)")
