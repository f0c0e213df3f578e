from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class NotificationLogRead(BaseModel):
    id: UUID
    platform_id: UUID
    order_id: Optional[UUID] = None
    notification_type: str
    recipients: List[str] = Field(default_factory=list)
    status: str
    attempts: int
    last_attempt_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    message_id: Optional[str] = None
    error_message: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
