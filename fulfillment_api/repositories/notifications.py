from __future__ import annotations

from typing import Any, Dict, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import select

from fulfillment_api.core.pagination import PageRequest
from fulfillment_api.db.models.notifications import NotificationLog
from .base import BaseRepository

NOTIFICATION_SORT_FIELDS = ("created_at", "updated_at", "last_attempt_at", "attempts")
UNDELIVERED_STATUSES = ("FAILED", "RETRYING")


class NotificationLogRepository(BaseRepository):
    SORTABLE = {name: getattr(NotificationLog, name) for name in NOTIFICATION_SORT_FIELDS}

    async def get(self, platform_id: UUID, log_id: UUID) -> Optional[NotificationLog]:
        stmt = select(NotificationLog).where(NotificationLog.platform_id == platform_id, NotificationLog.id == log_id)
        return await self.scalar_one_or_none(stmt)

    async def list_undelivered(
        self,
        platform_id: UUID,
        paging: PageRequest,
        *,
        status: Optional[str] = None,
        notification_type: Optional[str] = None,
        order_id: Optional[UUID] = None,
    ) -> Tuple[Sequence[NotificationLog], int]:
        stmt = select(NotificationLog).where(NotificationLog.platform_id == platform_id)
        if status:
            stmt = stmt.where(NotificationLog.status == status)
        else:
            stmt = stmt.where(NotificationLog.status.in_(UNDELIVERED_STATUSES))
        if notification_type:
            stmt = stmt.where(NotificationLog.notification_type == notification_type)
        if order_id:
            stmt = stmt.where(NotificationLog.order_id == order_id)
        return await self.paginate(stmt, paging, self.SORTABLE)

    async def create(self, platform_id: UUID, fields: Dict[str, Any]) -> NotificationLog:
        return await self.save(NotificationLog(platform_id=platform_id, **fields))

    async def update(self, log: NotificationLog, fields: Dict[str, Any]) -> NotificationLog:
        for field, value in fields.items():
            setattr(log, field, value)
        return await self.save(log)
