from __future__ import annotations

from typing import Any, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment_api.core.constants import NotificationStatus, NotificationType, UserRole
from fulfillment_api.core.deps import get_db_session, require_roles
from fulfillment_api.core.pagination import ListQuery, list_query
from fulfillment_api.repositories.notifications import NOTIFICATION_SORT_FIELDS, NotificationLogRepository
from fulfillment_api.schemas.common import ApiResponse, PaginatedResponse, ok, paginated
from fulfillment_api.schemas.notifications import NotificationLogRead
from fulfillment_api.services.notifications import NotificationService

router = APIRouter(prefix="/notification-logs", tags=["Notifications"])


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=PaginatedResponse[NotificationLogRead],
    summary="List undelivered notifications",
    description="FAILED and RETRYING notifications unless a status is given.",
)
async def list_notification_logs(
    query: ListQuery = Depends(list_query(*NOTIFICATION_SORT_FIELDS)),
    log_status: Optional[NotificationStatus] = Query(None, alias="status"),
    notification_type: Optional[NotificationType] = Query(None),
    order_id: Optional[UUID] = Query(None),
    user=Depends(require_roles(UserRole.ADMIN.value)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    rows, total = await NotificationLogRepository(session).list_undelivered(
        user.platform_id,
        query.paging,
        status=log_status.value if log_status else None,
        notification_type=notification_type.value if notification_type else None,
        order_id=order_id,
    )
    return paginated(
        [NotificationLogRead.model_validate(r) for r in rows], total, query.paging, "Notification logs retrieved successfully"
    )


# PUBLIC_INTERFACE
@router.post("/{log_id}/retry", response_model=ApiResponse[NotificationLogRead], summary="Retry notification")
async def retry_notification(
    log_id: UUID = Path(...),
    user=Depends(require_roles(UserRole.ADMIN.value)),
    session: AsyncSession = Depends(get_db_session),
) -> Any:
    log = await NotificationService(session).retry(user.platform_id, log_id)
    return ok(NotificationLogRead.model_validate(log), f"Notification {log.status.lower()}")
