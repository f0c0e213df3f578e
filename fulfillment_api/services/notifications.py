from __future__ import annotations

import logging
from datetime import datetime, timezone
from html import escape
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment_api.core.constants import NotificationStatus, NotificationType
from fulfillment_api.core.settings import get_app_settings
from fulfillment_api.db.models.notifications import NotificationLog
from fulfillment_api.db.models.orders import Order
from fulfillment_api.repositories.notifications import NotificationLogRepository
from fulfillment_api.repositories.orders import OrderRepository
from fulfillment_api.repositories.security import UserRepository
from fulfillment_api.services.base import BaseService
from fulfillment_api.services.email import EmailClient, EmailDeliveryError

logger = logging.getLogger(__name__)

# subject, body line
TEMPLATES: Dict[NotificationType, Tuple[str, str]] = {
    NotificationType.ORDER_SUBMITTED: (
        "Order {order_id} submitted",
        "Order {order_id} for {venue_name} has been submitted and is now in pricing review.",
    ),
    NotificationType.QUOTE_SENT: (
        "Quote ready for order {order_id}",
        "A quote of {final_total} is ready for order {order_id}. Please review and approve or decline it.",
    ),
    NotificationType.QUOTE_APPROVED: (
        "Quote approved for order {order_id}",
        "The quote for order {order_id} has been approved.",
    ),
    NotificationType.QUOTE_DECLINED: (
        "Quote declined for order {order_id}",
        "The quote for order {order_id} has been declined.",
    ),
    NotificationType.ORDER_CONFIRMED: (
        "Order {order_id} confirmed",
        "Order {order_id} is confirmed and will be prepared for delivery.",
    ),
    NotificationType.IN_TRANSIT: (
        "Order {order_id} is on its way",
        "Order {order_id} is in transit to {venue_name}.",
    ),
    NotificationType.DELIVERED: (
        "Order {order_id} delivered",
        "Order {order_id} has been delivered to {venue_name}.",
    ),
    NotificationType.ORDER_CLOSED: (
        "Order {order_id} closed",
        "Order {order_id} has been returned and closed.",
    ),
    NotificationType.ORDER_CANCELLED: (
        "Order {order_id} cancelled",
        "Order {order_id} has been cancelled.",
    ),
    NotificationType.INVOICE_GENERATED: (
        "Invoice for order {order_id}",
        "An invoice for order {order_id} totalling {final_total} has been issued.",
    ),
}


# PUBLIC_INTERFACE
def render_notification(notification_type: str, order: Optional[Order]) -> Tuple[str, str]:
    """Return (subject, html) for a notification about `order`."""
    subject_tpl, body_tpl = TEMPLATES[NotificationType(notification_type)]
    final_total = None
    if order is not None and order.pricing is not None and order.pricing.final_total is not None:
        final_total = f"{float(order.pricing.final_total):,.2f}"
    context = {
        "order_id": order.order_id if order is not None else "-",
        "venue_name": order.venue_name if order is not None else "-",
        "final_total": final_total or "TBD",
    }
    # Order fields are user input; only the HTML body is escaped.
    safe = {key: escape(str(value)) for key, value in context.items()}
    link = escape(f"{get_app_settings().CLIENT_URL.rstrip('/')}/orders/{context['order_id']}")
    html = f"<p>{body_tpl.format(**safe)}</p><p><a href=\"{link}\">View order</a></p>"
    return subject_tpl.format(**context), html


class NotificationService(BaseService):
    """
    Transactional email with a delivery log.

    Sending never raises to the caller: failures are recorded on the log row
    (status FAILED with the error) and can be retried by an admin.
    """

    def __init__(self, session: AsyncSession, email_client: Optional[EmailClient] = None) -> None:
        super().__init__(session)
        self.logs = NotificationLogRepository(session)
        self.users = UserRepository(session)
        self.orders = OrderRepository(session)
        self.email = email_client or EmailClient()

    async def _recipients(self, order: Order) -> List[str]:
        recipients = await self.users.admin_emails(order.platform_id)
        if order.contact_email and order.contact_email not in recipients:
            recipients.append(order.contact_email)
        return recipients

    # PUBLIC_INTERFACE
    async def notify_order(self, order: Order, notification_type: NotificationType) -> Optional[NotificationLog]:
        """Queue and send one notification about `order`; returns the log row or None."""
        try:
            recipients = await self._recipients(order)
            if not recipients:
                logger.info("No recipients for %s on order %s", notification_type.value, order.order_id)
                return None
            async with self.unit_of_work():
                log = await self.logs.create(
                    order.platform_id,
                    {
                        "order_id": order.id,
                        "notification_type": notification_type.value,
                        "recipients": recipients,
                        "status": NotificationStatus.QUEUED.value,
                    },
                )
            return await self._deliver(log, order)
        except Exception:
            logger.exception("Failed to send %s notification for order %s", notification_type.value, order.order_id)
            return None

    async def _deliver(self, log: NotificationLog, order: Optional[Order]) -> NotificationLog:
        subject, html = render_notification(log.notification_type, order)
        now = datetime.now(tz=timezone.utc)
        fields = {"attempts": (log.attempts or 0) + 1, "last_attempt_at": now}
        try:
            message_id = await self.email.send(list(log.recipients), subject, html)
        except EmailDeliveryError as exc:
            logger.warning("Notification %s failed: %s", log.id, exc)
            fields.update(status=NotificationStatus.FAILED.value, error_message=str(exc))
        else:
            fields.update(
                status=NotificationStatus.SENT.value, sent_at=now, message_id=message_id, error_message=None
            )
        async with self.unit_of_work():
            log = await self.logs.update(log, fields)
        return log

    # PUBLIC_INTERFACE
    async def retry(self, platform_id: UUID, log_id: UUID) -> NotificationLog:
        """Re-send a failed notification and record the new attempt."""
        log = await self.logs.get(platform_id, log_id)
        if log is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification log not found")
        if log.status == NotificationStatus.SENT.value:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Notification was already sent")
        order = await self.orders.get(platform_id, log.order_id) if log.order_id else None
        async with self.unit_of_work():
            log = await self.logs.update(log, {"status": NotificationStatus.RETRYING.value})
        return await self._deliver(log, order)
