from __future__ import annotations

import logging
from typing import List, Optional

import httpx

from fulfillment_api.core.settings import AppSettings, get_app_settings

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    """Raised when the email provider is unreachable, misconfigured or rejects a message."""


class EmailClient:
    """
    Minimal client for the Resend HTTP API.

    A custom httpx transport can be injected (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        settings: Optional[AppSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings or get_app_settings()
        self._transport = transport

    # PUBLIC_INTERFACE
    async def send(self, to: List[str], subject: str, html: str) -> Optional[str]:
        """Send one email to `to`; returns the provider message id."""
        if not self.settings.RESEND_API_KEY:
            raise EmailDeliveryError("Email delivery is not configured (RESEND_API_KEY missing)")

        payload = {
            "from": self.settings.EMAIL_FROM,
            "to": to,
            "subject": subject,
            "html": html,
        }
        headers = {"Authorization": f"Bearer {self.settings.RESEND_API_KEY}"}
        try:
            async with httpx.AsyncClient(
                timeout=self.settings.EMAIL_TIMEOUT_SECONDS, transport=self._transport
            ) as client:
                resp = await client.post(self.settings.RESEND_API_URL, json=payload, headers=headers)
                resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise EmailDeliveryError(
                f"Email provider rejected message ({exc.response.status_code}): {exc.response.text[:200]}"
            ) from exc
        except httpx.HTTPError as exc:
            raise EmailDeliveryError(f"Email provider unreachable: {exc}") from exc

        try:
            message_id = resp.json().get("id")
        except (ValueError, AttributeError) as exc:
            raise EmailDeliveryError(
                f"Email provider returned an invalid response ({resp.status_code}): {resp.text[:200]}"
            ) from exc
        logger.info("Email '%s' sent to %d recipient(s), id=%s", subject, len(to), message_id)
        return message_id
