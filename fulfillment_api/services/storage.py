from __future__ import annotations

import logging
from typing import Optional

import boto3
from fastapi.concurrency import run_in_threadpool

from fulfillment_api.core.settings import AppSettings, get_app_settings

logger = logging.getLogger(__name__)


def invoice_key(platform_id: str, invoice_id: str) -> str:
    return f"invoices/{platform_id}/{invoice_id}.pdf"


class InvoiceStorage:
    """Uploads rendered invoice PDFs to the configured S3 bucket."""

    def __init__(self, settings: Optional[AppSettings] = None, client=None) -> None:
        self.settings = settings or get_app_settings()
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client("s3", region_name=self.settings.AWS_REGION)
        return self._client

    def public_url(self, key: str) -> str:
        return f"https://{self.settings.AWS_BUCKET_NAME}.s3.{self.settings.AWS_REGION}.amazonaws.com/{key}"

    # PUBLIC_INTERFACE
    async def upload_pdf(self, key: str, body: bytes) -> Optional[str]:
        """Store `body` under `key` and return its object URL (None when no bucket is configured)."""
        if not self.settings.AWS_BUCKET_NAME:
            logger.warning("AWS_BUCKET_NAME not set; invoice %s kept out of storage", key)
            return None
        await run_in_threadpool(
            self.client.put_object,
            Bucket=self.settings.AWS_BUCKET_NAME,
            Key=key,
            Body=body,
            ContentType="application/pdf",
        )
        logger.info("Uploaded %s (%d bytes) to s3://%s", key, len(body), self.settings.AWS_BUCKET_NAME)
        return self.public_url(key)
