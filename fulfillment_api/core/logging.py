from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from typing import Optional, Union

# Per-request context stamped onto every log record
correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
platform_id_var: ContextVar[Optional[str]] = ContextVar("platform_id", default=None)

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | cid=%(correlation_id)s | platform=%(platform_id)s | %(message)s"

# Client libraries that log every request at INFO/DEBUG
QUIET_LOGGERS = ("httpx", "httpcore", "botocore", "boto3", "s3transfer", "passlib")


class RequestContextFilter(logging.Filter):
    """Copy the correlation and platform ids of the current request onto the record ('-' outside a request)."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        record.correlation_id = correlation_id_var.get() or "-"
        record.platform_id = platform_id_var.get() or "-"
        return True


# PUBLIC_INTERFACE
def configure_logging(level: Union[int, str] = logging.INFO) -> None:
    """
    Install a single stdout handler on the root logger.

    Chatty client libraries are held at WARNING.
    """
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT))
    handler.addFilter(RequestContextFilter())

    root = logging.getLogger()
    # Replace handlers installed elsewhere (e.g. basicConfig or uvicorn's defaults)
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level.upper() if isinstance(level, str) else level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
