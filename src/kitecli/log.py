"""
Logging configuration.

One format for the whole package, plus a filter that runs every record
through the same secret redaction used for API error bodies.
"""

from __future__ import annotations

import logging
import sys

from kitecli.broker.errors import redact_secrets
from kitecli.config import settings

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"


class SecretRedactionFilter(logging.Filter):
    """Mask access tokens and API secrets in formatted log messages."""

    def __init__(self, *secrets: str) -> None:
        super().__init__()
        self._secrets = tuple(s for s in secrets if s)

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact_secrets(message, *self._secrets)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def configure_logging(level: str | None = None, *secrets: str) -> None:
    """Install the package log format on the root logger.

    Args:
        level: Log level name; defaults to ``settings.log_level``.
        secrets: Literal values to mask in addition to the field patterns.
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    handler.addFilter(SecretRedactionFilter(*secrets, settings.kite_api_secret))

    logging.basicConfig(
        level=getattr(logging, (level or settings.log_level).upper(), logging.INFO),
        handlers=[handler],
        force=True,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
