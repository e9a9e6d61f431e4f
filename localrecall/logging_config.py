"""Logging configuration helpers for the LocalRecall backend."""

from __future__ import annotations

import logging
import os
import re
from logging.config import dictConfig

# Credential shapes that can surface in request logs (Gemini sends its key as a query parameter).
_SECRET_PATTERNS = (
    (re.compile(r"([?&]key=)[^&\s'\"]+"), r"\1***"),
    (re.compile(r"(Bearer\s+)[A-Za-z0-9._\-]+"), r"\1***"),
    (re.compile(r"\bsk-[A-Za-z0-9_\-]{6,}"), "sk-***"),
)


def redact_secrets(message: str) -> str:
    for pattern, replacement in _SECRET_PATTERNS:
        message = pattern.sub(replacement, message)
    return message


class RedactSecretsFilter(logging.Filter):
    """Mask API keys in log records before any handler formats them."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact_secrets(message)
        if redacted != message:
            record.msg = redacted
            record.args = ()
        return True


def configure_logging() -> None:
    """Apply a consistent logging configuration for the backend service."""
    log_level = os.getenv("LOCALRECALL_LOG_LEVEL", "INFO").upper()

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "standard": {
                    "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
                },
            },
            "filters": {
                "redact_secrets": {"()": RedactSecretsFilter},
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "standard",
                    "filters": ["redact_secrets"],
                    "level": log_level,
                },
            },
            "root": {"handlers": ["console"], "level": log_level},
            # Route uvicorn output through the same console handler.
            "loggers": {
                "uvicorn": {"handlers": ["console"], "level": log_level, "propagate": False},
                "uvicorn.error": {
                    "handlers": ["console"],
                    "level": log_level,
                    "propagate": False,
                },
                "uvicorn.access": {
                    "handlers": ["console"],
                    "level": os.getenv("UVICORN_ACCESS_LOG_LEVEL", "INFO").upper(),
                    "propagate": False,
                },
                # Provider request logs are noisy at DEBUG; keep urllib3 quiet.
                "urllib3": {"level": "WARNING"},
            },
        }
    )

    logging.getLogger(__name__).debug("Logging configured at %s level", log_level)
