"""
Process-wide logging setup.

Every module asks for its logger through get_logger(__name__). The first call
attaches one stream handler to the root logger; the level comes from
SUBSCOUT_LOG_LEVEL. The handler masks email addresses so sender headers
never reach log output in the clear.
"""

from __future__ import annotations

import logging
import os
from typing import Final

from subscout.utils.redaction import mask_addresses

_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"

_handler: logging.Handler | None = None


class AddressMaskingFilter(logging.Filter):
    """Rewrites each record's message with email addresses masked."""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            return True  # malformed args; let the handler report it
        masked = mask_addresses(message)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


def _level_from_env() -> int:
    name = os.getenv("SUBSCOUT_LOG_LEVEL", "INFO").upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def get_logger(name: str) -> logging.Logger:
    """Return a module logger; the shared root handler is attached on first use."""
    global _handler

    level = _level_from_env()
    if _handler is None:
        _handler = logging.StreamHandler()
        _handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATE_FORMAT))
        _handler.addFilter(AddressMaskingFilter())
        root = logging.getLogger()
        root.addHandler(_handler)
        root.setLevel(level)

    logger = logging.getLogger(name)
    logger.setLevel(level)
    return logger
