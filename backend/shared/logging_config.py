"""
Logging setup for the CrateMatch backend.

Modules log through ``logging.getLogger(__name__)``; this installs the
single root handler once, at application startup.
"""

import logging

from .config import Settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_configured = False


def configure_logging(settings: Settings) -> None:
    """Install the root handler at the configured level (idempotent)."""
    global _configured

    level = logging.DEBUG if settings.debug else settings.log_level.upper()
    root = logging.getLogger()
    root.setLevel(level)

    if _configured:
        return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    _configured = True
