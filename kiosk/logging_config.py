"""
Logging setup for the kiosk server.

Modules log through ``logging.getLogger(__name__)``; this installs the
single root handler once at startup.
"""

import logging

from kiosk.config import get_settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_configured = False


def configure_logging(level: str | None = None) -> None:
    """Install a stream handler on the root logger (idempotent)."""
    global _configured

    settings = get_settings()
    level_name = (level or settings.log_level).upper()

    root = logging.getLogger()
    root.setLevel(getattr(logging, level_name, logging.INFO))

    if _configured:
        return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)

    # googleapiclient logs every discovery cache miss at WARNING
    logging.getLogger("googleapiclient.discovery_cache").setLevel(logging.ERROR)

    _configured = True
