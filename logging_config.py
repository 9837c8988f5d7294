"""Logging setup shared by the storefront package."""
from __future__ import annotations

import logging
import os
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

_configured = False


def setup_logging(level: str | None = None) -> logging.Logger:
    """Configure root logging once and return the storefront logger."""
    global _configured
    if not _configured:
        level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root = logging.getLogger()
        root.addHandler(handler)
        root.setLevel(getattr(logging, level_name, logging.INFO))
        # aiohttp access logs are noisy at INFO
        logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
        _configured = True
    return logging.getLogger("storefront")


logger = logging.getLogger("storefront")
