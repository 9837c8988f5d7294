"""Sentry integration for error tracking on the checkout paths."""
from __future__ import annotations

import logging
import os
from typing import Any

import sentry_sdk
from sentry_sdk.integrations.logging import LoggingIntegration

logger = logging.getLogger(__name__)

_initialized = False


def init_sentry(
    environment: str = "production",
    enable_logging: bool = True,
    sample_rate: float = 1.0,
    traces_sample_rate: float = 0.1,
) -> bool:
    """Initialize Sentry error tracking.

    Args:
        environment: Environment name (production, staging, development)
        enable_logging: Enable automatic logging integration
        sample_rate: Error sampling rate (1.0 = 100%)
        traces_sample_rate: Performance tracing rate (0.1 = 10%)

    Returns:
        True if Sentry was initialized successfully
    """
    global _initialized

    sentry_dsn = os.getenv("SENTRY_DSN")
    if not sentry_dsn:
        logger.info("SENTRY_DSN not set - error tracking disabled")
        return False

    try:
        integrations = []
        if enable_logging:
            integrations.append(
                LoggingIntegration(
                    level=logging.INFO,
                    event_level=logging.ERROR,
                )
            )

        sentry_sdk.init(
            dsn=sentry_dsn,
            environment=environment,
            integrations=integrations,
            sample_rate=sample_rate,
            traces_sample_rate=traces_sample_rate,
            send_default_pii=False,
            release=os.getenv("STOREFRONT_RELEASE", "unknown"),
        )
        _initialized = True
        logger.info(f"Sentry initialized for {environment} environment")
        return True

    except Exception as e:
        logger.error(f"Failed to initialize Sentry: {e}")
        return False


def capture_exception(error: BaseException, **extra: Any) -> None:
    """Send an exception to Sentry with additional context.

    Args:
        error: Exception to capture
        **extra: Context blocks, e.g. cart={"id": ...}
    """
    if not _initialized:
        return

    try:
        with sentry_sdk.new_scope() as scope:
            for key, value in extra.items():
                scope.set_context(key, value if isinstance(value, dict) else {"value": value})
            sentry_sdk.capture_exception(error)
    except Exception as e:
        logger.error(f"Failed to capture exception in Sentry: {e}")


def add_breadcrumb(message: str, category: str = "checkout", level: str = "info", **data: Any) -> None:
    """Record a checkout step so failures carry the preceding sequence."""
    if not _initialized:
        return

    try:
        sentry_sdk.add_breadcrumb(message=message, category=category, level=level, data=data)
    except Exception as e:
        logger.error(f"Failed to add breadcrumb in Sentry: {e}")
