"""Environment-driven configuration objects for the storefront."""
from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from logging_config import logger
from storefront.core import constants
from storefront.core.exceptions import ConfigurationException


def _str_to_bool(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"true", "1", "yes", "y"}


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationException(f"{name} must be an integer, got {raw!r}") from exc


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationException(f"{name} must be a number, got {raw!r}") from exc


@dataclass(slots=True)
class CommerceConfig:
    base_url: str = constants.DEFAULT_BACKEND_URL
    publishable_key: str | None = None
    timeout_seconds: float = constants.DEFAULT_TIMEOUT_SECONDS
    max_retries: int = constants.DEFAULT_MAX_RETRIES


@dataclass(slots=True)
class PollingConfig:
    attempts: int = constants.ORDER_POLL_ATTEMPTS
    delay_seconds: float = constants.ORDER_POLL_DELAY_SECONDS
    retry_attempts: int = constants.ORDER_RETRY_POLL_ATTEMPTS
    retry_delay_seconds: float = constants.ORDER_RETRY_POLL_DELAY_SECONDS


@dataclass(slots=True)
class Settings:
    commerce: CommerceConfig = field(default_factory=CommerceConfig)
    polling: PollingConfig = field(default_factory=PollingConfig)
    preferred_currency: str = constants.DEFAULT_CURRENCY
    default_country: str = constants.DEFAULT_COUNTRY
    redis_url: str | None = None
    address_debounce_seconds: float = constants.ADDRESS_DEBOUNCE_SECONDS
    pending_payment_ttl_seconds: int = constants.PENDING_PAYMENT_TTL_SECONDS
    environment: str = "production"
    sentry_enabled: bool = False


def load_settings() -> Settings:
    """Load environment variables once and expose typed settings."""
    load_dotenv()

    base_url = os.getenv("COMMERCE_BACKEND_URL", constants.DEFAULT_BACKEND_URL).rstrip("/")
    publishable_key = os.getenv("COMMERCE_PUBLISHABLE_KEY") or None
    if not publishable_key:
        logger.warning("COMMERCE_PUBLISHABLE_KEY is not set; store API requests may be rejected")

    commerce = CommerceConfig(
        base_url=base_url,
        publishable_key=publishable_key,
        timeout_seconds=_float_env("COMMERCE_TIMEOUT_SECONDS", constants.DEFAULT_TIMEOUT_SECONDS),
        max_retries=_int_env("COMMERCE_MAX_RETRIES", constants.DEFAULT_MAX_RETRIES),
    )

    polling = PollingConfig(
        attempts=_int_env("ORDER_POLL_ATTEMPTS", constants.ORDER_POLL_ATTEMPTS),
        delay_seconds=_float_env("ORDER_POLL_DELAY_SECONDS", constants.ORDER_POLL_DELAY_SECONDS),
        retry_attempts=_int_env("ORDER_RETRY_POLL_ATTEMPTS", constants.ORDER_RETRY_POLL_ATTEMPTS),
        retry_delay_seconds=_float_env(
            "ORDER_RETRY_POLL_DELAY_SECONDS", constants.ORDER_RETRY_POLL_DELAY_SECONDS
        ),
    )
    if polling.attempts < 1 or polling.retry_attempts < 1:
        raise ConfigurationException("Order polling attempts must be at least 1")

    return Settings(
        commerce=commerce,
        polling=polling,
        preferred_currency=os.getenv("COMMERCE_PREFERRED_CURRENCY", constants.DEFAULT_CURRENCY).lower(),
        default_country=os.getenv("COMMERCE_DEFAULT_COUNTRY", constants.DEFAULT_COUNTRY).lower(),
        redis_url=os.getenv("REDIS_URL") or None,
        address_debounce_seconds=_float_env(
            "ADDRESS_DEBOUNCE_SECONDS", constants.ADDRESS_DEBOUNCE_SECONDS
        ),
        pending_payment_ttl_seconds=_int_env(
            "PENDING_PAYMENT_TTL_SECONDS", constants.PENDING_PAYMENT_TTL_SECONDS
        ),
        environment=os.getenv("STOREFRONT_ENV", "production"),
        sentry_enabled=_str_to_bool(os.getenv("SENTRY_ENABLED", "true")) and bool(os.getenv("SENTRY_DSN")),
    )
