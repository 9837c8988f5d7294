"""Configuration, error mapping, retry and cart events."""
from __future__ import annotations

import pytest

from storefront.core.config import load_settings
from storefront.core.exceptions import (
    BackendError,
    ConfigurationException,
    EmptyCartError,
    NetworkError,
    ValidationException,
    describe_error,
)
from storefront.core.retry import async_retry
from storefront.services.cart_events import CartChanged, CartEvents

ENV_VARS = (
    "COMMERCE_BACKEND_URL",
    "COMMERCE_PUBLISHABLE_KEY",
    "COMMERCE_PREFERRED_CURRENCY",
    "ORDER_POLL_ATTEMPTS",
    "ORDER_POLL_DELAY_SECONDS",
    "ORDER_RETRY_POLL_ATTEMPTS",
    "REDIS_URL",
    "SENTRY_DSN",
)


@pytest.fixture()
def clean_env(monkeypatch, mocker):
    mocker.patch("storefront.core.config.load_dotenv")
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_settings_defaults(clean_env) -> None:
    settings = load_settings()

    assert settings.commerce.base_url == "http://localhost:9000"
    assert settings.commerce.publishable_key is None
    assert settings.preferred_currency == "eur"
    assert settings.polling.attempts == 5
    assert settings.polling.delay_seconds == 2.0
    assert settings.polling.retry_attempts == 3
    assert settings.redis_url is None
    assert settings.sentry_enabled is False


def test_settings_from_environment(clean_env) -> None:
    clean_env.setenv("COMMERCE_BACKEND_URL", "https://api.shop.example/")
    clean_env.setenv("COMMERCE_PUBLISHABLE_KEY", "pk_live")
    clean_env.setenv("COMMERCE_PREFERRED_CURRENCY", "USD")
    clean_env.setenv("ORDER_POLL_ATTEMPTS", "8")
    clean_env.setenv("ORDER_POLL_DELAY_SECONDS", "0.25")

    settings = load_settings()

    assert settings.commerce.base_url == "https://api.shop.example"
    assert settings.commerce.publishable_key == "pk_live"
    assert settings.preferred_currency == "usd"
    assert settings.polling.attempts == 8
    assert settings.polling.delay_seconds == 0.25


@pytest.mark.parametrize("value", ["zero", "0"])
def test_invalid_polling_config_rejected(clean_env, value) -> None:
    clean_env.setenv("ORDER_RETRY_POLL_ATTEMPTS", value)

    with pytest.raises(ConfigurationException):
        load_settings()


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (NetworkError("refused"), "Could not reach the store server. Please check your connection and try again."),
        (NetworkError("slow", is_timeout=True), "The request took too long. Please try again."),
        (BackendError("Forbidden", status_code=403), "You are not allowed to perform this action"),
        (BackendError("Cart not found", status_code=404), "The requested resource does not exist"),
        (BackendError("Shipping option is not valid for cart", status_code=400), "Shipping option is not valid for cart"),
        (BackendError("", status_code=400), "The submitted data is not valid"),
        (ValidationException("City is required"), "City is required"),
        (EmptyCartError(), "Your cart is empty"),
        (None, "An unexpected error occurred"),
    ],
)
def test_describe_error(error, expected) -> None:
    assert describe_error(error) == expected


@pytest.mark.parametrize(
    ("error", "already"),
    [
        (BackendError("Cart has already been completed"), True),
        (BackendError("Conflict", code="cart_completed"), True),
        (BackendError("Payment declined"), False),
        (BackendError("Payment could not be completed", status_code=400), False),
        (BackendError("Not allowed", error_type="already_completed"), True),
    ],
)
def test_already_completed_detection(error, already) -> None:
    assert error.is_already_completed is already


@pytest.mark.asyncio
async def test_retry_backs_off_then_succeeds() -> None:
    delays: list[float] = []
    attempts = {"count": 0}

    async def fake_sleep(delay: float) -> None:
        delays.append(delay)

    @async_retry(max_attempts=3, initial_delay=0.2, exponential_base=2.0, sleep=fake_sleep)
    async def flaky() -> str:
        attempts["count"] += 1
        if attempts["count"] < 3:
            raise NetworkError("blip")
        return "ok"

    assert await flaky() == "ok"
    assert delays == [0.2, 0.4]


@pytest.mark.asyncio
async def test_retry_ignores_other_errors() -> None:
    calls = {"count": 0}

    async def fake_sleep(delay: float) -> None:
        raise AssertionError("should not sleep")

    @async_retry(max_attempts=3, sleep=fake_sleep)
    async def rejected() -> None:
        calls["count"] += 1
        raise BackendError("Invalid", status_code=400)

    with pytest.raises(BackendError):
        await rejected()
    assert calls["count"] == 1


@pytest.mark.asyncio
async def test_retry_raises_last_error() -> None:
    async def fake_sleep(delay: float) -> None:
        return None

    @async_retry(max_attempts=2, sleep=fake_sleep)
    async def always_down() -> None:
        raise NetworkError("down")

    with pytest.raises(NetworkError, match="down"):
        await always_down()


@pytest.mark.asyncio
async def test_failing_subscriber_does_not_block_others() -> None:
    events = CartEvents()
    received: list[CartChanged] = []

    async def broken(event: CartChanged) -> None:
        raise RuntimeError("badge widget crashed")

    async def badge(event: CartChanged) -> None:
        received.append(event)

    events.subscribe(broken)
    events.subscribe(badge)
    events.subscribe(badge)

    await events.emit(CartChanged("sess-1", "cart_1", 3, "line_item_added"))

    assert len(received) == 1
    assert received[0].item_count == 3

    events.unsubscribe(badge)
    await events.emit(CartChanged("sess-1", "cart_1", 4, "line_item_added"))
    assert len(received) == 1
