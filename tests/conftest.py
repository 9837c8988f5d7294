"""Shared pytest fixtures: an in-memory commerce backend and wired services."""
from __future__ import annotations

import itertools
from typing import Any

import pytest

from storefront.core.config import PollingConfig, Settings
from storefront.core.exceptions import BackendError
from storefront.domain.entities import Cart, Order, Region, ShippingOption
from storefront.integrations.commerce_client import CompletionKind, CompletionResult
from storefront.integrations.kv_storage import MemoryKeyValueStorage
from storefront.services.cart_events import CartEvents
from storefront.services.cart_service import CartSession, CartSessionManager
from storefront.services.checkout_service import CheckoutOrchestrator
from storefront.services.order_lookup import OrderLocator

VALID_ADDRESS = {
    "first_name": "Lucia",
    "last_name": "Garcia",
    "address_1": "Calle Mayor 1",
    "city": "Madrid",
    "postal_code": "28013",
    "country_code": "ES",
}
VALID_EMAIL = "lucia@example.com"


def make_order(cart_id: str, raw: dict[str, Any] | None = None) -> Order:
    raw = raw or {}
    return Order.from_dict(
        {
            "id": f"order_{cart_id}",
            "display_id": 1001,
            "cart_id": cart_id,
            "email": raw.get("email"),
            "total": raw.get("total", 0),
            "currency_code": raw.get("currency_code", "eur"),
        }
    )


class FakeCommerceClient:
    """In-memory stand-in for CommerceClient that records every call."""

    def __init__(
        self,
        *,
        regions: list[Region] | None = None,
        shipping_options: list[ShippingOption] | None = None,
        providers: tuple[str, ...] = ("stripe",),
    ):
        self.regions = (
            regions if regions is not None else [Region("reg_eu", "Europe", "eur", ["es"])]
        )
        self.shipping_options = (
            shipping_options
            if shipping_options is not None
            else [ShippingOption("so_standard", "Standard", 500, "eur")]
        )
        self.providers = list(providers)
        self.carts: dict[str, dict[str, Any]] = {}
        self.orders_by_cart: dict[str, Order] = {}
        self.completions: list[CompletionResult | Exception] = []
        self.lookups: list[Order | Exception | None] = []
        self.errors: dict[str, Exception] = {}
        self.calls: list[str] = []
        self._ids = itertools.count(1)

    def _record(self, name: str) -> None:
        self.calls.append(name)
        error = self.errors.get(name)
        if error is not None:
            raise error

    def count(self, name: str) -> int:
        return self.calls.count(name)

    def _raw(self, cart_id: str) -> dict[str, Any]:
        raw = self.carts.get(cart_id)
        if raw is None:
            raise BackendError(
                f"Cart with id {cart_id} was not found", status_code=404, error_type="not_found"
            )
        return raw

    @staticmethod
    def _recompute(raw: dict[str, Any]) -> None:
        subtotal = sum(item["quantity"] * item["unit_price"] for item in raw["items"])
        shipping = sum(method["amount"] for method in raw["shipping_methods"])
        raw["subtotal"] = subtotal
        raw["shipping_total"] = shipping
        raw["total"] = subtotal + shipping

    async def list_regions(self) -> list[Region]:
        self._record("list_regions")
        return list(self.regions)

    async def create_cart(self, region_id: str | None = None) -> Cart:
        self._record("create_cart")
        cart_id = f"cart_{next(self._ids)}"
        region = next((r for r in self.regions if r.id == region_id), None)
        self.carts[cart_id] = {
            "id": cart_id,
            "region_id": region_id,
            "currency_code": region.currency_code if region else None,
            "items": [],
            "shipping_methods": [],
            "payment_sessions": [],
            "total": 0,
        }
        return Cart.from_dict(self.carts[cart_id])

    async def retrieve_cart(self, cart_id: str) -> Cart:
        self._record("retrieve_cart")
        return Cart.from_dict(self._raw(cart_id))

    async def update_cart(self, cart_id: str, **fields: Any) -> Cart:
        self._record("update_cart")
        raw = self._raw(cart_id)
        raw.update({key: value for key, value in fields.items() if value is not None})
        return Cart.from_dict(raw)

    async def add_line_item(self, cart_id: str, variant_id: str, quantity: int) -> Cart:
        self._record("add_line_item")
        raw = self._raw(cart_id)
        raw["items"].append(
            {
                "id": f"item_{next(self._ids)}",
                "variant_id": variant_id,
                "title": variant_id,
                "quantity": quantity,
                "unit_price": 2500,
            }
        )
        self._recompute(raw)
        return Cart.from_dict(raw)

    def _item(self, raw: dict[str, Any], line_item_id: str) -> dict[str, Any]:
        for item in raw["items"]:
            if item["id"] == line_item_id:
                return item
        raise BackendError("Line item not found", status_code=404, error_type="not_found")

    async def update_line_item(self, cart_id: str, line_item_id: str, quantity: int) -> Cart:
        self._record("update_line_item")
        raw = self._raw(cart_id)
        self._item(raw, line_item_id)["quantity"] = quantity
        self._recompute(raw)
        return Cart.from_dict(raw)

    async def delete_line_item(self, cart_id: str, line_item_id: str) -> Cart:
        self._record("delete_line_item")
        raw = self._raw(cart_id)
        raw["items"].remove(self._item(raw, line_item_id))
        self._recompute(raw)
        return Cart.from_dict(raw)

    async def list_shipping_options(self, cart_id: str) -> list[ShippingOption]:
        self._record("list_shipping_options")
        self._raw(cart_id)
        return list(self.shipping_options)

    async def add_shipping_method(self, cart_id: str, option_id: str) -> Cart:
        self._record("add_shipping_method")
        raw = self._raw(cart_id)
        option = next(o for o in self.shipping_options if o.id == option_id)
        raw["shipping_methods"] = [
            {"id": f"sm_{option_id}", "shipping_option_id": option_id, "name": option.name, "amount": option.amount}
        ]
        self._recompute(raw)
        return Cart.from_dict(raw)

    async def init_payment_sessions(self, cart_id: str):
        self._record("init_payment_sessions")
        raw = self._raw(cart_id)
        raw["payment_sessions"] = [
            {"id": f"ps_{provider}", "provider_id": provider, "status": "pending", "data": {}}
            for provider in self.providers
        ]
        return Cart.from_dict(raw).payment_sessions

    async def set_payment_session(self, cart_id: str, provider_id: str) -> Cart:
        self._record("set_payment_session")
        raw = self._raw(cart_id)
        for session in raw["payment_sessions"]:
            session["is_selected"] = session["provider_id"] == provider_id
            if session["is_selected"]:
                raw["payment_session"] = dict(session)
        return Cart.from_dict(raw)

    async def complete_cart(self, cart_id: str) -> CompletionResult:
        self._record("complete_cart")
        if self.completions:
            outcome = self.completions.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        raw = self._raw(cart_id)
        if cart_id in self.orders_by_cart:
            raise BackendError("Cart has already been completed", status_code=409, error_type="not_allowed")
        order = make_order(cart_id, raw)
        self.orders_by_cart[cart_id] = order
        raw["completed_at"] = "2026-10-19T10:00:00Z"
        return CompletionResult(CompletionKind.ORDER, order=order)

    async def retrieve_order_by_cart(self, cart_id: str) -> Order | None:
        self._record("retrieve_order_by_cart")
        if self.lookups:
            outcome = self.lookups.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        return self.orders_by_cart.get(cart_id)


class RecordingSleep:
    """Injectable sleep that returns immediately and remembers every delay."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)

    @property
    def total(self) -> float:
        return sum(self.delays)


@pytest.fixture()
def fake_client() -> FakeCommerceClient:
    return FakeCommerceClient()


@pytest.fixture()
def settings() -> Settings:
    return Settings(polling=PollingConfig(attempts=5, delay_seconds=2.0, retry_attempts=3, retry_delay_seconds=1.0))


@pytest.fixture()
def local_storage() -> MemoryKeyValueStorage:
    return MemoryKeyValueStorage()


@pytest.fixture()
def session_storage() -> MemoryKeyValueStorage:
    return MemoryKeyValueStorage()


@pytest.fixture()
def events() -> CartEvents:
    return CartEvents()


@pytest.fixture()
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture()
def cart_session() -> CartSession:
    return CartSession("sess-1")


@pytest.fixture()
def cart_manager(fake_client, local_storage, events, settings) -> CartSessionManager:
    return CartSessionManager(fake_client, local_storage, events, settings)


@pytest.fixture()
def locator(fake_client, sleep) -> OrderLocator:
    return OrderLocator(fake_client, sleep=sleep)


@pytest.fixture()
def orchestrator(fake_client, cart_manager, locator, session_storage, settings, sleep) -> CheckoutOrchestrator:
    return CheckoutOrchestrator(fake_client, cart_manager, locator, session_storage, settings, sleep=sleep)


@pytest.fixture()
async def aiohttp_server():
    """Minimal aiohttp_server fixture to avoid pytest-aiohttp dependency."""
    servers: list[object] = []

    async def _make_server(app):
        from aiohttp.test_utils import TestServer

        server = TestServer(app)
        await server.start_server()
        servers.append(server)
        return server

    try:
        yield _make_server
    finally:
        for server in servers:
            await server.close()


@pytest.fixture()
def valid_address() -> dict[str, str]:
    return dict(VALID_ADDRESS)


@pytest.fixture()
def order_factory():
    return make_order


@pytest.fixture()
async def filled_cart(cart_manager, cart_session) -> Cart:
    """A cart with one line item, persisted for `cart_session`."""
    return await cart_manager.add_line_item(cart_session, "variant_home_jersey_m", 1)
