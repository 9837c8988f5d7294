"""
Remote commerce backend client.

Thin wrapper over the backend's store REST API: carts, line items, shipping,
payment sessions, checkout completion, orders and the product catalog.

Every transport failure is raised as NetworkError and every structured
backend failure as BackendError; responses are reshaped into the dataclasses
from storefront.domain.entities.

Usage:
```python
async with CommerceClient(settings.commerce) as client:
    cart = await client.create_cart(region_id="reg_01")
    cart = await client.add_line_item(cart.id, "variant_01", 1)
```
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import aiohttp

from logging_config import logger
from storefront.core.config import CommerceConfig
from storefront.core.constants import HEALTH_CHECK_TIMEOUT_SECONDS, PRODUCT_PAGE_SIZE
from storefront.core.exceptions import BackendError, NetworkError
from storefront.core.retry import async_retry
from storefront.domain.entities import Cart, Order, PaymentSession, Product, Region, ShippingOption

REDIRECT_URL_KEYS = ("redirect_url", "url", "checkout_url", "session_url")


class CompletionKind:
    """Possible outcomes of the checkout completion call."""

    ORDER = "order"
    REDIRECT = "redirect"
    ERROR = "error"


@dataclass
class CompletionResult:
    kind: str
    order: Order | None = None
    redirect_url: str | None = None
    message: str | None = None
    cart: Cart | None = None


@dataclass
class Collection:
    id: str
    title: str
    handle: str
    metadata: dict[str, Any]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Collection:
        return cls(
            id=str(data.get("id", "")),
            title=str(data.get("title", "")),
            handle=str(data.get("handle", "")),
            metadata=dict(data.get("metadata") or {}),
        )


def find_redirect_url(cart: Cart | None) -> str | None:
    """Return the hosted payment page URL carried by the cart's payment session."""
    if cart is None:
        return None
    sessions: list[PaymentSession] = []
    if cart.payment_session:
        sessions.append(cart.payment_session)
    sessions.extend(s for s in cart.payment_sessions if s.is_selected)
    for session in sessions:
        for key in REDIRECT_URL_KEYS:
            value = session.data.get(key)
            if isinstance(value, str) and value.startswith(("http://", "https://")):
                return value
    return None


class CommerceClient:
    """Authenticated client for the commerce backend store API."""

    def __init__(
        self,
        config: CommerceConfig,
        session: aiohttp.ClientSession | None = None,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
    ):
        self.config = config
        self._session = session
        self._owns_session = session is None
        self._sleep = sleep or asyncio.sleep

    async def __aenter__(self) -> CommerceClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.config.publishable_key:
            headers["x-publishable-api-key"] = self.config.publishable_key
        return headers

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the HTTP session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.config.timeout_seconds)
            self._session = aiohttp.ClientSession(timeout=timeout, headers=self._headers())
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the HTTP session if this client created it."""
        if self._session and not self._session.closed and self._owns_session:
            await self._session.close()

    def _url(self, path: str) -> str:
        return f"{self.config.base_url.rstrip('/')}{path}"

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        session = await self._get_session()
        url = self._url(path)
        try:
            async with session.request(
                method, url, params=params, json=json, headers=self._headers()
            ) as response:
                if response.status == 204:
                    return {}
                try:
                    body = await response.json(content_type=None)
                except (aiohttp.ContentTypeError, ValueError):
                    body = {}
                if not isinstance(body, dict):
                    body = {"data": body}

                if response.status >= 400:
                    message = body.get("message") or f"HTTP {response.status}: {response.reason}"
                    logger.warning(f"Commerce API {method} {path} -> {response.status}: {message}")
                    raise BackendError(
                        str(message),
                        status_code=response.status,
                        code=body.get("code"),
                        error_type=body.get("type"),
                        payload=body,
                    )
                return body
        except asyncio.TimeoutError as e:
            raise NetworkError(f"Commerce API {method} {path} timed out", is_timeout=True) from e
        except aiohttp.ClientError as e:
            raise NetworkError(f"Could not connect to the commerce backend: {e}") from e

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """GET with transport-level retries; reads are idempotent."""
        retrying = async_retry(
            max_attempts=max(1, self.config.max_retries),
            exceptions=(NetworkError,),
            sleep=self._sleep,
        )(self._request)
        return await retrying("GET", path, params=params)

    async def _post(self, path: str, payload: dict[str, Any] | None = None) -> dict[str, Any]:
        return await self._request("POST", path, json=payload or {})

    @staticmethod
    def _cart(body: dict[str, Any]) -> Cart:
        data = body.get("cart")
        if not isinstance(data, dict):
            raise BackendError("Commerce backend returned no cart", payload=body)
        return Cart.from_dict(data)

    # ===================== REGIONS =====================

    async def list_regions(self) -> list[Region]:
        body = await self._get("/store/regions")
        return [Region.from_dict(region) for region in body.get("regions") or []]

    # ===================== CARTS =====================

    async def create_cart(self, region_id: str | None = None) -> Cart:
        payload: dict[str, Any] = {}
        if region_id:
            payload["region_id"] = region_id
        cart = self._cart(await self._post("/store/carts", payload))
        logger.info(f"Created cart {cart.id} (region={cart.region_id})")
        return cart

    async def retrieve_cart(self, cart_id: str) -> Cart:
        return self._cart(await self._get(f"/store/carts/{cart_id}"))

    async def update_cart(self, cart_id: str, **fields: Any) -> Cart:
        """Update region_id, email or shipping_address on the cart."""
        payload = {key: value for key, value in fields.items() if value is not None}
        return self._cart(await self._post(f"/store/carts/{cart_id}", payload))

    async def add_line_item(self, cart_id: str, variant_id: str, quantity: int) -> Cart:
        body = await self._post(
            f"/store/carts/{cart_id}/line-items",
            {"variant_id": variant_id, "quantity": int(quantity)},
        )
        return self._cart(body)

    async def update_line_item(self, cart_id: str, line_item_id: str, quantity: int) -> Cart:
        body = await self._post(
            f"/store/carts/{cart_id}/line-items/{line_item_id}",
            {"quantity": int(quantity)},
        )
        return self._cart(body)

    async def delete_line_item(self, cart_id: str, line_item_id: str) -> Cart:
        body = await self._request("DELETE", f"/store/carts/{cart_id}/line-items/{line_item_id}")
        return self._cart(body)

    # ===================== SHIPPING =====================

    async def list_shipping_options(self, cart_id: str) -> list[ShippingOption]:
        body = await self._get(f"/store/shipping-options/{cart_id}")
        return [ShippingOption.from_dict(option) for option in body.get("shipping_options") or []]

    async def add_shipping_method(self, cart_id: str, option_id: str) -> Cart:
        body = await self._post(f"/store/carts/{cart_id}/shipping-methods", {"option_id": option_id})
        return self._cart(body)

    # ===================== PAYMENT =====================

    async def init_payment_sessions(self, cart_id: str) -> list[PaymentSession]:
        cart = self._cart(await self._post(f"/store/carts/{cart_id}/payment-sessions"))
        return cart.payment_sessions

    async def set_payment_session(self, cart_id: str, provider_id: str) -> Cart:
        body = await self._post(
            f"/store/carts/{cart_id}/payment-session", {"provider_id": provider_id}
        )
        return self._cart(body)

    async def complete_cart(self, cart_id: str) -> CompletionResult:
        """Complete checkout: an order, a redirect requirement, or an error."""
        body = await self._post(f"/store/carts/{cart_id}/complete")
        kind = body.get("type")
        data = body.get("data") or body.get(kind or "") or {}

        if kind == "order" and isinstance(data, dict) and data.get("id"):
            order = Order.from_dict(data)
            logger.info(f"Cart {cart_id} completed as order {order.id}")
            return CompletionResult(CompletionKind.ORDER, order=order)

        cart = Cart.from_dict(data) if isinstance(data, dict) and data.get("id") else None
        redirect_url = find_redirect_url(cart)
        if redirect_url:
            logger.info(f"Cart {cart_id} requires payment redirect")
            return CompletionResult(CompletionKind.REDIRECT, redirect_url=redirect_url, cart=cart)

        error = body.get("error") if isinstance(body.get("error"), dict) else {}
        message = (
            (data.get("message") if isinstance(data, dict) else None)
            or error.get("message")
            or "Checkout could not be finished"
        )
        return CompletionResult(CompletionKind.ERROR, message=str(message), cart=cart)

    # ===================== ORDERS =====================

    async def retrieve_order(self, order_id: str) -> Order:
        body = await self._get(f"/store/orders/{order_id}")
        data = body.get("order")
        if not isinstance(data, dict):
            raise BackendError("Commerce backend returned no order", payload=body)
        return Order.from_dict(data)

    async def retrieve_order_by_cart(self, cart_id: str) -> Order | None:
        """Look up the order created from a cart; None while it does not exist."""
        try:
            body = await self._request("GET", f"/store/orders/cart/{cart_id}")
        except BackendError as e:
            if e.is_not_found:
                return None
            raise
        data = body.get("order")
        return Order.from_dict(data) if isinstance(data, dict) and data.get("id") else None

    # ===================== CATALOG =====================

    async def list_products(
        self,
        limit: int = PRODUCT_PAGE_SIZE,
        offset: int = 0,
        collection_id: str | None = None,
    ) -> list[Product]:
        params: dict[str, Any] = {"limit": limit, "offset": offset}
        if collection_id:
            params["collection_id"] = collection_id
        body = await self._get("/store/products", params)
        return [Product.from_dict(product) for product in body.get("products") or []]

    async def get_product_by_handle(self, handle: str) -> Product | None:
        body = await self._get("/store/products", {"handle": handle})
        products = body.get("products") or []
        return Product.from_dict(products[0]) if products else None

    async def list_collections(self, limit: int = PRODUCT_PAGE_SIZE, offset: int = 0) -> list[Collection]:
        body = await self._get("/store/collections", {"limit": limit, "offset": offset})
        return [Collection.from_dict(c) for c in body.get("collections") or []]

    async def get_collection_by_handle(self, handle: str) -> Collection | None:
        body = await self._get("/store/collections", {"handle": handle})
        for collection in body.get("collections") or []:
            if collection.get("handle") == handle:
                return Collection.from_dict(collection)
        return None

    # ===================== HEALTH =====================

    async def check_health(self) -> bool:
        """Whether the backend answers its health endpoint; never raises."""
        try:
            session = await self._get_session()
            timeout = aiohttp.ClientTimeout(total=HEALTH_CHECK_TIMEOUT_SECONDS)
            async with session.get(self._url("/health"), timeout=timeout) as response:
                return response.status == 200
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.debug(f"Commerce backend health check failed: {e}")
            return False
