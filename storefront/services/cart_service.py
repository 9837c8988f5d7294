"""
Cart session management.

Owns the client-held cart identifier: lazily creates a cart bound to a
region, persists its id through the injected storage port and re-fetches the
canonical cart from the backend after every mutation.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from storefront.core.config import Settings
from storefront.core.constants import CART_ID_KEY, CART_ID_TTL_SECONDS
from storefront.core.exceptions import (
    BackendError,
    NoRegionAvailable,
    StorefrontException,
    ValidationException,
)
from storefront.domain.entities import Cart, Region, to_major_units
from storefront.integrations.commerce_client import CommerceClient
from storefront.integrations.kv_storage import KeyValueStorage, session_key
from storefront.services.cart_events import CartChanged, CartEvents

logger = logging.getLogger(__name__)


@dataclass
class CartSession:
    """Handle for one shopper's cart, passed explicitly through every call.

    `cart` is the last canonical snapshot fetched from the backend; it only
    changes when a backend call succeeds.
    """

    session_id: str
    cart: Cart | None = None

    @property
    def cart_id(self) -> str | None:
        return self.cart.id if self.cart else None


def _validate_quantity(quantity: object) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationException("Quantity must be a whole number", {"quantity": "Invalid quantity"})
    return quantity


class CartSessionManager:
    def __init__(
        self,
        client: CommerceClient,
        local_storage: KeyValueStorage,
        events: CartEvents | None = None,
        settings: Settings | None = None,
    ):
        self.client = client
        self.storage = local_storage
        self.events = events or CartEvents()
        self.settings = settings or Settings()

    # ===================== PERSISTED ID =====================

    def stored_cart_id(self, session: CartSession) -> str | None:
        value = self.storage.get(session_key(CART_ID_KEY, session.session_id))
        return value.strip() if value and value.strip() else None

    def _persist(self, session: CartSession, cart: Cart) -> None:
        self.storage.set(session_key(CART_ID_KEY, session.session_id), cart.id, CART_ID_TTL_SECONDS)

    def _forget(self, session: CartSession) -> None:
        self.storage.delete(session_key(CART_ID_KEY, session.session_id))

    async def _emit(self, session: CartSession, cart: Cart | None, reason: str) -> None:
        await self.events.emit(
            CartChanged(
                session_id=session.session_id,
                cart_id=cart.id if cart else None,
                item_count=cart.item_count if cart else 0,
                reason=reason,
            )
        )

    # ===================== RESOLUTION =====================

    async def _default_region(self) -> Region:
        regions = await self.client.list_regions()
        if not regions:
            raise NoRegionAvailable()
        preferred = (self.settings.preferred_currency or "").lower()
        for region in regions:
            if region.currency_code == preferred:
                return region
        return regions[0]

    async def _load_stored(self, session: CartSession) -> Cart | None:
        cart_id = self.stored_cart_id(session)
        if not cart_id:
            return None
        try:
            cart = await self.client.retrieve_cart(cart_id)
        except BackendError as e:
            # unknown or expired id: behave as if there was no cart
            logger.info(f"Stored cart {cart_id} no longer resolves ({e.message}); recreating")
            self._forget(session)
            return None
        if cart.is_completed:
            logger.info(f"Stored cart {cart_id} already completed; discarding")
            self._forget(session)
            return None
        return cart

    async def _resolve_or_create(self, session: CartSession) -> Cart:
        cart = await self._load_stored(session)
        if cart is not None:
            return cart
        region = await self._default_region()
        cart = await self.client.create_cart(region.id)
        self._persist(session, cart)
        return cart

    async def retrieve_cart(self, session: CartSession) -> Cart | None:
        """Current cart without creating one."""
        cart = await self._load_stored(session)
        session.cart = cart
        return cart

    async def get_or_create_cart(self, session: CartSession) -> Cart:
        cart = await self._resolve_or_create(session)
        session.cart = cart
        return cart

    async def refresh(self, session: CartSession) -> Cart:
        cart_id = session.cart_id or self.stored_cart_id(session)
        if not cart_id:
            return await self.get_or_create_cart(session)
        cart = await self.client.retrieve_cart(cart_id)
        session.cart = cart
        return cart

    async def ensure_region(self, session: CartSession) -> Cart:
        """Bind the default region to a cart that has none."""
        cart = await self._resolve_or_create(session)
        if not cart.region_id:
            region = await self._default_region()
            await self.client.update_cart(cart.id, region_id=region.id)
            cart = await self.client.retrieve_cart(cart.id)
            logger.info(f"Cart {cart.id} bound to region {region.id}")
        session.cart = cart
        return cart

    # ===================== MUTATIONS =====================

    async def add_line_item(self, session: CartSession, variant_id: str, quantity: int = 1) -> Cart:
        quantity = _validate_quantity(quantity)
        if quantity < 1:
            raise ValidationException("Quantity must be at least 1", {"quantity": "Quantity must be at least 1"})
        if not variant_id:
            raise ValidationException("Select a product variant", {"variant_id": "Variant is required"})

        cart = await self._resolve_or_create(session)
        await self.client.add_line_item(cart.id, variant_id, quantity)
        refreshed = await self.client.retrieve_cart(cart.id)
        session.cart = refreshed
        logger.info(f"Added {quantity} x {variant_id} to cart {cart.id}")
        await self._emit(session, refreshed, "line_item_added")
        return refreshed

    async def update_line_item_quantity(
        self, session: CartSession, line_item_id: str, quantity: int
    ) -> Cart:
        quantity = _validate_quantity(quantity)
        if quantity < 1:
            return await self.remove_line_item(session, line_item_id)

        cart = await self._resolve_or_create(session)
        await self.client.update_line_item(cart.id, line_item_id, quantity)
        refreshed = await self.client.retrieve_cart(cart.id)
        session.cart = refreshed
        await self._emit(session, refreshed, "line_item_updated")
        return refreshed

    async def remove_line_item(self, session: CartSession, line_item_id: str) -> Cart:
        cart = await self._resolve_or_create(session)
        await self.client.delete_line_item(cart.id, line_item_id)
        refreshed = await self.client.retrieve_cart(cart.id)
        session.cart = refreshed
        await self._emit(session, refreshed, "line_item_removed")
        return refreshed

    async def clear(self, session: CartSession, reason: str = "cleared") -> None:
        """Discard the client-held cart (after an order is placed)."""
        self._forget(session)
        session.cart = None
        await self._emit(session, None, reason)

    # ===================== PROJECTIONS =====================

    @staticmethod
    def compute_total(cart: Cart) -> Decimal:
        """Backend-reported total in major units; never recomputed from items."""
        return to_major_units(cart.total, cart.currency_code)

    @staticmethod
    def item_count(cart: Cart | None) -> int:
        return cart.item_count if cart else 0

    async def poll_item_count(self, session: CartSession) -> int:
        """Best-effort badge refresh; 0 when the cart cannot be read."""
        try:
            cart = await self.retrieve_cart(session)
        except StorefrontException as e:
            logger.debug(f"Cart count refresh failed: {e}")
            return 0
        return self.item_count(cart)
