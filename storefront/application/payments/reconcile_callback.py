"""Use case: reconcile the shopper's return from a hosted payment page.

The order may be created by the backend's payment webhook before, during or
after the browser comes back. The shopper-facing result must converge on one
order without waiting forever:

1. look for an order created from the cart (bounded polling),
2. otherwise complete the cart directly,
3. on "already completed", look once more with a shorter schedule,
4. otherwise report an ambiguous outcome (payment may still have succeeded).
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from storefront.core.config import Settings
from storefront.core.exceptions import (
    BackendError,
    NetworkError,
    StorefrontException,
    describe_error,
    is_already_completed_message,
)
from storefront.core.sentry_integration import add_breadcrumb, capture_exception
from storefront.domain.entities import Order
from storefront.integrations.commerce_client import CommerceClient, CompletionKind
from storefront.integrations.kv_storage import KeyValueStorage
from storefront.services.cart_service import CartSession, CartSessionManager
from storefront.services.checkout_service import confirmation_path_for, pending_payment_key
from storefront.services.order_lookup import OrderLocator, PollingPolicy

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "The payment was cancelled."
PROVIDER_ERROR_MESSAGE = "The payment provider could not process the payment."
MISSING_CART_MESSAGE = "We could not identify your cart. Please try again."
AMBIGUOUS_MESSAGE = (
    "We could not confirm your order. The payment may still be processing. "
    "Please check your email or contact support."
)


class ReconcileStatus:
    SUCCESS = "success"
    FAILED = "failed"
    REDIRECT = "redirect"
    AMBIGUOUS = "ambiguous"


@dataclass
class ReconcileResult:
    status: str
    error_key: str | None = None
    message: str | None = None
    order: Order | None = None
    cart_id: str | None = None
    confirmation_path: str | None = None
    redirect_url: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == ReconcileStatus.SUCCESS


def _flag(value: Any) -> bool:
    return str(value or "").strip().lower() in {"true", "1", "yes"}


class PaymentCallbackReconciler:
    def __init__(
        self,
        client: CommerceClient,
        locator: OrderLocator,
        pending_storage: KeyValueStorage,
        cart_manager: CartSessionManager,
        settings: Settings | None = None,
    ):
        self.client = client
        self.locator = locator
        self.pending_storage = pending_storage
        self.cart_manager = cart_manager
        self.settings = settings or Settings()

    def _resolve_cart_id(self, session_id: str, query: Mapping[str, Any]) -> str | None:
        cart_id = str(query.get("cart_id") or "").strip()
        if cart_id:
            return cart_id
        stored = self.pending_storage.get(pending_payment_key(session_id))
        return stored.strip() if stored and stored.strip() else None

    async def reconcile(self, session_id: str, query: Mapping[str, Any]) -> ReconcileResult:
        if _flag(query.get("canceled")):
            logger.info(f"Payment cancelled by shopper (session {session_id})")
            return ReconcileResult(ReconcileStatus.FAILED, "cancelled", CANCELLED_MESSAGE)

        if query.get("error"):
            message = str(query.get("error_description") or PROVIDER_ERROR_MESSAGE)
            logger.warning(f"Payment provider reported {query.get('error')}: {message}")
            return ReconcileResult(ReconcileStatus.FAILED, "provider_error", message)

        cart_id = self._resolve_cart_id(session_id, query)
        if not cart_id:
            return ReconcileResult(ReconcileStatus.FAILED, "missing_cart", MISSING_CART_MESSAGE)

        add_breadcrumb("payment callback", category="payment", cart_id=cart_id)
        try:
            return await self._reconcile_cart(session_id, cart_id)
        except Exception as e:
            logger.error(f"Payment reconciliation for cart {cart_id} crashed: {e}")
            capture_exception(e, cart={"id": cart_id})
            return ReconcileResult(
                ReconcileStatus.FAILED, "unexpected", describe_error(e), cart_id=cart_id
            )

    async def _reconcile_cart(self, session_id: str, cart_id: str) -> ReconcileResult:
        polling = self.settings.polling

        order = await self.locator.find_order_for_cart(cart_id, PollingPolicy.primary(polling))
        if order is not None:
            return await self._success(session_id, cart_id, order)

        logger.info(f"No order yet for cart {cart_id}; completing it directly")
        result = None
        message: str | None = None
        try:
            result = await self.client.complete_cart(cart_id)
        except BackendError as e:
            if not e.is_already_completed:
                return ReconcileResult(ReconcileStatus.FAILED, "backend_error", describe_error(e), cart_id=cart_id)
            message = e.message
        except NetworkError as e:
            # outcome unknown, resolved by the retry lookup below
            logger.warning(f"Completing cart {cart_id} failed in transit: {e}")
        except StorefrontException as e:
            return ReconcileResult(ReconcileStatus.FAILED, "backend_error", describe_error(e), cart_id=cart_id)
        else:
            message = result.message

        if result is not None:
            if result.kind == CompletionKind.ORDER and result.order is not None:
                return await self._success(session_id, cart_id, result.order)
            if result.kind == CompletionKind.REDIRECT and result.redirect_url:
                return ReconcileResult(
                    ReconcileStatus.REDIRECT, cart_id=cart_id, redirect_url=result.redirect_url
                )
            if not is_already_completed_message(message):
                return ReconcileResult(
                    ReconcileStatus.FAILED,
                    "backend_error",
                    message or "Checkout could not be finished",
                    cart_id=cart_id,
                )

        logger.info(f"Completion of cart {cart_id} unresolved; looking up its order again")
        order = await self.locator.find_order_for_cart(cart_id, PollingPolicy.retry(polling))
        if order is not None:
            return await self._success(session_id, cart_id, order)

        logger.warning(f"Order for cart {cart_id} could not be confirmed")
        return ReconcileResult(ReconcileStatus.AMBIGUOUS, "unconfirmed", AMBIGUOUS_MESSAGE, cart_id=cart_id)

    async def _success(self, session_id: str, cart_id: str, order: Order) -> ReconcileResult:
        self.pending_storage.delete(pending_payment_key(session_id))
        session = CartSession(session_id)
        if self.cart_manager.stored_cart_id(session) in (None, cart_id):
            await self.cart_manager.clear(session, reason="order_placed")
        logger.info(f"Payment for cart {cart_id} reconciled to order {order.id}")
        return ReconcileResult(
            ReconcileStatus.SUCCESS,
            order=order,
            cart_id=cart_id,
            confirmation_path=confirmation_path_for(order.id),
        )
