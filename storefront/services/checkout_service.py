"""
Checkout orchestration over a single cart.

Drives the cart from address entry through shipping and payment selection to
completion. The backend does not enforce step ordering, so every step is
checked against the checkout state machine before any network call is made:

    cart_loaded -> address_set -> shipping_options_ready -> shipping_set
        -> payment_sessions_ready -> payment_set
        -> order_created | payment_redirect_required | failed
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlencode

from storefront.core.config import Settings
from storefront.core.constants import CONFIRMATION_PATH, PENDING_PAYMENT_CART_KEY
from storefront.core.exceptions import (
    BackendError,
    EmptyCartError,
    InvalidTransitionError,
    StorefrontException,
    ValidationException,
    describe_error,
    is_already_completed_message,
)
from storefront.core.sentry_integration import add_breadcrumb, capture_exception
from storefront.domain.checkout_fsm import (
    PAYMENT_INITIALIZED_STATES,
    CheckoutState,
    validate_checkout_transition,
)
from storefront.domain.entities import Cart, Order, PaymentSession, ShippingOption
from storefront.domain.models import (
    FIELD_MESSAGES,
    AddressInput,
    CheckoutForm,
    is_address_complete,
    validate_address,
    validate_checkout_form,
)
from storefront.integrations.commerce_client import CommerceClient, CompletionKind
from storefront.integrations.kv_storage import KeyValueStorage, session_key
from storefront.services.cart_service import CartSession, CartSessionManager
from storefront.services.order_lookup import OrderLocator, PollingPolicy

logger = logging.getLogger(__name__)


def confirmation_path_for(order_id: str) -> str:
    return f"{CONFIRMATION_PATH}?{urlencode({'order_id': order_id})}"


def pending_payment_key(session_id: str) -> str:
    return session_key(PENDING_PAYMENT_CART_KEY, session_id)


class CheckoutOutcomeStatus:
    ORDER_CREATED = "order_created"
    REDIRECT_REQUIRED = "redirect_required"
    FAILED = "failed"


@dataclass
class CheckoutOutcome:
    status: str
    order: Order | None = None
    redirect_url: str | None = None
    confirmation_path: str | None = None
    redirect_to: str | None = None
    message: str | None = None
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status != CheckoutOutcomeStatus.FAILED


@dataclass
class CheckoutSession:
    """Client-side progress of one checkout; the cart itself stays in `cart_session`."""

    cart_session: CartSession
    state: str | None = None
    shipping_options: list[ShippingOption] = field(default_factory=list)
    payment_sessions: list[PaymentSession] = field(default_factory=list)
    selected_shipping_option_id: str | None = None
    selected_provider_id: str | None = None
    address: AddressInput | None = None
    email: str | None = None
    last_error: str | None = None
    order: Order | None = None
    pending_address: asyncio.Task | None = field(default=None, repr=False)

    @property
    def cart(self) -> Cart | None:
        return self.cart_session.cart

    def reset_shipping(self) -> None:
        self.shipping_options = []
        self.selected_shipping_option_id = None
        self.reset_payment()

    def reset_payment(self) -> None:
        self.payment_sessions = []
        self.selected_provider_id = None


class CheckoutOrchestrator:
    def __init__(
        self,
        client: CommerceClient,
        cart_manager: CartSessionManager,
        locator: OrderLocator,
        pending_storage: KeyValueStorage,
        settings: Settings | None = None,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
    ):
        self.client = client
        self.cart_manager = cart_manager
        self.locator = locator
        self.pending_storage = pending_storage
        self.settings = settings or Settings()
        self._sleep = sleep or asyncio.sleep

    # ===================== STATE =====================

    @staticmethod
    def _ensure_can(checkout: CheckoutSession, target: str) -> None:
        result = validate_checkout_transition(current_state=checkout.state, target_state=target)
        if not result.allowed:
            raise InvalidTransitionError(checkout.state, target, result.reason)

    def _transition(self, checkout: CheckoutSession, target: str) -> None:
        self._ensure_can(checkout, target)
        logger.info(f"Checkout {checkout.cart_session.session_id}: {checkout.state} -> {target}")
        add_breadcrumb(f"checkout {target}", cart_id=checkout.cart_session.cart_id)
        checkout.state = target

    @staticmethod
    def _cart_id(checkout: CheckoutSession) -> str:
        cart = checkout.cart
        if cart is None:
            raise EmptyCartError()
        return cart.id

    # ===================== ENTRY =====================

    async def start(self, cart_session: CartSession) -> CheckoutSession:
        """Open checkout for a non-empty cart; EmptyCartError points back to cart review."""
        cart = await self.cart_manager.retrieve_cart(cart_session)
        if cart is None or cart.is_empty:
            logger.info(f"Checkout refused for session {cart_session.session_id}: empty cart")
            raise EmptyCartError(cart.id if cart else None)

        if not cart.region_id:
            await self.cart_manager.ensure_region(cart_session)

        checkout = CheckoutSession(cart_session=cart_session, email=cart.email)
        self._transition(checkout, CheckoutState.CART_LOADED)
        return checkout

    # ===================== ADDRESS =====================

    async def submit_address(
        self,
        checkout: CheckoutSession,
        address_data: Mapping[str, Any],
        email: str | None,
    ) -> CheckoutSession:
        self._ensure_can(checkout, CheckoutState.ADDRESS_SET)
        address, email = validate_address(address_data, email)
        cart_id = self._cart_id(checkout)

        try:
            await self.client.update_cart(
                cart_id, email=email, shipping_address=address.to_payload()
            )
            await self.cart_manager.refresh(checkout.cart_session)
        except StorefrontException as e:
            checkout.last_error = describe_error(e)
            logger.warning(f"Saving address on cart {cart_id} failed: {e}")
            raise

        checkout.address = address
        checkout.email = email
        checkout.last_error = None
        checkout.reset_shipping()
        self._transition(checkout, CheckoutState.ADDRESS_SET)

        await self.load_shipping_options(checkout)
        return checkout

    def address_changed(
        self, checkout: CheckoutSession, draft: Mapping[str, Any]
    ) -> asyncio.Task | None:
        """Debounced trigger fired as the shopper edits the address form.

        Every call cancels the previous pending save. A draft is only saved
        once all fields needed to quote shipping are filled in.
        """
        if checkout.pending_address is not None and not checkout.pending_address.done():
            checkout.pending_address.cancel()
        checkout.pending_address = None

        if not is_address_complete(draft):
            return None

        email = draft.get("email") or checkout.email

        async def _save_when_idle() -> None:
            await self._sleep(self.settings.address_debounce_seconds)
            try:
                await self.submit_address(checkout, draft, email)
            except ValidationException as e:
                checkout.last_error = e.message
                logger.debug(f"Address draft not saved yet: {e.errors}")
            except StorefrontException as e:
                checkout.last_error = describe_error(e)
                logger.warning(f"Address autosave failed: {e}")

        checkout.pending_address = asyncio.create_task(_save_when_idle())
        return checkout.pending_address

    # ===================== SHIPPING =====================

    async def load_shipping_options(self, checkout: CheckoutSession) -> list[ShippingOption]:
        self._ensure_can(checkout, CheckoutState.SHIPPING_OPTIONS_READY)
        cart_id = self._cart_id(checkout)

        options = await self.client.list_shipping_options(cart_id)
        checkout.shipping_options = options
        self._transition(checkout, CheckoutState.SHIPPING_OPTIONS_READY)

        if len(options) == 1:
            logger.info(f"Auto-selecting the only shipping option {options[0].id}")
            await self.select_shipping_option(checkout, options[0].id)
        elif not options:
            checkout.last_error = "No shipping options are available for this address"
            logger.warning(f"Cart {cart_id} has no shipping options")
        return options

    async def select_shipping_option(self, checkout: CheckoutSession, option_id: str) -> Cart:
        self._ensure_can(checkout, CheckoutState.SHIPPING_SET)
        if option_id not in {option.id for option in checkout.shipping_options}:
            raise ValidationException(
                FIELD_MESSAGES["shipping_option_id"],
                {"shipping_option_id": FIELD_MESSAGES["shipping_option_id"]},
            )
        cart_id = self._cart_id(checkout)

        await self.client.add_shipping_method(cart_id, option_id)
        cart = await self.cart_manager.refresh(checkout.cart_session)

        checkout.selected_shipping_option_id = option_id
        checkout.reset_payment()
        self._transition(checkout, CheckoutState.SHIPPING_SET)

        await self.init_payment_sessions(checkout)
        return cart

    # ===================== PAYMENT =====================

    async def init_payment_sessions(self, checkout: CheckoutSession) -> list[PaymentSession]:
        self._ensure_can(checkout, CheckoutState.PAYMENT_SESSIONS_READY)
        cart_id = self._cart_id(checkout)

        sessions = await self.client.init_payment_sessions(cart_id)
        await self.cart_manager.refresh(checkout.cart_session)
        if not sessions:
            checkout.last_error = "No payment methods are available for this cart"
            raise BackendError(checkout.last_error)

        checkout.payment_sessions = sessions
        self._transition(checkout, CheckoutState.PAYMENT_SESSIONS_READY)

        if len(sessions) == 1:
            logger.info(f"Auto-selecting the only payment provider {sessions[0].provider_id}")
            await self.select_payment_provider(checkout, sessions[0].provider_id)
        return sessions

    async def select_payment_provider(self, checkout: CheckoutSession, provider_id: str) -> Cart:
        if checkout.state not in PAYMENT_INITIALIZED_STATES or not checkout.payment_sessions:
            raise InvalidTransitionError(
                checkout.state,
                CheckoutState.PAYMENT_SET,
                "Payment sessions have not been initialized",
            )
        self._ensure_can(checkout, CheckoutState.PAYMENT_SET)
        if provider_id not in {session.provider_id for session in checkout.payment_sessions}:
            raise ValidationException(
                FIELD_MESSAGES["payment_provider_id"],
                {"payment_provider_id": FIELD_MESSAGES["payment_provider_id"]},
            )
        cart_id = self._cart_id(checkout)

        await self.client.set_payment_session(cart_id, provider_id)
        cart = await self.cart_manager.refresh(checkout.cart_session)

        checkout.selected_provider_id = provider_id
        self._transition(checkout, CheckoutState.PAYMENT_SET)
        return cart

    # ===================== COMPLETION =====================

    def _check_ready_to_complete(self, checkout: CheckoutSession) -> str:
        if checkout.state not in (CheckoutState.PAYMENT_SET, CheckoutState.FAILED):
            raise InvalidTransitionError(
                checkout.state,
                CheckoutState.ORDER_CREATED,
                "Select a payment method before placing the order",
            )
        known = {session.provider_id for session in checkout.payment_sessions}
        if not checkout.selected_provider_id or checkout.selected_provider_id not in known:
            raise ValidationException(
                "The selected payment method is no longer available",
                {"payment_provider_id": FIELD_MESSAGES["payment_provider_id"]},
            )
        cart = checkout.cart
        if cart is None or cart.is_empty:
            raise EmptyCartError(cart.id if cart else None)
        if not cart.has_shipping_address or not cart.has_shipping_method:
            raise InvalidTransitionError(
                checkout.state,
                CheckoutState.ORDER_CREATED,
                "Shipping address and method are required to place the order",
            )
        return cart.id

    async def complete(self, checkout: CheckoutSession) -> CheckoutOutcome:
        """Place the order. Repeated calls never produce a second order."""
        if checkout.state == CheckoutState.ORDER_CREATED and checkout.order is not None:
            return CheckoutOutcome(
                CheckoutOutcomeStatus.ORDER_CREATED,
                order=checkout.order,
                confirmation_path=confirmation_path_for(checkout.order.id),
            )

        cart_id = self._check_ready_to_complete(checkout)
        add_breadcrumb("checkout complete", cart_id=cart_id, provider=checkout.selected_provider_id)

        try:
            result = await self.client.complete_cart(cart_id)
        except BackendError as e:
            if e.is_already_completed:
                return await self._recover_completed(checkout, cart_id, e.message)
            return self._failed(checkout, describe_error(e))
        except StorefrontException as e:
            return self._failed(checkout, describe_error(e))

        if result.kind == CompletionKind.ORDER and result.order is not None:
            return await self._order_created(checkout, result.order)
        if result.kind == CompletionKind.REDIRECT and result.redirect_url:
            return self._redirect_required(checkout, cart_id, result.redirect_url)
        if is_already_completed_message(result.message):
            return await self._recover_completed(checkout, cart_id, result.message)
        return self._failed(checkout, result.message or "Checkout could not be finished")

    async def _recover_completed(
        self, checkout: CheckoutSession, cart_id: str, message: str | None
    ) -> CheckoutOutcome:
        logger.info(f"Cart {cart_id} reported as already completed; looking up its order")
        order = await self.locator.find_order_for_cart(
            cart_id, PollingPolicy.retry(self.settings.polling)
        )
        if order is None:
            return self._failed(checkout, message or "Checkout could not be finished")
        return await self._order_created(checkout, order)

    async def _order_created(self, checkout: CheckoutSession, order: Order) -> CheckoutOutcome:
        session = checkout.cart_session
        checkout.order = order
        checkout.last_error = None
        self._transition(checkout, CheckoutState.ORDER_CREATED)
        self.pending_storage.delete(pending_payment_key(session.session_id))
        await self.cart_manager.clear(session, reason="order_placed")
        logger.info(f"Order {order.id} placed for session {session.session_id}")
        return CheckoutOutcome(
            CheckoutOutcomeStatus.ORDER_CREATED,
            order=order,
            confirmation_path=confirmation_path_for(order.id),
        )

    def _redirect_required(
        self, checkout: CheckoutSession, cart_id: str, redirect_url: str
    ) -> CheckoutOutcome:
        # the browser context may not survive the hosted payment page
        self.pending_storage.set(
            pending_payment_key(checkout.cart_session.session_id),
            cart_id,
            self.settings.pending_payment_ttl_seconds,
        )
        self._transition(checkout, CheckoutState.PAYMENT_REDIRECT_REQUIRED)
        return CheckoutOutcome(CheckoutOutcomeStatus.REDIRECT_REQUIRED, redirect_url=redirect_url)

    def _failed(self, checkout: CheckoutSession, message: str) -> CheckoutOutcome:
        logger.warning(f"Checkout completion failed for cart {checkout.cart_session.cart_id}: {message}")
        checkout.last_error = message
        self._transition(checkout, CheckoutState.FAILED)
        return CheckoutOutcome(CheckoutOutcomeStatus.FAILED, message=message)

    # ===================== FULL SEQUENCE =====================

    async def run(
        self, cart_session: CartSession, form: CheckoutForm | Mapping[str, Any]
    ) -> CheckoutOutcome:
        """Submit a whole checkout form in one go and place the order."""
        try:
            if not isinstance(form, CheckoutForm):
                form = validate_checkout_form(form)

            checkout = await self.start(cart_session)
            await self.submit_address(checkout, form.address.to_payload(), form.email)

            if form.shipping_option_id:
                if checkout.selected_shipping_option_id != form.shipping_option_id:
                    await self.select_shipping_option(checkout, form.shipping_option_id)
            elif checkout.selected_shipping_option_id is None:
                raise ValidationException(
                    FIELD_MESSAGES["shipping_option_id"],
                    {"shipping_option_id": FIELD_MESSAGES["shipping_option_id"]},
                )

            provider_id = form.payment_provider_id
            if provider_id is None and checkout.selected_provider_id is None:
                provider_id = checkout.payment_sessions[0].provider_id
            if provider_id and checkout.selected_provider_id != provider_id:
                await self.select_payment_provider(checkout, provider_id)

            return await self.complete(checkout)
        except EmptyCartError as e:
            return CheckoutOutcome(
                CheckoutOutcomeStatus.FAILED, message=e.message, redirect_to=e.redirect_to
            )
        except ValidationException as e:
            return CheckoutOutcome(CheckoutOutcomeStatus.FAILED, message=e.message, errors=e.errors)
        except StorefrontException as e:
            logger.warning(f"Checkout for session {cart_session.session_id} stopped: {e}")
            return CheckoutOutcome(CheckoutOutcomeStatus.FAILED, message=describe_error(e))
        except Exception as e:
            logger.error(f"Unexpected checkout error for session {cart_session.session_id}: {e}")
            capture_exception(e, cart={"id": cart_session.cart_id})
            raise
