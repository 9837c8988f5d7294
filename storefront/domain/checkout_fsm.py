"""Checkout step transition rules (single source of truth)."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping


class CheckoutState:
    """Client-side checkout states, in the order a shopper moves through them."""

    CART_LOADED = "cart_loaded"
    ADDRESS_SET = "address_set"
    SHIPPING_OPTIONS_READY = "shipping_options_ready"
    SHIPPING_SET = "shipping_set"
    PAYMENT_SESSIONS_READY = "payment_sessions_ready"
    PAYMENT_SET = "payment_set"
    ORDER_CREATED = "order_created"
    PAYMENT_REDIRECT_REQUIRED = "payment_redirect_required"
    FAILED = "failed"


_ADDRESS_EDIT = frozenset({CheckoutState.ADDRESS_SET})

ALLOWED_TRANSITIONS: Mapping[str, frozenset[str]] = {
    CheckoutState.CART_LOADED: frozenset({CheckoutState.ADDRESS_SET}),
    CheckoutState.ADDRESS_SET: frozenset({CheckoutState.SHIPPING_OPTIONS_READY}) | _ADDRESS_EDIT,
    CheckoutState.SHIPPING_OPTIONS_READY: frozenset({CheckoutState.SHIPPING_SET}) | _ADDRESS_EDIT,
    CheckoutState.SHIPPING_SET: frozenset(
        {
            CheckoutState.PAYMENT_SESSIONS_READY,
            CheckoutState.SHIPPING_SET,
            CheckoutState.SHIPPING_OPTIONS_READY,
        }
    )
    | _ADDRESS_EDIT,
    CheckoutState.PAYMENT_SESSIONS_READY: frozenset(
        {
            CheckoutState.PAYMENT_SET,
            CheckoutState.SHIPPING_SET,
            CheckoutState.SHIPPING_OPTIONS_READY,
        }
    )
    | _ADDRESS_EDIT,
    CheckoutState.PAYMENT_SET: frozenset(
        {
            CheckoutState.ORDER_CREATED,
            CheckoutState.PAYMENT_REDIRECT_REQUIRED,
            CheckoutState.FAILED,
            CheckoutState.PAYMENT_SET,
            CheckoutState.SHIPPING_SET,
            CheckoutState.SHIPPING_OPTIONS_READY,
        }
    )
    | _ADDRESS_EDIT,
    CheckoutState.PAYMENT_REDIRECT_REQUIRED: frozenset(
        {CheckoutState.ORDER_CREATED, CheckoutState.FAILED}
    ),
    # completion failures are recoverable: retry from the payment step or edit earlier steps
    CheckoutState.FAILED: frozenset(
        {
            CheckoutState.ORDER_CREATED,
            CheckoutState.PAYMENT_REDIRECT_REQUIRED,
            CheckoutState.PAYMENT_SET,
            CheckoutState.FAILED,
            CheckoutState.SHIPPING_SET,
            CheckoutState.SHIPPING_OPTIONS_READY,
        }
    )
    | _ADDRESS_EDIT,
    CheckoutState.ORDER_CREATED: frozenset(),
}

TERMINAL_STATES = frozenset({CheckoutState.ORDER_CREATED})

# States from which the backend already knows a shipping method / payment session.
SHIPPING_SAVED_STATES = frozenset(
    {
        CheckoutState.SHIPPING_SET,
        CheckoutState.PAYMENT_SESSIONS_READY,
        CheckoutState.PAYMENT_SET,
        CheckoutState.FAILED,
    }
)
PAYMENT_INITIALIZED_STATES = frozenset(
    {
        CheckoutState.PAYMENT_SESSIONS_READY,
        CheckoutState.PAYMENT_SET,
        CheckoutState.FAILED,
    }
)


@dataclass(frozen=True, slots=True)
class TransitionValidationResult:
    allowed: bool
    reason: str | None = None


def validate_checkout_transition(
    *,
    current_state: str | None,
    target_state: str,
) -> TransitionValidationResult:
    """Validate a checkout step change against the transition matrix."""
    if not target_state:
        return TransitionValidationResult(False, "Target checkout state is missing.")

    if target_state not in ALLOWED_TRANSITIONS:
        return TransitionValidationResult(False, f"Unsupported checkout state: {target_state}")

    if current_state is None:
        if target_state == CheckoutState.CART_LOADED:
            return TransitionValidationResult(True)
        return TransitionValidationResult(False, "Checkout has not been started.")

    if current_state not in ALLOWED_TRANSITIONS:
        return TransitionValidationResult(False, f"Unsupported current state: {current_state}")

    if current_state in TERMINAL_STATES:
        return TransitionValidationResult(
            False,
            f"Checkout already finished in state '{current_state}'.",
        )

    if target_state not in ALLOWED_TRANSITIONS[current_state]:
        return TransitionValidationResult(
            False,
            f"Transition '{current_state} -> {target_state}' is not allowed.",
        )

    return TransitionValidationResult(True)
