"""Domain package."""

from .checkout_fsm import CheckoutState, validate_checkout_transition
from .entities import (
    Cart,
    LineItem,
    Order,
    PaymentSession,
    Product,
    ProductVariant,
    Region,
    ShippingAddress,
    ShippingMethod,
    ShippingOption,
    to_major_units,
)
from .models import AddressInput, CheckoutForm, is_address_complete, validate_address

__all__ = [
    # Entities
    "Cart",
    "LineItem",
    "Order",
    "PaymentSession",
    "Product",
    "ProductVariant",
    "Region",
    "ShippingAddress",
    "ShippingMethod",
    "ShippingOption",
    "to_major_units",
    # Input models
    "AddressInput",
    "CheckoutForm",
    "is_address_complete",
    "validate_address",
    # State machine
    "CheckoutState",
    "validate_checkout_transition",
]
