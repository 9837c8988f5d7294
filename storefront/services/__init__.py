"""Services package - cart, checkout and catalog logic."""

from storefront.services.cart_events import CartChanged, CartEvents
from storefront.services.cart_service import CartSession, CartSessionManager
from storefront.services.catalog_service import CatalogService
from storefront.services.checkout_service import (
    CheckoutOrchestrator,
    CheckoutOutcome,
    CheckoutOutcomeStatus,
    CheckoutSession,
)
from storefront.services.order_lookup import OrderLocator, PollingPolicy

__all__ = [
    "CartChanged",
    "CartEvents",
    "CartSession",
    "CartSessionManager",
    "CatalogService",
    "CheckoutOrchestrator",
    "CheckoutOutcome",
    "CheckoutOutcomeStatus",
    "CheckoutSession",
    "OrderLocator",
    "PollingPolicy",
]
