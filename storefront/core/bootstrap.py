"""Storefront bootstrap wiring client, storage, services and error tracking."""
from __future__ import annotations

from dataclasses import dataclass

from logging_config import logger, setup_logging
from storefront.application.payments.reconcile_callback import PaymentCallbackReconciler
from storefront.core.config import Settings, load_settings
from storefront.core.constants import LOCAL_NAMESPACE, SESSION_NAMESPACE
from storefront.core.sentry_integration import init_sentry
from storefront.integrations.commerce_client import CommerceClient
from storefront.integrations.fallback_catalog import ProductSource
from storefront.integrations.kv_storage import KeyValueStorage, RedisKeyValueStorage
from storefront.services.cart_events import CartEvents
from storefront.services.cart_service import CartSessionManager
from storefront.services.catalog_service import CatalogService
from storefront.services.checkout_service import CheckoutOrchestrator
from storefront.services.order_lookup import OrderLocator


@dataclass
class Storefront:
    settings: Settings
    client: CommerceClient
    local_storage: KeyValueStorage
    session_storage: KeyValueStorage
    events: CartEvents
    carts: CartSessionManager
    checkout: CheckoutOrchestrator
    reconciler: PaymentCallbackReconciler
    catalog: CatalogService

    async def close(self) -> None:
        await self.client.close()


def build_storefront(
    settings: Settings | None = None,
    *,
    client: CommerceClient | None = None,
    local_storage: KeyValueStorage | None = None,
    session_storage: KeyValueStorage | None = None,
    fallback_source: ProductSource | None = None,
) -> Storefront:
    """Create storefront runtime components from configuration."""
    settings = settings or load_settings()

    if settings.sentry_enabled:
        init_sentry(environment=settings.environment)

    client = client or CommerceClient(settings.commerce)

    # Redis when configured, in-memory otherwise (state lost on restart)
    if local_storage is None:
        local_storage = RedisKeyValueStorage(settings.redis_url, LOCAL_NAMESPACE)
    if session_storage is None:
        session_storage = RedisKeyValueStorage(
            settings.redis_url, SESSION_NAMESPACE, default_ttl=settings.pending_payment_ttl_seconds
        )

    events = CartEvents()
    carts = CartSessionManager(client, local_storage, events, settings)
    locator = OrderLocator(client)
    checkout = CheckoutOrchestrator(client, carts, locator, session_storage, settings)
    reconciler = PaymentCallbackReconciler(client, locator, session_storage, carts, settings)
    catalog = CatalogService(client, fallback_source)

    logger.info(f"Storefront ready for {settings.commerce.base_url} ({settings.environment})")
    return Storefront(
        settings=settings,
        client=client,
        local_storage=local_storage,
        session_storage=session_storage,
        events=events,
        carts=carts,
        checkout=checkout,
        reconciler=reconciler,
        catalog=catalog,
    )


def configure_and_build() -> Storefront:
    """Entry point for hosting processes: logging first, then the storefront."""
    setup_logging()
    return build_storefront()
