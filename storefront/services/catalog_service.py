"""
Catalog read service.

Products come from the commerce backend first. While the catalog is being
migrated, an optional secondary source fills in when the backend fails or
has no products yet.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from storefront.core.constants import PRODUCT_PAGE_SIZE
from storefront.core.exceptions import StorefrontException
from storefront.domain.entities import Product
from storefront.integrations.commerce_client import Collection, CommerceClient
from storefront.integrations.fallback_catalog import ProductSource
from storefront.services.filters import CatalogFilters, apply_filters, parse_filters
from storefront.services.search import SearchResult, search_products, search_suggestions

logger = logging.getLogger(__name__)


def remove_duplicate_products(products: Iterable[Product], duplicate_titles: Iterable[str]) -> list[Product]:
    """Keep only the first product for each listed title (case-insensitive)."""
    watched = {title.strip().lower() for title in duplicate_titles}
    seen: set[str] = set()
    unique = []
    for product in products:
        title = product.title.strip().lower()
        if title in watched:
            if title in seen:
                continue
            seen.add(title)
        unique.append(product)
    return unique


class CatalogService:
    def __init__(
        self,
        client: CommerceClient,
        fallback_source: ProductSource | None = None,
        duplicate_titles: Iterable[str] = (),
    ):
        self.client = client
        self.fallback_source = fallback_source
        self.duplicate_titles = tuple(duplicate_titles)

    async def _from_fallback(self) -> list[Product]:
        if self.fallback_source is None:
            return []
        try:
            return await self.fallback_source.list_products()
        except (OSError, ValueError) as e:
            logger.error(f"Secondary product source failed: {e}")
            return []

    async def get_all_products(self) -> list[Product]:
        try:
            products = await self.client.list_products(limit=PRODUCT_PAGE_SIZE)
        except StorefrontException as e:
            logger.warning(f"Commerce catalog unavailable, using secondary source: {e}")
            products = await self._from_fallback()
        else:
            if not products:
                logger.info("Commerce catalog is empty, using secondary source")
                products = await self._from_fallback()
        return remove_duplicate_products(products, self.duplicate_titles)

    async def get_product_by_handle(self, handle: str) -> Product | None:
        try:
            product = await self.client.get_product_by_handle(handle)
        except StorefrontException as e:
            logger.info(f"Product {handle} not served by commerce backend: {e}")
            product = None
        if product is not None:
            return product

        for candidate in await self._from_fallback():
            if candidate.handle == handle or candidate.id == handle:
                return candidate
        return None

    async def get_featured(self) -> list[Product]:
        return [p for p in await self.get_all_products() if p.featured]

    async def get_best_sellers(self) -> list[Product]:
        return [p for p in await self.get_all_products() if p.best_seller]

    async def list_collections(self) -> list[Collection]:
        return await self.client.list_collections()

    async def browse(self, query: Mapping[str, Any]) -> tuple[list[Product], CatalogFilters]:
        """Catalog page: every product narrowed by the filters in `query`."""
        filters = parse_filters(query)
        return apply_filters(await self.get_all_products(), filters), filters

    async def search(self, query: str, limit: int | None = None) -> list[SearchResult]:
        products = await self.get_all_products()
        if limit is None:
            return search_products(products, query)
        return search_products(products, query, limit)

    async def suggestions(self) -> list[str]:
        return search_suggestions(await self.get_best_sellers())
