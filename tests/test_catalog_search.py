"""Catalog fallback, filters and search scoring."""
from __future__ import annotations

from decimal import Decimal

import pytest

from storefront.core.exceptions import NetworkError
from storefront.domain.entities import Product
from storefront.integrations.fallback_catalog import StaticProductSource
from storefront.services.catalog_service import CatalogService, remove_duplicate_products
from storefront.services.filters import (
    CatalogFilters,
    apply_filters,
    build_query,
    collect_sizes,
    has_active_filters,
    parse_filters,
)
from storefront.services.search import search_products, search_suggestions


def _product(handle: str, title: str, amount: int, sizes=("M",), **metadata) -> dict:
    return {
        "id": f"prod_{handle}",
        "handle": handle,
        "title": title,
        "description": metadata.pop("description", ""),
        "variants": [
            {"id": f"{handle}_{size}", "title": size, "prices": [{"amount": amount, "currency_code": "eur"}]}
            for size in sizes
        ],
        "metadata": metadata,
    }


RAW_PRODUCTS = [
    _product("rm-home", "Real Madrid Home 2026", 8999, ("S", "M", "L"), team="Real Madrid", league="La Liga", best_seller=True),
    _product("fcb-away", "Barcelona Away 2026", 7999, ("XL", "XS"), team="Barcelona", league="La Liga", gender="women"),
    _product("ars-home", "Arsenal Home 2026", 6999, ("M", "3XL"), team="Arsenal", league="Premier League", version="player"),
    _product(
        "spain-player",
        "2026 Spain Player Version",
        9999,
        description="Madrid-made fabric",
        team="Spain",
        featured="true",
        bestSeller="true",
    ),
]


@pytest.fixture()
def products() -> list[Product]:
    return [Product.from_dict(raw) for raw in RAW_PRODUCTS]


class FakeCatalogClient:
    def __init__(self, products=None, error: Exception | None = None):
        self.products = products or []
        self.error = error

    async def list_products(self, limit: int = 100, offset: int = 0, collection_id=None):
        if self.error:
            raise self.error
        return list(self.products)

    async def get_product_by_handle(self, handle: str):
        if self.error:
            raise self.error
        return next((p for p in self.products if p.handle == handle), None)


def test_parse_filters_accepts_single_and_multiple_values() -> None:
    filters = parse_filters(
        {"league": ["La Liga", "Premier League"], "team": "Arsenal", "price_min": "50", "price_max": "-3"}
    )

    assert filters.leagues == {"La Liga", "Premier League"}
    assert filters.teams == {"Arsenal"}
    assert filters.min_price == Decimal("50")
    assert filters.max_price is None


def test_non_numeric_price_ignored() -> None:
    filters = parse_filters({"price_min": "cheap", "price_max": "NaN"})

    assert filters.min_price is None
    assert filters.max_price is None
    assert not has_active_filters(filters)


def test_apply_filters(products) -> None:
    by_league = apply_filters(products, CatalogFilters(leagues={"La Liga"}))
    by_size = apply_filters(products, CatalogFilters(sizes={"XL"}))
    by_price = apply_filters(products, CatalogFilters(min_price=Decimal("70"), max_price=Decimal("90")))
    by_gender = apply_filters(products, CatalogFilters(genders={"women"}))

    assert [p.handle for p in by_league] == ["rm-home", "fcb-away"]
    assert [p.handle for p in by_size] == ["fcb-away"]
    assert [p.handle for p in by_price] == ["rm-home", "fcb-away"]
    assert [p.handle for p in by_gender] == ["fcb-away"]


def test_build_query_round_trips_active_filters() -> None:
    filters = CatalogFilters(teams={"Barcelona", "Arsenal"}, max_price=Decimal("80"))

    query = build_query(filters)

    assert query == {"team": ["Arsenal", "Barcelona"], "price_max": "80"}
    assert parse_filters(query) == filters


def test_sizes_sorted_standard_first(products) -> None:
    assert collect_sizes(products) == ["XS", "S", "M", "L", "XL", "3XL"]


def test_short_query_returns_nothing(products) -> None:
    assert search_products(products, "r") == []
    assert search_products(products, "  ") == []


def test_search_scores_title_over_description(products) -> None:
    results = search_products(products, "madrid")

    assert [r.product.handle for r in results] == ["rm-home", "spain-player"]
    # phrase + title + team for the club, phrase + description for the national team
    assert results[0].relevance_score == 100 + 50 + 30
    assert results[1].relevance_score == 100 + 10


def test_search_respects_limit(products) -> None:
    assert len(search_products(products, "2026", limit=2)) == 2


def test_suggestions_come_from_best_sellers(products) -> None:
    assert search_suggestions(products) == ["Real Madrid Home 2026", "2026 Spain Player Version"]


def test_remove_duplicates_keeps_first(products) -> None:
    duplicate = Product.from_dict(dict(RAW_PRODUCTS[3], id="prod_dup"))
    unique = remove_duplicate_products(products + [duplicate], ["2026 spain player version "])

    assert [p.id for p in unique].count("prod_spain-player") == 1
    assert "prod_dup" not in [p.id for p in unique]


@pytest.mark.asyncio
async def test_catalog_falls_back_when_backend_fails(products) -> None:
    service = CatalogService(
        FakeCatalogClient(error=NetworkError("down")),
        StaticProductSource(products=RAW_PRODUCTS),
    )

    result = await service.get_all_products()

    assert len(result) == len(RAW_PRODUCTS)


@pytest.mark.asyncio
async def test_catalog_falls_back_when_backend_empty() -> None:
    service = CatalogService(FakeCatalogClient(), StaticProductSource(products=RAW_PRODUCTS[:1]))

    assert [p.handle for p in await service.get_all_products()] == ["rm-home"]


@pytest.mark.asyncio
async def test_catalog_prefers_backend(products) -> None:
    service = CatalogService(FakeCatalogClient(products[:2]), StaticProductSource(products=RAW_PRODUCTS))

    assert len(await service.get_all_products()) == 2
    assert [p.handle for p in await service.get_featured()] == []
    assert [p.handle for p in await service.get_best_sellers()] == ["rm-home"]


@pytest.mark.asyncio
async def test_product_by_handle_uses_fallback() -> None:
    service = CatalogService(FakeCatalogClient(), StaticProductSource(products=RAW_PRODUCTS))

    product = await service.get_product_by_handle("ars-home")

    assert product.title == "Arsenal Home 2026"
    assert await service.get_product_by_handle("unknown") is None


@pytest.mark.asyncio
async def test_browse_and_search(products) -> None:
    service = CatalogService(FakeCatalogClient(products))

    filtered, filters = await service.browse({"league": "Premier League"})
    results = await service.search("arsenal")

    assert [p.handle for p in filtered] == ["ars-home"]
    assert has_active_filters(filters)
    assert results[0].product.handle == "ars-home"
    assert await service.suggestions() == ["Real Madrid Home 2026", "2026 Spain Player Version"]


def test_static_source_reads_json_file(tmp_path) -> None:
    path = tmp_path / "products.json"
    path.write_text('{"products": [{"id": "p1", "handle": "h1", "title": "T1"}]}', encoding="utf-8")

    source = StaticProductSource(path=path)

    assert source._load()[0]["handle"] == "h1"
