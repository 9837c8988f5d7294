"""Catalog filters parsed from query parameters and applied in memory."""
from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any

from storefront.core.constants import SIZE_ORDER
from storefront.domain.entities import Product

QueryValue = str | list[str] | tuple[str, ...] | None


@dataclass
class CatalogFilters:
    leagues: set[str] = field(default_factory=set)
    teams: set[str] = field(default_factory=set)
    sizes: set[str] = field(default_factory=set)
    genders: set[str] = field(default_factory=set)
    versions: set[str] = field(default_factory=set)
    min_price: Decimal | None = None
    max_price: Decimal | None = None


def _values(raw: QueryValue) -> list[str]:
    if raw is None:
        return []
    items = [raw] if isinstance(raw, str) else list(raw)
    return [item.strip() for item in items if item and item.strip()]


def _price(raw: QueryValue) -> Decimal | None:
    values = _values(raw)
    if not values:
        return None
    try:
        price = Decimal(values[0])
    except InvalidOperation:
        return None
    if not price.is_finite() or price < 0:
        return None
    return price


def parse_filters(query: Mapping[str, Any]) -> CatalogFilters:
    """Build filters from multi-valued query params; unusable prices are ignored."""
    return CatalogFilters(
        leagues=set(_values(query.get("league"))),
        teams=set(_values(query.get("team"))),
        sizes=set(_values(query.get("size"))),
        genders=set(_values(query.get("gender"))),
        versions=set(_values(query.get("version"))),
        min_price=_price(query.get("price_min")),
        max_price=_price(query.get("price_max")),
    )


def _has_size(product: Product, sizes: set[str]) -> bool:
    return any(variant.size in sizes for variant in product.variants if variant.size)


def apply_filters(products: Iterable[Product], filters: CatalogFilters) -> list[Product]:
    filtered = list(products)

    if filters.leagues:
        filtered = [p for p in filtered if p.league and p.league in filters.leagues]
    if filters.teams:
        filtered = [p for p in filtered if p.team and p.team in filters.teams]
    if filters.sizes:
        filtered = [p for p in filtered if _has_size(p, filters.sizes)]
    if filters.genders:
        filtered = [p for p in filtered if p.gender and p.gender in filters.genders]
    if filters.versions:
        filtered = [p for p in filtered if p.version and p.version in filters.versions]
    if filters.min_price is not None:
        filtered = [p for p in filtered if p.price >= filters.min_price]
    if filters.max_price is not None:
        filtered = [p for p in filtered if p.price <= filters.max_price]

    return filtered


def build_query(filters: CatalogFilters) -> dict[str, list[str] | str]:
    """Inverse of parse_filters, with sorted values for stable URLs."""
    params: dict[str, list[str] | str] = {}
    for name, values in (
        ("league", filters.leagues),
        ("team", filters.teams),
        ("size", filters.sizes),
        ("gender", filters.genders),
        ("version", filters.versions),
    ):
        if values:
            params[name] = sorted(values)
    if filters.min_price is not None:
        params["price_min"] = str(filters.min_price)
    if filters.max_price is not None:
        params["price_max"] = str(filters.max_price)
    return params


def has_active_filters(filters: CatalogFilters) -> bool:
    return bool(
        filters.leagues
        or filters.teams
        or filters.sizes
        or filters.genders
        or filters.versions
        or filters.min_price is not None
        or filters.max_price is not None
    )


def _size_sort_key(size: str) -> tuple[int, str]:
    if size in SIZE_ORDER:
        return (SIZE_ORDER.index(size), "")
    return (len(SIZE_ORDER), size)


def collect_sizes(products: Iterable[Product]) -> list[str]:
    """Every size offered, standard sizes first (XS..XXL) then the rest alphabetically."""
    sizes = {variant.size for product in products for variant in product.variants if variant.size}
    return sorted(sizes, key=_size_sort_key)
