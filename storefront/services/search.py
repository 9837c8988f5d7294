"""In-memory product search with weighted relevance."""
from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from storefront.core.constants import (
    DEFAULT_SEARCH_LIMIT,
    DEFAULT_SUGGESTION_LIMIT,
    MIN_SEARCH_QUERY_LENGTH,
)
from storefront.domain.entities import Product

PHRASE_SCORE = 100
TITLE_SCORE = 50
TEAM_SCORE = 30
LEAGUE_SCORE = 20
DESCRIPTION_SCORE = 10


@dataclass(frozen=True)
class SearchResult:
    product: Product
    relevance_score: int


def _searchable_text(product: Product) -> str:
    parts = [product.title, product.description, product.team, product.league, product.season]
    return " ".join(str(part) for part in parts if part).lower()


def score_product(product: Product, phrase: str, words: list[str]) -> int:
    score = PHRASE_SCORE if phrase in _searchable_text(product) else 0
    title = product.title.lower()
    team = (product.team or "").lower()
    league = (product.league or "").lower()
    description = product.description.lower()
    for word in words:
        if word in title:
            score += TITLE_SCORE
        if team and word in team:
            score += TEAM_SCORE
        if league and word in league:
            score += LEAGUE_SCORE
        if word in description:
            score += DESCRIPTION_SCORE
    return score


def search_products(
    products: Iterable[Product], query: str | None, limit: int = DEFAULT_SEARCH_LIMIT
) -> list[SearchResult]:
    phrase = (query or "").strip().lower()
    if len(phrase) < MIN_SEARCH_QUERY_LENGTH:
        return []
    words = phrase.split()

    results = []
    for product in products:
        score = score_product(product, phrase, words)
        if score > 0:
            results.append(SearchResult(product, score))

    # stable sort keeps catalog order among equal scores
    results.sort(key=lambda result: result.relevance_score, reverse=True)
    return results[:limit]


def search_suggestions(products: Iterable[Product], limit: int = DEFAULT_SUGGESTION_LIMIT) -> list[str]:
    """Titles of best sellers, offered before the shopper types."""
    return [product.title for product in products if product.best_seller and product.title][:limit]
