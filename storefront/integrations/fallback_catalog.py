"""Secondary read-only product source used while the catalog migrates."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Protocol

from logging_config import logger
from storefront.domain.entities import Product


class ProductSource(Protocol):
    async def list_products(self) -> list[Product]: ...


class StaticProductSource:
    """Serves products from an exported JSON file or an in-memory list.

    Accepts either a list of products or {"products": [...]} in the backend's
    store API shape.
    """

    def __init__(self, products: list[dict[str, Any]] | None = None, path: str | Path | None = None):
        self._raw = products
        self._path = Path(path) if path else None

    def _load(self) -> list[dict[str, Any]]:
        if self._raw is not None:
            return self._raw
        if not self._path or not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.error(f"Fallback catalog {self._path} unreadable: {e}")
            return []
        items = data if isinstance(data, list) else data.get("products", [])
        self._raw = [item for item in items if isinstance(item, dict)]
        return self._raw

    async def list_products(self) -> list[Product]:
        return [Product.from_dict(item) for item in self._load()]
