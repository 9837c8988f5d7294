"""Integrations package - external systems the storefront talks to."""

from storefront.integrations.commerce_client import (
    CommerceClient,
    CompletionKind,
    CompletionResult,
)
from storefront.integrations.fallback_catalog import ProductSource, StaticProductSource
from storefront.integrations.kv_storage import (
    KeyValueStorage,
    MemoryKeyValueStorage,
    RedisKeyValueStorage,
)

__all__ = [
    "CommerceClient",
    "CompletionKind",
    "CompletionResult",
    "KeyValueStorage",
    "MemoryKeyValueStorage",
    "ProductSource",
    "RedisKeyValueStorage",
    "StaticProductSource",
]
