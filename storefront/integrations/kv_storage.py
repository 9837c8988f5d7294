"""Key/value persistence for client-held identifiers.

The storefront persists exactly two strings per shopper session: the cart id
(long-lived, "local" namespace) and the pending payment cart id stashed
before a hosted payment redirect ("session" namespace, short TTL). Redis
backs both when configured; otherwise values live in process memory.
"""
from __future__ import annotations

import time
from typing import Protocol

import redis

from logging_config import logger


class KeyValueStorage(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str, ttl: int | None = None) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryKeyValueStorage:
    """In-process storage with optional per-key expiry."""

    def __init__(self) -> None:
        self._values: dict[str, str] = {}
        self._expires_at: dict[str, float] = {}

    def _expired(self, key: str) -> bool:
        deadline = self._expires_at.get(key)
        return deadline is not None and time.time() >= deadline

    def get(self, key: str) -> str | None:
        if self._expired(key):
            self.delete(key)
            return None
        return self._values.get(key)

    def set(self, key: str, value: str, ttl: int | None = None) -> None:
        self._values[key] = str(value)
        if ttl:
            self._expires_at[key] = time.time() + ttl
        else:
            self._expires_at.pop(key, None)

    def delete(self, key: str) -> None:
        self._values.pop(key, None)
        self._expires_at.pop(key, None)


class RedisKeyValueStorage:
    """Storage persisted in Redis with transparent in-memory fallback."""

    def __init__(self, redis_url: str | None, namespace: str, default_ttl: int | None = None):
        self._redis_url = redis_url
        self._namespace = namespace
        self._default_ttl = default_ttl
        self._memory = MemoryKeyValueStorage()
        self._client = self._init_client()

    @property
    def is_persistent(self) -> bool:
        return self._client is not None

    def _switch_to_memory_fallback(self, reason: Exception | str) -> None:
        logger.warning("Redis storage %s fallback to memory mode: %s", self._namespace, reason)
        self._client = None

    def _init_client(self):
        if not self._redis_url:
            logger.warning("REDIS_URL is not set; %s storage uses in-memory fallback", self._namespace)
            return None

        try:
            client = redis.from_url(
                self._redis_url,
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
            )
            client.ping()
            logger.info("Redis storage enabled for %s", self._namespace)
            return client
        except Exception as exc:
            logger.warning("Redis storage init failed, fallback to in-memory: %s", exc)
            return None

    def _key(self, key: str) -> str:
        return f"{self._namespace}:{key}"

    def get(self, key: str) -> str | None:
        if not self._client:
            return self._memory.get(key)
        try:
            value = self._client.get(self._key(key))
        except Exception as exc:
            self._switch_to_memory_fallback(exc)
            return self._memory.get(key)
        return str(value) if value is not None else None

    def set(self, key: str, value: str, ttl: int | None = None) -> None:
        ttl = ttl or self._default_ttl
        if self._client:
            try:
                if ttl:
                    self._client.setex(self._key(key), int(ttl), value)
                else:
                    self._client.set(self._key(key), value)
                return
            except Exception as exc:
                self._switch_to_memory_fallback(exc)
        self._memory.set(key, value, ttl)

    def delete(self, key: str) -> None:
        if self._client:
            try:
                self._client.delete(self._key(key))
            except Exception as exc:
                self._switch_to_memory_fallback(exc)
        self._memory.delete(key)


def session_key(name: str, session_id: str) -> str:
    """Storage key for a named value scoped to one shopper session."""
    return f"{name}:{session_id}"
