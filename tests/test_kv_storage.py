from __future__ import annotations

from dataclasses import dataclass, field

import pytest

from storefront.integrations.kv_storage import MemoryKeyValueStorage, RedisKeyValueStorage, session_key


@dataclass
class FakeRedisClient:
    data: dict[str, str] = field(default_factory=dict)
    expiry: dict[str, int] = field(default_factory=dict)
    fail: bool = False

    def ping(self) -> bool:
        return True

    def get(self, key: str):
        if self.fail:
            raise ConnectionError("redis went away")
        return self.data.get(key)

    def setex(self, key: str, ttl: int, value: str) -> bool:
        self.data[key] = value
        self.expiry[key] = ttl
        return True

    def set(self, key: str, value: str) -> bool:
        if self.fail:
            raise ConnectionError("redis went away")
        self.data[key] = value
        return True

    def delete(self, key: str) -> int:
        existed = 1 if key in self.data else 0
        self.data.pop(key, None)
        return existed


@pytest.fixture
def fake_redis(monkeypatch):
    import storefront.integrations.kv_storage as kv_module

    client = FakeRedisClient()
    monkeypatch.setattr(kv_module.redis, "from_url", lambda *args, **kwargs: client)
    return client


def test_values_are_namespaced_and_shared(fake_redis) -> None:
    local_a = RedisKeyValueStorage("redis://fake", "storefront:local")
    local_b = RedisKeyValueStorage("redis://fake", "storefront:local")

    local_a.set(session_key("cart_id", "sess-1"), "cart_1")

    assert local_a.is_persistent
    assert fake_redis.data == {"storefront:local:cart_id:sess-1": "cart_1"}
    assert local_b.get("cart_id:sess-1") == "cart_1"


def test_default_ttl_applies_to_session_namespace(fake_redis) -> None:
    storage = RedisKeyValueStorage("redis://fake", "storefront:session", default_ttl=3600)

    storage.set("pending_payment_cart_id:sess-1", "cart_1")

    assert fake_redis.expiry["storefront:session:pending_payment_cart_id:sess-1"] == 3600


def test_delete_removes_value(fake_redis) -> None:
    storage = RedisKeyValueStorage("redis://fake", "ns")
    storage.set("k", "v")

    storage.delete("k")

    assert storage.get("k") is None


def test_missing_url_uses_memory() -> None:
    storage = RedisKeyValueStorage(None, "ns")

    storage.set("k", "v")

    assert not storage.is_persistent
    assert storage.get("k") == "v"


def test_unreachable_redis_falls_back_to_memory(monkeypatch) -> None:
    import storefront.integrations.kv_storage as kv_module

    def _refuse(*args, **kwargs):
        raise ConnectionError("connection refused")

    monkeypatch.setattr(kv_module.redis, "from_url", _refuse)

    storage = RedisKeyValueStorage("redis://down", "ns")
    storage.set("k", "v")

    assert not storage.is_persistent
    assert storage.get("k") == "v"


def test_runtime_failure_switches_to_memory(fake_redis) -> None:
    storage = RedisKeyValueStorage("redis://fake", "ns")
    fake_redis.fail = True

    storage.set("k", "v")

    assert not storage.is_persistent
    assert storage.get("k") == "v"


def test_memory_storage_expires_values(monkeypatch) -> None:
    import storefront.integrations.kv_storage as kv_module

    now = [1000.0]
    monkeypatch.setattr(kv_module.time, "time", lambda: now[0])
    storage = MemoryKeyValueStorage()

    storage.set("k", "v", ttl=60)
    assert storage.get("k") == "v"

    now[0] += 61
    assert storage.get("k") is None
