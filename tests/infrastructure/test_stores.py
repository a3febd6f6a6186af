"""
Tests for the durable and ephemeral store adapters.
"""

import json
from unittest.mock import AsyncMock

import pytest

from sudo_gate.infrastructure.adapters.stores import (
    InMemoryDurableStore,
    InMemoryEphemeralStore,
    RedisDurableStore,
    RedisEphemeralStore,
)
from sudo_gate.infrastructure.ports.stores import DurableStore, EphemeralStore


@pytest.fixture
def mock_redis():
    return AsyncMock()


# -----------------------------------------------------------------------------
# IN-MEMORY
# -----------------------------------------------------------------------------


def test_adapters_satisfy_ports(mock_redis):
    assert isinstance(InMemoryDurableStore(), DurableStore)
    assert isinstance(RedisDurableStore(mock_redis), DurableStore)
    assert isinstance(InMemoryEphemeralStore(), EphemeralStore)
    assert isinstance(RedisEphemeralStore(mock_redis), EphemeralStore)


@pytest.mark.asyncio
async def test_in_memory_durable_roundtrip():
    store = InMemoryDurableStore()

    await store.set("42", "sudo_session", {"a": 1})
    assert await store.get("42", "sudo_session") == {"a": 1}
    assert await store.get("7", "sudo_session") is None

    await store.delete("42", "sudo_session")
    await store.delete("42", "sudo_session")
    assert await store.get("42", "sudo_session") is None


@pytest.mark.asyncio
async def test_in_memory_durable_returns_copies():
    store = InMemoryDurableStore()
    await store.set("42", "k", {"nested": {"x": 1}})

    value = await store.get("42", "k")
    value["nested"]["x"] = 2

    assert await store.get("42", "k") == {"nested": {"x": 1}}


@pytest.mark.asyncio
async def test_in_memory_ephemeral_ttl(clock):
    store = InMemoryEphemeralStore(clock=clock)
    await store.set("k", {"v": 1}, 10)

    clock.advance(9)
    assert await store.get("k") == {"v": 1}

    clock.advance(1)
    assert await store.get("k") is None
    assert len(store) == 0


@pytest.mark.asyncio
async def test_in_memory_ephemeral_cleanup(clock):
    store = InMemoryEphemeralStore(clock=clock)
    await store.set("short", {}, 5)
    await store.set("long", {}, 60)

    clock.advance(5)

    assert await store.cleanup_expired() == 1
    assert len(store) == 1
    assert await store.get("long") == {}


# -----------------------------------------------------------------------------
# REDIS
# -----------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_redis_durable_set_and_get(mock_redis):
    store = RedisDurableStore(mock_redis)

    await store.set("42", "sudo_session", {"token_hash": "abc"})

    key, value = mock_redis.set.call_args[0]
    assert key == "sudo:principal:42:sudo_session"
    assert json.loads(value) == {"token_hash": "abc"}

    mock_redis.get.return_value = value
    assert await store.get("42", "sudo_session") == {"token_hash": "abc"}


@pytest.mark.asyncio
async def test_redis_durable_miss(mock_redis):
    mock_redis.get.return_value = None
    assert await RedisDurableStore(mock_redis).get("42", "k") is None


@pytest.mark.asyncio
async def test_redis_durable_read_failure_reads_as_absent(mock_redis):
    mock_redis.get.side_effect = ConnectionError("down")
    assert await RedisDurableStore(mock_redis).get("42", "k") is None


@pytest.mark.asyncio
async def test_redis_durable_corrupt_value(mock_redis):
    mock_redis.get.return_value = "{not json"
    assert await RedisDurableStore(mock_redis).get("42", "k") is None


@pytest.mark.asyncio
async def test_redis_durable_write_failure_raises(mock_redis):
    mock_redis.set.side_effect = ConnectionError("down")
    mock_redis.delete.side_effect = ConnectionError("down")
    store = RedisDurableStore(mock_redis)

    with pytest.raises(ConnectionError):
        await store.set("42", "k", {})
    with pytest.raises(ConnectionError):
        await store.delete("42", "k")


@pytest.mark.asyncio
async def test_redis_ephemeral_uses_setex(mock_redis):
    store = RedisEphemeralStore(mock_redis, prefix="site1:")

    await store.set("sudo:stash:abc", {"rule_id": "plugin.delete"}, 300)

    key, ttl, value = mock_redis.setex.call_args[0]
    assert key == "site1:sudo:stash:abc"
    assert ttl == 300
    assert json.loads(value) == {"rule_id": "plugin.delete"}


@pytest.mark.asyncio
async def test_redis_ephemeral_get_and_delete(mock_redis):
    store = RedisEphemeralStore(mock_redis)
    mock_redis.get.return_value = json.dumps({"x": 1})

    assert await store.get("k") == {"x": 1}
    await store.delete("k")

    mock_redis.delete.assert_awaited_once_with("k")
    assert await store.cleanup_expired() == 0


@pytest.mark.asyncio
async def test_redis_ephemeral_failures(mock_redis):
    mock_redis.get.side_effect = ConnectionError("down")
    mock_redis.setex.side_effect = ConnectionError("down")
    store = RedisEphemeralStore(mock_redis)

    assert await store.get("k") is None
    with pytest.raises(ConnectionError):
        await store.set("k", {}, 60)
