import json
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

import redis.asyncio as redis

from sudo_gate.clock import Clock, utcnow
from sudo_gate.infrastructure.ports.stores import DurableStore, EphemeralStore

logger = logging.getLogger("sudo_gate.infrastructure.adapters.stores")


class InMemoryDurableStore(DurableStore):
    """In-memory implementation of DurableStore for development and testing."""

    def __init__(self):
        # Key: (principal_id, key) -> serialized value
        self._data: Dict[tuple[str, str], str] = {}

    async def get(self, principal_id: str, key: str) -> Optional[dict[str, Any]]:
        raw = self._data.get((principal_id, key))
        return json.loads(raw) if raw is not None else None

    async def set(self, principal_id: str, key: str, value: dict[str, Any]) -> None:
        self._data[(principal_id, key)] = json.dumps(value)

    async def delete(self, principal_id: str, key: str) -> None:
        self._data.pop((principal_id, key), None)

    def keys_for(self, principal_id: str) -> list[str]:
        return [k for (p, k) in self._data if p == principal_id]


class InMemoryEphemeralStore(EphemeralStore):
    """
    In-memory TTL store for development and testing.

    Expiry is evaluated against the injected clock so tests can move time
    forward without waiting.
    """

    def __init__(self, clock: Clock = utcnow):
        # Key -> (serialized value, expiry)
        self._data: Dict[str, tuple[str, datetime]] = {}
        self._clock = clock

    async def get(self, key: str) -> Optional[dict[str, Any]]:
        entry = self._data.get(key)
        if not entry:
            return None

        raw, expires_at = entry
        if self._clock() < expires_at:
            return json.loads(raw)

        # Cleanup lazily
        del self._data[key]
        return None

    async def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        expires_at = self._clock() + timedelta(seconds=ttl_seconds)
        self._data[key] = (json.dumps(value), expires_at)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def cleanup_expired(self) -> int:
        now = self._clock()
        expired = [k for k, (_, expires_at) in self._data.items() if expires_at <= now]
        for k in expired:
            del self._data[k]
        if expired:
            logger.debug(f"Removed {len(expired)} expired ephemeral records")
        return len(expired)

    def __len__(self) -> int:
        return len(self._data)


class RedisDurableStore(DurableStore):
    """
    Redis implementation of DurableStore.

    Reads fail closed (absent). Writes and deletes raise.
    """

    def __init__(self, redis_client: redis.Redis, prefix: str = "sudo:principal:"):
        self._redis = redis_client
        self._prefix = prefix

    def _key(self, principal_id: str, key: str) -> str:
        return f"{self._prefix}{principal_id}:{key}"

    async def get(self, principal_id: str, key: str) -> Optional[dict[str, Any]]:
        try:
            raw = await self._redis.get(self._key(principal_id, key))
        except Exception as e:
            logger.warning(f"Failed to read {key} for principal {principal_id}: {e}")
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning(f"Discarding corrupt {key} record for principal {principal_id}")
            return None

    async def set(self, principal_id: str, key: str, value: dict[str, Any]) -> None:
        try:
            await self._redis.set(self._key(principal_id, key), json.dumps(value))
        except Exception as e:
            logger.error(f"Failed to write {key} for principal {principal_id}: {e}")
            raise

    async def delete(self, principal_id: str, key: str) -> None:
        try:
            await self._redis.delete(self._key(principal_id, key))
        except Exception as e:
            logger.error(f"Failed to delete {key} for principal {principal_id}: {e}")
            raise


class RedisEphemeralStore(EphemeralStore):
    """Redis implementation of EphemeralStore using SETEX for expiry."""

    def __init__(self, redis_client: redis.Redis, prefix: str = ""):
        self._redis = redis_client
        self._prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def get(self, key: str) -> Optional[dict[str, Any]]:
        try:
            raw = await self._redis.get(self._key(key))
        except Exception as e:
            logger.warning(f"Failed to read ephemeral record: {e}")
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Discarding corrupt ephemeral record")
            return None

    async def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        try:
            await self._redis.setex(self._key(key), ttl_seconds, json.dumps(value))
        except Exception as e:
            logger.error(f"Failed to write ephemeral record: {e}")
            raise

    async def delete(self, key: str) -> None:
        try:
            await self._redis.delete(self._key(key))
        except Exception as e:
            logger.error(f"Failed to delete ephemeral record: {e}")
            raise

    async def cleanup_expired(self) -> int:
        # Redis handles expiration automatically via TTL
        return 0
