"""
Tests for the dependency-injector container.
"""

from unittest.mock import AsyncMock

import redis.asyncio as redis

from sudo_gate.application.config import SudoGateConfig
from sudo_gate.contrib.dependency_injector import (
    SudoGateContainer,
    build_registry,
    use_redis,
    use_settings,
)
from sudo_gate.infrastructure.adapters.stores import (
    InMemoryDurableStore,
    RedisDurableStore,
    RedisEphemeralStore,
)


def test_defaults_are_in_memory():
    container = SudoGateContainer()

    assert isinstance(container.durable_store(), InMemoryDurableStore)
    assert container.settings().session_duration_minutes == 15


def test_config_values_flow_into_services():
    container = SudoGateContainer()
    container.config.from_dict({"session_duration_minutes": 10, "grace_seconds": 30})

    session = container.session()

    assert session.config.session_duration_minutes == 10
    assert session.config.grace_seconds == 30


def test_services_share_singletons():
    container = SudoGateContainer()

    gate = container.gate()
    challenge = container.challenge()

    assert gate.session is container.session()
    assert challenge.stash is gate.stash
    assert gate.notices is container.ephemeral_store()


def test_use_settings():
    container = SudoGateContainer()
    settings = SudoGateConfig(token_secret="s", network_rules=True)

    use_settings(container, settings)

    assert container.gate().config is settings
    assert container.registry().find("network.site_delete") is not None


def test_build_registry_respects_network_flag():
    assert build_registry(SudoGateConfig()).find("network.site_delete") is None


def test_use_redis():
    container = SudoGateContainer()
    client = AsyncMock()

    use_redis(container, client, prefix="site1:")

    durable = container.durable_store()
    assert isinstance(durable, RedisDurableStore)
    assert durable._key("42", "k") == "site1:principal:42:k"
    assert isinstance(container.ephemeral_store(), RedisEphemeralStore)
    assert isinstance(container.session().durable, RedisDurableStore)


def test_use_redis_from_url():
    container = SudoGateContainer()

    use_redis(container, "redis://localhost:6379/0")

    durable = container.durable_store()
    assert isinstance(durable._redis, redis.Redis)
    assert container.ephemeral_store()._redis is durable._redis
