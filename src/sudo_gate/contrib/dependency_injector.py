"""
Dependency Injector integration for sudo-gate.

Provides an IoC container with the gate services pre-wired to in-memory
adapters. Host applications override the ports they implement themselves.

Usage:
    from sudo_gate.contrib.dependency_injector import SudoGateContainer

    container = SudoGateContainer()
    container.config.from_dict({"session_duration_minutes": 10})
    container.principals.override(providers.Singleton(MyUserDirectory))
    gate = container.gate()
"""

from typing import Union

import redis.asyncio as redis
from dependency_injector import containers, providers

from sudo_gate.application.challenge import ChallengeFlow
from sudo_gate.application.config import SudoGateConfig
from sudo_gate.application.default_rules import default_rules
from sudo_gate.application.gate import Gate
from sudo_gate.application.registry import ActionRegistry
from sudo_gate.application.session import ElevatedSessionService
from sudo_gate.application.stash import RequestStash
from sudo_gate.clock import sleep, utcnow
from sudo_gate.infrastructure.adapters.audit import LoggingAuditSink
from sudo_gate.infrastructure.adapters.principals import InMemoryPrincipalDirectory
from sudo_gate.infrastructure.adapters.second_factor import (
    InMemoryTOTPSecretStore,
    TOTPSecondFactorProvider,
)
from sudo_gate.infrastructure.adapters.stores import (
    InMemoryDurableStore,
    InMemoryEphemeralStore,
    RedisDurableStore,
    RedisEphemeralStore,
)


def build_registry(settings: SudoGateConfig) -> ActionRegistry:
    """Registry seeded with the built-in rules for the given settings."""
    return ActionRegistry(
        default_rules(settings.critical_options, include_network=settings.network_rules)
    )


class SudoGateContainer(containers.DeclarativeContainer):
    """
    IoC Container for the sudo gate.

    Ports (override with host implementations):
    - durable_store: DurableStore (default: InMemoryDurableStore)
    - ephemeral_store: EphemeralStore (default: InMemoryEphemeralStore)
    - principals: PrincipalDirectory (default: InMemoryPrincipalDirectory)
    - second_factor: SecondFactorProvider (default: TOTP with in-memory secrets)
    - audit_sink: AuditSink (default: LoggingAuditSink)

    Config (``config.*``): any ``SudoGateConfig`` field.
    """

    config = providers.Configuration()

    settings = providers.Singleton(SudoGateConfig.from_dict, config)

    clock = providers.Object(utcnow)
    sleeper = providers.Object(sleep)

    # ═══════════════════════════════════════════════════════════════
    # DEFAULT ADAPTERS (can be overridden)
    # ═══════════════════════════════════════════════════════════════

    durable_store = providers.Singleton(InMemoryDurableStore)

    ephemeral_store = providers.Singleton(InMemoryEphemeralStore, clock=clock)

    principals = providers.Singleton(InMemoryPrincipalDirectory)

    totp_secrets = providers.Singleton(InMemoryTOTPSecretStore)

    second_factor = providers.Singleton(TOTPSecondFactorProvider, secrets=totp_secrets)

    audit_sink = providers.Singleton(LoggingAuditSink)

    # ═══════════════════════════════════════════════════════════════
    # SERVICES
    # ═══════════════════════════════════════════════════════════════

    registry = providers.Singleton(build_registry, settings)

    session = providers.Singleton(
        ElevatedSessionService,
        durable=durable_store,
        ephemeral=ephemeral_store,
        principals=principals,
        second_factor=second_factor,
        audit=audit_sink,
        config=settings,
        clock=clock,
        sleeper=sleeper,
    )

    stash = providers.Singleton(
        RequestStash,
        store=ephemeral_store,
        config=settings,
        clock=clock,
    )

    gate = providers.Singleton(
        Gate,
        registry=registry,
        session=session,
        stash=stash,
        notices=ephemeral_store,
        audit=audit_sink,
        config=settings,
    )

    challenge = providers.Singleton(
        ChallengeFlow,
        session=session,
        stash=stash,
        audit=audit_sink,
        config=settings,
    )


def use_settings(container: SudoGateContainer, settings: SudoGateConfig) -> None:
    """Use an already-built config object instead of ``config.*`` values."""
    container.settings.override(providers.Object(settings))


def use_redis(
    container: SudoGateContainer,
    redis_client: Union[redis.Redis, str],
    prefix: str = "sudo:",
) -> None:
    """
    Switch both stores to Redis.

    ``redis_client`` is an async client or a connection URL.

    Usage:
        use_redis(container, "redis://localhost:6379/0")
    """
    if isinstance(redis_client, str):
        redis_client = redis.from_url(redis_client, decode_responses=True)
    container.durable_store.override(
        providers.Singleton(
            RedisDurableStore, redis_client=redis_client, prefix=f"{prefix}principal:"
        )
    )
    container.ephemeral_store.override(
        providers.Singleton(RedisEphemeralStore, redis_client=redis_client)
    )
