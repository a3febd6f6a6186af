"""Adapters implementing the gate's ports."""

from sudo_gate.infrastructure.adapters.stores import (
    InMemoryDurableStore,
    InMemoryEphemeralStore,
    RedisDurableStore,
    RedisEphemeralStore,
)
from sudo_gate.infrastructure.adapters.principals import (
    InMemoryPrincipalDirectory,
    hash_password,
    check_password,
)
from sudo_gate.infrastructure.adapters.second_factor import (
    InMemoryTOTPSecretStore,
    TOTPSecondFactorProvider,
    NoSecondFactorProvider,
)
from sudo_gate.infrastructure.adapters.audit import (
    LoggingAuditSink,
    DispatchingAuditSink,
)

__all__ = [
    "InMemoryDurableStore",
    "InMemoryEphemeralStore",
    "RedisDurableStore",
    "RedisEphemeralStore",
    "InMemoryPrincipalDirectory",
    "hash_password",
    "check_password",
    "InMemoryTOTPSecretStore",
    "TOTPSecondFactorProvider",
    "NoSecondFactorProvider",
    "LoggingAuditSink",
    "DispatchingAuditSink",
]
