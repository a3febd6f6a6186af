"""Ports for the collaborators the gate consumes from its host."""

from sudo_gate.infrastructure.ports.stores import DurableStore, EphemeralStore
from sudo_gate.infrastructure.ports.principals import Principal, PrincipalDirectory
from sudo_gate.infrastructure.ports.audit import AuditSink
from sudo_gate.infrastructure.ports.second_factor import SecondFactorProvider

__all__ = [
    "DurableStore",
    "EphemeralStore",
    "Principal",
    "PrincipalDirectory",
    "AuditSink",
    "SecondFactorProvider",
]
