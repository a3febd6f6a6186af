"""
py-sudo-gate: elevated re-authentication sessions for destructive admin operations.

Sensitive requests from a principal without an elevated session are
deferred behind a password (and optional second factor) challenge, then
replayed once the principal has proven their identity again.
"""

__version__ = "0.1.0"

# Core identity exports
from sudo_gate.identity import (
    Identity,
    AnonymousIdentity,
    AuthenticatedIdentity,
    AuthMethod,
    get_identity,
    set_identity,
)
from sudo_gate.context import (
    RequestScope,
    get_scope,
    bind_scope,
    reset_scope,
)
from sudo_gate.domain import (
    Surface,
    PolicyTier,
    Rule,
    InteractiveMatcher,
    AsyncRpcMatcher,
    ApiMatcher,
    SudoGateError,
)
from sudo_gate.application import (
    SudoGateConfig,
    ActionRegistry,
    ElevatedSessionService,
    RequestStash,
    Gate,
    ChallengeFlow,
)

__all__ = [
    # Version
    "__version__",
    # Identity
    "Identity",
    "AnonymousIdentity",
    "AuthenticatedIdentity",
    "AuthMethod",
    "get_identity",
    "set_identity",
    # Request scope
    "RequestScope",
    "get_scope",
    "bind_scope",
    "reset_scope",
    # Domain
    "Surface",
    "PolicyTier",
    "Rule",
    "InteractiveMatcher",
    "AsyncRpcMatcher",
    "ApiMatcher",
    "SudoGateError",
    # Services
    "SudoGateConfig",
    "ActionRegistry",
    "ElevatedSessionService",
    "RequestStash",
    "Gate",
    "ChallengeFlow",
]
