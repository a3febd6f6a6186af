"""Domain layer for the sudo gate."""

from sudo_gate.domain.value_objects import (
    Surface,
    PolicyTier,
    RuntimeContext,
    InboundRequest,
    RequestPredicate,
    CookieInstruction,
    ResponseMutations,
)
from sudo_gate.domain.rules import (
    ANY_METHOD,
    Rule,
    InteractiveMatcher,
    AsyncRpcMatcher,
    ApiMatcher,
)
from sudo_gate.domain.records import (
    ElevationRecord,
    LockoutRecord,
    TwoFactorPending,
    StashedRequest,
)
from sudo_gate.domain.events import (
    AuditEvent,
    SessionActivated,
    SessionDeactivated,
    ReauthFailed,
    LockoutTriggered,
    TwoFactorRequested,
    ActionGated,
    ActionBlocked,
    ActionAllowed,
    ActionReplayed,
)
from sudo_gate.domain.errors import (
    SudoGateError,
    InvalidPasswordError,
    LockedOutError,
    ChallengeExpiredError,
    InvalidSecondFactorError,
    NotAllowedError,
    ElevationRequiredError,
    PolicyBlockedError,
    SurfaceDisabledError,
    DuplicateRuleError,
    RegistryFrozenError,
)

__all__ = [
    # Value Objects
    "Surface",
    "PolicyTier",
    "RuntimeContext",
    "InboundRequest",
    "RequestPredicate",
    "CookieInstruction",
    "ResponseMutations",
    # Rules
    "ANY_METHOD",
    "Rule",
    "InteractiveMatcher",
    "AsyncRpcMatcher",
    "ApiMatcher",
    # Records
    "ElevationRecord",
    "LockoutRecord",
    "TwoFactorPending",
    "StashedRequest",
    # Events
    "AuditEvent",
    "SessionActivated",
    "SessionDeactivated",
    "ReauthFailed",
    "LockoutTriggered",
    "TwoFactorRequested",
    "ActionGated",
    "ActionBlocked",
    "ActionAllowed",
    "ActionReplayed",
    # Errors
    "SudoGateError",
    "InvalidPasswordError",
    "LockedOutError",
    "ChallengeExpiredError",
    "InvalidSecondFactorError",
    "NotAllowedError",
    "ElevationRequiredError",
    "PolicyBlockedError",
    "SurfaceDisabledError",
    "DuplicateRuleError",
    "RegistryFrozenError",
]
