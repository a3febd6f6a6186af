"""
Audit events for the sudo gate.

Events are immutable records of things that happened: a session was
elevated, a re-authentication failed, a sensitive action was gated or
blocked. They are handed to the ``AuditSink`` port fire-and-forget.
"""

import uuid
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, ClassVar, Optional


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, kw_only=True)
class AuditEvent:
    """Base class for all audit events."""

    name: ClassVar[str] = "sudo.event"

    principal_id: str
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = field(default_factory=_utcnow)

    def payload(self) -> dict[str, Any]:
        """Event-specific fields, JSON-safe."""
        data = {}
        for f in fields(self):
            if f.name in ("event_id", "occurred_at"):
                continue
            value = getattr(self, f.name)
            if isinstance(value, datetime):
                value = value.isoformat()
            elif hasattr(value, "value"):
                value = value.value
            data[f.name] = value
        return data

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "event_id": self.event_id,
            "occurred_at": self.occurred_at.isoformat(),
            "payload": self.payload(),
        }


# ═══════════════════════════════════════════════════════════════
# SESSION LIFECYCLE
# ═══════════════════════════════════════════════════════════════


@dataclass(frozen=True, kw_only=True)
class SessionActivated(AuditEvent):
    """Raised when a principal enters an elevated session."""

    name: ClassVar[str] = "sudo.activated"

    expires_at: datetime
    duration_seconds: int


@dataclass(frozen=True, kw_only=True)
class SessionDeactivated(AuditEvent):
    """Raised when an elevated session is ended explicitly."""

    name: ClassVar[str] = "sudo.deactivated"

    reason: str = "manual"


@dataclass(frozen=True, kw_only=True)
class ReauthFailed(AuditEvent):
    """Raised on every wrong password submitted to the challenge."""

    name: ClassVar[str] = "sudo.reauth_failed"

    attempts: int


@dataclass(frozen=True, kw_only=True)
class LockoutTriggered(AuditEvent):
    name: ClassVar[str] = "sudo.lockout"

    attempts: int
    lockout_until: datetime


@dataclass(frozen=True, kw_only=True)
class TwoFactorRequested(AuditEvent):
    name: ClassVar[str] = "sudo.two_factor_pending"

    expires_at: datetime


# ═══════════════════════════════════════════════════════════════
# GATED ACTIONS
# ═══════════════════════════════════════════════════════════════


@dataclass(frozen=True, kw_only=True)
class ActionGated(AuditEvent):
    """A sensitive action was intercepted and the principal challenged."""

    name: ClassVar[str] = "sudo.action_gated"

    rule_id: str
    surface: str


@dataclass(frozen=True, kw_only=True)
class ActionBlocked(AuditEvent):
    """A sensitive action was refused by surface policy."""

    name: ClassVar[str] = "sudo.action_blocked"

    rule_id: str
    surface: str
    tier: Optional[str] = None


@dataclass(frozen=True, kw_only=True)
class ActionAllowed(AuditEvent):
    """A sensitive action passed because its surface is unrestricted."""

    name: ClassVar[str] = "sudo.action_allowed"

    rule_id: str
    surface: str


@dataclass(frozen=True, kw_only=True)
class ActionReplayed(AuditEvent):
    name: ClassVar[str] = "sudo.action_replayed"

    rule_id: str
    method: str
