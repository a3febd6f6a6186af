"""
Result types of the gate services.

Every result carries the ``ResponseMutations`` (cookies to set or expire,
redirects) the transport adapter must apply; the services never write to a
response themselves.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, TYPE_CHECKING

from sudo_gate.domain.value_objects import ResponseMutations

if TYPE_CHECKING:
    from sudo_gate.domain.rules import Rule


# ═══════════════════════════════════════════════════════════════
# ACTIVATION
# ═══════════════════════════════════════════════════════════════


class ActivationCode(str, Enum):
    """Outcome of a password step."""

    SUCCESS = "success"
    TWO_FACTOR_PENDING = "2fa_pending"
    INVALID_PASSWORD = "invalid_password"
    LOCKED_OUT = "locked_out"
    NOT_ALLOWED = "not_allowed"


@dataclass
class ActivationResult:
    """
    Result of ``attempt_activation`` / ``activate``.

    Use factory methods to create instances.
    """

    code: ActivationCode
    expires_at: Optional[datetime] = None
    remaining: Optional[int] = None
    attempts: Optional[int] = None
    mutations: ResponseMutations = field(default_factory=ResponseMutations)

    @classmethod
    def success(cls, expires_at: datetime, mutations: ResponseMutations) -> ActivationResult:
        return cls(code=ActivationCode.SUCCESS, expires_at=expires_at, mutations=mutations)

    @classmethod
    def two_factor_pending(
        cls, expires_at: datetime, mutations: ResponseMutations
    ) -> ActivationResult:
        return cls(
            code=ActivationCode.TWO_FACTOR_PENDING,
            expires_at=expires_at,
            mutations=mutations,
        )

    @classmethod
    def invalid_password(cls, attempts: int) -> ActivationResult:
        return cls(code=ActivationCode.INVALID_PASSWORD, attempts=attempts)

    @classmethod
    def locked_out(cls, remaining: int) -> ActivationResult:
        return cls(code=ActivationCode.LOCKED_OUT, remaining=remaining)

    @classmethod
    def not_allowed(cls) -> ActivationResult:
        return cls(code=ActivationCode.NOT_ALLOWED)

    @property
    def is_success(self) -> bool:
        return self.code == ActivationCode.SUCCESS

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"code": self.code.value}
        if self.expires_at is not None:
            data["expires_at"] = self.expires_at.isoformat()
        if self.remaining is not None:
            data["remaining"] = self.remaining
        return data


# ═══════════════════════════════════════════════════════════════
# GATE DECISIONS
# ═══════════════════════════════════════════════════════════════


class DecisionKind(str, Enum):
    PASS = "pass"
    CHALLENGE = "challenge"  # stash + redirect to the challenge
    SOFT_BLOCK = "soft_block"  # structured "elevation required" error
    POLICY_BLOCK = "policy_block"  # refused by surface policy


@dataclass
class GateDecision:
    """What the transport adapter must do with an intercepted request."""

    kind: DecisionKind
    rule: Optional[Rule] = None
    status_code: int = 200
    body: Optional[dict[str, Any]] = None
    redirect_url: Optional[str] = None
    stash_key: Optional[str] = None

    @classmethod
    def proceed(cls, rule: Optional[Rule] = None) -> GateDecision:
        return cls(kind=DecisionKind.PASS, rule=rule)

    @classmethod
    def challenge(cls, rule: Rule, redirect_url: str, stash_key: str) -> GateDecision:
        return cls(
            kind=DecisionKind.CHALLENGE,
            rule=rule,
            status_code=302,
            redirect_url=redirect_url,
            stash_key=stash_key,
        )

    @classmethod
    def soft_block(cls, rule: Rule, message: str, status_code: int) -> GateDecision:
        return cls(
            kind=DecisionKind.SOFT_BLOCK,
            rule=rule,
            status_code=status_code,
            body={"code": "sudo_required", "rule_id": rule.id, "message": message},
        )

    @classmethod
    def policy_block(cls, rule: Optional[Rule], code: str, message: str) -> GateDecision:
        return cls(
            kind=DecisionKind.POLICY_BLOCK,
            rule=rule,
            status_code=403,
            body={"code": code, "message": message},
        )

    @property
    def allowed(self) -> bool:
        return self.kind == DecisionKind.PASS


# ═══════════════════════════════════════════════════════════════
# CHALLENGE / REPLAY
# ═══════════════════════════════════════════════════════════════


def flatten_fields(data: Any, prefix: str = "") -> list[tuple[str, str]]:
    """
    Flatten nested form data into bracketed field names.

    ``{"a": {"b": ["x", "y"]}}`` becomes ``[("a[b][0]", "x"), ("a[b][1]", "y")]``,
    the encoding form parsers use to rebuild the same structure. An empty
    nested container is kept as a single blank field so its key survives.
    """
    if prefix and isinstance(data, (dict, list, tuple)) and not data:
        return [(prefix, "")]
    if isinstance(data, dict):
        items = list(data.items())
    elif isinstance(data, (list, tuple)):
        items = list(enumerate(data))
    else:
        return [(prefix, "" if data is None else str(data))]

    fields_: list[tuple[str, str]] = []
    for key, value in items:
        name = f"{prefix}[{key}]" if prefix else str(key)
        if name.endswith("[]") and isinstance(value, (list, tuple)):
            # Repeated "name[]" fields stay repeated
            fields_.extend((name, "" if v is None else str(v)) for v in value or [None])
            continue
        fields_.extend(flatten_fields(value, name))
    return fields_


@dataclass
class ReplayInstruction:
    """
    A stashed request ready to be re-issued.

    GET requests replay as a redirect to ``url``; anything else replays as
    a self-submitting form carrying ``body`` verbatim.
    """

    rule_id: str
    method: str
    url: str
    body: dict[str, Any] = field(default_factory=dict)

    @property
    def is_redirect(self) -> bool:
        return self.method.upper() in ("GET", "HEAD")

    @property
    def fields(self) -> list[tuple[str, str]]:
        return flatten_fields(self.body)


class ChallengeStatus(str, Enum):
    COMPLETE = "complete"
    TWO_FACTOR_REQUIRED = "2fa_required"


@dataclass
class ChallengeOutcome:
    """Successful step of the challenge flow. Failures raise domain errors."""

    status: ChallengeStatus
    redirect_url: Optional[str] = None
    replay: Optional[ReplayInstruction] = None
    expires_at: Optional[datetime] = None
    mutations: ResponseMutations = field(default_factory=ResponseMutations)

    @property
    def is_complete(self) -> bool:
        return self.status == ChallengeStatus.COMPLETE

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"code": self.status.value}
        if self.expires_at is not None:
            data["expires_at"] = self.expires_at.isoformat()
        if self.replay is not None:
            data["replay"] = {
                "method": self.replay.method,
                "url": self.replay.url,
                "fields": self.replay.fields,
            }
        elif self.redirect_url:
            data["redirect"] = self.redirect_url
        return data
