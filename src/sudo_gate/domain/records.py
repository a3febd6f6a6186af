"""
Persisted state of the gate.

Each record serialises to a plain JSON-safe dict (``to_dict``) and back
(``from_dict``) so any key/value store can hold it. Timestamps are stored
as ISO-8601 strings in UTC.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional


def _dump(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _load(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class ElevationRecord:
    """
    The elevated session of one principal.

    Only the hash of the binding token is kept; the token itself lives in
    the principal's browser cookie.
    """

    expires_at: datetime
    token_hash: str

    def is_active(self, now: datetime) -> bool:
        return now < self.expires_at

    def is_within_grace(self, now: datetime, grace_seconds: int) -> bool:
        return (
            self.expires_at < now
            and (now - self.expires_at).total_seconds() <= grace_seconds
        )

    def is_past_grace(self, now: datetime, grace_seconds: int) -> bool:
        return (now - self.expires_at).total_seconds() > grace_seconds

    def remaining_seconds(self, now: datetime) -> int:
        return max(0, int((self.expires_at - now).total_seconds()))

    def to_dict(self) -> dict[str, Any]:
        return {"expires_at": _dump(self.expires_at), "token_hash": self.token_hash}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ElevationRecord":
        return cls(expires_at=_load(data["expires_at"]), token_hash=data["token_hash"])


@dataclass
class LockoutRecord:
    """Failed re-authentication counter, independent of elevation."""

    failed_attempts: int = 0
    lockout_until: Optional[datetime] = None

    def is_locked(self, now: datetime) -> bool:
        return self.lockout_until is not None and now < self.lockout_until

    def remaining_seconds(self, now: datetime) -> int:
        if self.lockout_until is None:
            return 0
        return max(0, int((self.lockout_until - now).total_seconds()))

    def to_dict(self) -> dict[str, Any]:
        return {
            "failed_attempts": self.failed_attempts,
            "lockout_until": _dump(self.lockout_until),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LockoutRecord":
        return cls(
            failed_attempts=int(data.get("failed_attempts", 0)),
            lockout_until=_load(data.get("lockout_until")),
        )


@dataclass
class TwoFactorPending:
    """
    Password step passed, second factor outstanding.

    Keyed in the ephemeral store by the hash of a browser-bound nonce,
    never by principal id.
    """

    principal_id: str
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def to_dict(self) -> dict[str, Any]:
        return {"principal_id": self.principal_id, "expires_at": _dump(self.expires_at)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TwoFactorPending":
        return cls(
            principal_id=str(data["principal_id"]),
            expires_at=_load(data["expires_at"]),
        )


@dataclass
class StashedRequest:
    """
    An intercepted request waiting for the principal to re-authenticate.

    Query and body parameters are stored exactly as received.
    """

    key: str
    principal_id: str
    rule_id: str
    label: str
    method: str
    url: str
    query_params: dict[str, Any] = field(default_factory=dict)
    body_params: dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None

    @property
    def is_get(self) -> bool:
        return self.method.upper() in ("GET", "HEAD")

    def to_dict(self) -> dict[str, Any]:
        return {
            "principal_id": self.principal_id,
            "rule_id": self.rule_id,
            "label": self.label,
            "method": self.method,
            "url": self.url,
            "query_params": self.query_params,
            "body_params": self.body_params,
            "created_at": _dump(self.created_at),
        }

    @classmethod
    def from_dict(cls, key: str, data: dict[str, Any]) -> "StashedRequest":
        return cls(
            key=key,
            principal_id=str(data["principal_id"]),
            rule_id=data["rule_id"],
            label=data.get("label", ""),
            method=data.get("method", "GET"),
            url=data.get("url", ""),
            query_params=data.get("query_params") or {},
            body_params=data.get("body_params") or {},
            created_at=_load(data.get("created_at")),
        )
