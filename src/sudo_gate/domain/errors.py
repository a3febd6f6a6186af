"""
Domain errors for the sudo gate.

These errors give transport adapters one consistent thing to map to a
response: a stable ``code``, a human-readable ``message`` and optional
``details`` (never containing secrets).
"""

from typing import Any, Optional


class SudoGateError(Exception):
    """Base class for all sudo gate errors."""

    status_code = 400

    def __init__(
        self,
        message: str,
        code: str = "sudo_error",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, **self.details}


# ═══════════════════════════════════════════════════════════════
# RE-AUTHENTICATION
# ═══════════════════════════════════════════════════════════════


class InvalidPasswordError(SudoGateError):
    """Wrong password. Never says whether the principal exists."""

    status_code = 401

    def __init__(self, message: str = "Incorrect password. Please try again."):
        super().__init__(message, "invalid_password")


class LockedOutError(SudoGateError):
    """Too many failed attempts; carries the seconds left for a countdown."""

    status_code = 429

    def __init__(self, remaining: int, message: Optional[str] = None):
        super().__init__(
            message
            or f"Too many failed attempts. Try again in {remaining} seconds.",
            "locked_out",
            {"remaining": remaining},
        )
        self.remaining = remaining


class ChallengeExpiredError(SudoGateError):
    """
    The challenge can no longer be resumed.

    Raised for a missing or foreign stash, or a missing, foreign or expired
    two-factor pending record. The principal has to start over from the
    password step.
    """

    status_code = 403

    def __init__(
        self,
        message: str = "Your verification session has expired. Please start over.",
    ):
        super().__init__(message, "sudo_expired")


class InvalidSecondFactorError(SudoGateError):
    status_code = 401

    def __init__(self, message: str = "Invalid authentication code. Please try again."):
        super().__init__(message, "invalid_code")


class NotAllowedError(SudoGateError):
    status_code = 403

    def __init__(self, message: str = "You are not allowed to do this."):
        super().__init__(message, "not_allowed")


# ═══════════════════════════════════════════════════════════════
# GATING
# ═══════════════════════════════════════════════════════════════


class ElevationRequiredError(SudoGateError):
    """A sensitive action needs an elevated session first."""

    status_code = 403

    def __init__(self, rule_id: str, message: Optional[str] = None):
        super().__init__(
            message
            or "This action requires reauthentication. Please confirm your identity.",
            "sudo_required",
            {"rule_id": rule_id},
        )
        self.rule_id = rule_id


class PolicyBlockedError(SudoGateError):
    """A sensitive action is refused by the policy of its surface."""

    status_code = 403

    def __init__(
        self,
        rule_id: str,
        surface: str,
        tier: Optional[str] = None,
        message: Optional[str] = None,
    ):
        details = {"rule_id": rule_id, "surface": surface}
        if tier:
            details["tier"] = tier
        super().__init__(
            message
            or f"This operation ({rule_id}) requires an elevated session and "
            f"cannot be performed via {surface}.",
            "sudo_blocked",
            details,
        )
        self.rule_id = rule_id
        self.surface = surface
        self.tier = tier


class SurfaceDisabledError(SudoGateError):
    """The whole surface is switched off."""

    status_code = 403

    def __init__(self, surface: str, message: Optional[str] = None):
        super().__init__(
            message or f"This site has disabled {surface} access.",
            "sudo_disabled",
        )
        self.surface = surface


# ═══════════════════════════════════════════════════════════════
# REGISTRY
# ═══════════════════════════════════════════════════════════════


class DuplicateRuleError(SudoGateError):
    def __init__(self, rule_id: str):
        super().__init__(
            f"Rule id {rule_id!r} is defined more than once",
            "duplicate_rule",
            {"rule_id": rule_id},
        )
        self.rule_id = rule_id


class RegistryFrozenError(SudoGateError):
    def __init__(self):
        super().__init__(
            "The rule set has already been built; register rules at startup",
            "registry_frozen",
        )
