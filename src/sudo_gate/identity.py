"""
Principal identity protocol and implementations.

The gate defines Identity as a Protocol, a contract the host application
fulfills. How the principal was authenticated (interactive session or a
long-lived credential such as an API key) matters to the gate because the
declarative-API surface applies a different policy to each.

Context propagation is handled via contextvars for request-scoped data.
"""

from contextvars import ContextVar
from dataclasses import dataclass
from enum import Enum
from typing import Protocol, Optional, runtime_checkable


# Principal id used on surfaces where nobody is logged in (CLI, cron, ...)
ANONYMOUS_PRINCIPAL = "0"


class AuthMethod(str, Enum):
    """How the current principal proved who they are."""

    SESSION = "session"
    API_KEY = "api_key"
    NONE = "none"


# ═══════════════════════════════════════════════════════════════
# CONTEXT VARIABLES
# ═══════════════════════════════════════════════════════════════

_identity_context: ContextVar["Identity"] = ContextVar("identity")


# ═══════════════════════════════════════════════════════════════
# PROTOCOL
# ═══════════════════════════════════════════════════════════════


@runtime_checkable
class Identity(Protocol):
    """Protocol for the principal a request runs as."""

    @property
    def user_id(self) -> str:
        """Unique identifier for the principal."""
        ...

    @property
    def username(self) -> str:
        """Human-readable username."""
        ...

    @property
    def is_authenticated(self) -> bool:
        """Whether the identity represents a logged-in principal."""
        ...

    @property
    def auth_method(self) -> AuthMethod:
        """Session-bound or long-lived credential."""
        ...

    @property
    def credential_id(self) -> Optional[str]:
        """Identifier of the long-lived credential, when one was used."""
        ...


# ═══════════════════════════════════════════════════════════════
# IMPLEMENTATIONS
# ═══════════════════════════════════════════════════════════════


class AnonymousIdentity:
    """Default identity for unauthenticated requests."""

    user_id = ANONYMOUS_PRINCIPAL
    username = "anonymous"
    is_authenticated = False
    auth_method = AuthMethod.NONE
    credential_id = None


@dataclass
class AuthenticatedIdentity:
    """Concrete identity for logged-in principals."""

    user_id: str
    username: str
    is_authenticated: bool = True
    auth_method: AuthMethod = AuthMethod.SESSION
    credential_id: Optional[str] = None

    @property
    def uses_long_lived_credential(self) -> bool:
        return self.auth_method == AuthMethod.API_KEY


# ═══════════════════════════════════════════════════════════════
# CONTEXT MANAGEMENT
# ═══════════════════════════════════════════════════════════════


def get_identity() -> Identity:
    """
    Get current identity from context.

    Returns AnonymousIdentity if no identity has been set.
    """
    try:
        return _identity_context.get()
    except LookupError:
        return AnonymousIdentity()


def set_identity(identity: Identity) -> None:
    """
    Set identity in current context.

    Called by the host's authentication middleware.
    """
    _identity_context.set(identity)


def clear_identity() -> None:
    """Reset the context to the anonymous identity."""
    _identity_context.set(AnonymousIdentity())
