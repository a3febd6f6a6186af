"""
Domain value objects for the sudo gate.

Value objects are immutable and have no identity. They are defined only by
their attributes: the transport surface a request arrived through, the
policy tier configured for it, the normalised inbound request the registry
matches against, and the cookie / redirect instructions the core hands back
to the transport adapters.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Mapping, Optional
from urllib.parse import urlencode


# ═══════════════════════════════════════════════════════════════
# SURFACES AND POLICY
# ═══════════════════════════════════════════════════════════════


class Surface(str, Enum):
    """Transport / invocation channel a request arrives through."""

    INTERACTIVE = "admin"  # Server-rendered admin UI
    ASYNC_RPC = "ajax"  # In-page JSON RPC calls
    API = "rest"  # Declarative REST-style API
    CLI = "cli"
    CRON = "cron"
    LEGACY_RPC = "xmlrpc"
    UNKNOWN = "unknown"

    @property
    def is_non_interactive(self) -> bool:
        return self in (Surface.CLI, Surface.CRON, Surface.LEGACY_RPC)


class PolicyTier(str, Enum):
    """
    How a non-interactive surface treats gated operations.

    DISABLED rejects everything on the surface, LIMITED rejects only the
    gated operations (and audits them), UNRESTRICTED lets them through.
    """

    DISABLED = "disabled"
    LIMITED = "limited"
    UNRESTRICTED = "unrestricted"

    @classmethod
    def normalize(cls, value: Any) -> "PolicyTier":
        """
        Coerce a configured value into a tier.

        Accepts the legacy two-tier values ("block", "allow"). Anything
        unrecognised falls back to LIMITED.
        """
        if isinstance(value, cls):
            return value
        raw = str(value or "").strip().lower()
        legacy = {"block": cls.LIMITED, "allow": cls.UNRESTRICTED}
        if raw in legacy:
            return legacy[raw]
        try:
            return cls(raw)
        except ValueError:
            return cls.LIMITED


@dataclass(frozen=True)
class RuntimeContext:
    """
    Ambient flags describing how the current process was invoked.

    Several flags can be set at once (a cron run started from the command
    line, an API request that also looks like an async call); surface
    detection resolves the overlap.
    """

    is_cron: bool = False
    is_cli: bool = False
    is_legacy_rpc: bool = False
    is_async_rpc: bool = False
    is_api: bool = False
    is_interactive: bool = False


# ═══════════════════════════════════════════════════════════════
# INBOUND REQUEST
# ═══════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class InboundRequest:
    """
    Framework-neutral snapshot of the request being evaluated.

    ``page`` is the route/page identifier of the interactive surface
    (e.g. ``plugins.php``); ``path`` is what API route patterns are matched
    against. Body values are kept exactly as parsed so a stashed request
    can be replayed verbatim.
    """

    method: str = "GET"
    path: str = "/"
    page: str = ""
    query: Mapping[str, Any] = field(default_factory=dict)
    body: Mapping[str, Any] = field(default_factory=dict)
    headers: Mapping[str, str] = field(default_factory=dict)
    cookies: Mapping[str, str] = field(default_factory=dict)
    url: str = ""
    raw_body: str = ""
    is_network_admin: bool = False

    @property
    def verb(self) -> str:
        return self.method.upper()

    @property
    def params(self) -> dict[str, Any]:
        """Query and body parameters merged; body wins on conflicts."""
        return {**self.query, **self.body}

    def param(self, name: str, default: Any = None) -> Any:
        return self.params.get(name, default)

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return default

    @property
    def action_name(self) -> str:
        """
        Action name of an interactive request.

        Bulk and two-step confirm screens send a placeholder ("" or "-1")
        in ``action`` and the real action in ``action2``.
        """
        action = str(self.param("action", "") or "")
        if action in ("", "-1"):
            secondary = self.param("action2")
            if secondary not in (None, "", "-1"):
                return str(secondary)
        return action

    @property
    def full_url(self) -> str:
        if self.url:
            return self.url
        if not self.query:
            return self.path
        return f"{self.path}?{urlencode(self.query, doseq=True)}"


RequestPredicate = Callable[[InboundRequest], bool]


# ═══════════════════════════════════════════════════════════════
# RESPONSE MUTATIONS
# ═══════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class CookieInstruction:
    """
    A Set-Cookie the transport adapter must apply to the response.

    A ``max_age`` of 0 expires the cookie.
    """

    name: str
    value: str
    max_age: int
    path: str = "/"
    domain: Optional[str] = None
    secure: bool = True
    httponly: bool = True
    samesite: str = "strict"

    @property
    def expires_cookie(self) -> bool:
        return self.max_age <= 0


@dataclass
class ResponseMutations:
    """Pending response changes produced by the core for one request."""

    cookies: list[CookieInstruction] = field(default_factory=list)
    redirect_to: Optional[str] = None

    def set_cookie(self, instruction: CookieInstruction) -> None:
        # Last instruction for a cookie name wins
        self.cookies = [c for c in self.cookies if c.name != instruction.name]
        self.cookies.append(instruction)

    def redirect(self, url: str) -> None:
        self.redirect_to = url

    def merge(self, other: "ResponseMutations") -> None:
        for instruction in other.cookies:
            self.set_cookie(instruction)
        if other.redirect_to:
            self.redirect_to = other.redirect_to

    def __bool__(self) -> bool:
        return bool(self.cookies) or self.redirect_to is not None
