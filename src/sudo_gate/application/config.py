"""
Gate configuration.

``SudoGateConfig`` is a plain dataclass. It can be built from a dict (the
shape of Django's ``SUDO_GATE`` setting and of the dependency-injector
``providers.Configuration``) or from ``SUDO_GATE_*`` environment variables.
"""

import json
import logging
import os
import secrets
from dataclasses import dataclass, field, fields
from typing import Any, Mapping, Optional

from sudo_gate.domain.value_objects import PolicyTier, Surface

logger = logging.getLogger(__name__)

MAX_SESSION_MINUTES = 15

DEFAULT_CRITICAL_OPTIONS = (
    "siteurl",
    "home",
    "admin_email",
    "default_role",
    "users_can_register",
)

ENV_PREFIX = "SUDO_GATE_"

# Option page of the gate's own settings screen
SETTINGS_PAGE = "sudo-gate-settings"


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class SudoGateConfig:
    session_duration_minutes: int = MAX_SESSION_MINUTES
    grace_seconds: int = 120
    two_factor_window_seconds: int = 300
    max_failed_attempts: int = 5
    lockout_seconds: int = 300
    progressive_delays: dict[int, float] = field(
        default_factory=lambda: {4: 2, 5: 5}
    )
    stash_ttl_seconds: int = 300
    blocked_notice_ttl_seconds: int = 60

    cli_policy: PolicyTier = PolicyTier.LIMITED
    cron_policy: PolicyTier = PolicyTier.LIMITED
    xmlrpc_policy: PolicyTier = PolicyTier.LIMITED
    api_key_policy: PolicyTier = PolicyTier.LIMITED
    graphql_policy: PolicyTier = PolicyTier.LIMITED
    api_key_policies: dict[str, PolicyTier] = field(default_factory=dict)
    graphql_route: str = "/graphql"

    critical_options: tuple[str, ...] = DEFAULT_CRITICAL_OPTIONS
    network_rules: bool = False

    cookie_path: str = "/"
    cookie_secure: bool = True
    cookie_domain: Optional[str] = None
    challenge_path: str = "/sudo/challenge"
    fallback_url: str = "/"

    token_secret: str = ""
    grant_on_login: bool = True

    def __post_init__(self):
        self.session_duration_minutes = min(
            MAX_SESSION_MINUTES, max(1, int(self.session_duration_minutes))
        )
        for name in (
            "cli_policy",
            "cron_policy",
            "xmlrpc_policy",
            "api_key_policy",
            "graphql_policy",
        ):
            setattr(self, name, PolicyTier.normalize(getattr(self, name)))
        self.api_key_policies = {
            str(k): PolicyTier.normalize(v)
            for k, v in (self.api_key_policies or {}).items()
        }
        self.progressive_delays = {
            int(k): float(v) for k, v in (self.progressive_delays or {}).items()
        }
        self.critical_options = tuple(self.critical_options)
        if not self.token_secret:
            logger.warning(
                "No token_secret configured; using a per-process secret. "
                "Sessions will not validate across workers or restarts."
            )
            self.token_secret = secrets.token_hex(32)

    @property
    def session_duration_seconds(self) -> int:
        return self.session_duration_minutes * 60

    def policy_for(self, surface: Surface) -> PolicyTier:
        """Configured tier of a non-interactive surface."""
        return {
            Surface.CLI: self.cli_policy,
            Surface.CRON: self.cron_policy,
            Surface.LEGACY_RPC: self.xmlrpc_policy,
        }.get(surface, PolicyTier.LIMITED)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "SudoGateConfig":
        """Build from a mapping; keys are case-insensitive, unknown keys ignored."""
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in (data or {}).items():
            name = str(key).lower()
            if name in known and value is not None:
                kwargs[name] = value
        return cls(**kwargs)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "SudoGateConfig":
        """
        Build from ``SUDO_GATE_*`` environment variables.

        Dict-valued keys (``API_KEY_POLICIES``, ``PROGRESSIVE_DELAYS``) take
        JSON; ``CRITICAL_OPTIONS`` takes a comma-separated list.
        """
        environ = os.environ if environ is None else environ
        raw = {
            k[len(ENV_PREFIX):].lower(): v
            for k, v in environ.items()
            if k.startswith(ENV_PREFIX)
        }
        data: dict[str, Any] = {}
        for f in fields(cls):
            if f.name not in raw:
                continue
            value = raw[f.name]
            if f.name in ("api_key_policies", "progressive_delays"):
                data[f.name] = json.loads(value)
            elif f.name == "critical_options":
                data[f.name] = tuple(v.strip() for v in value.split(",") if v.strip())
            elif f.type in (bool, "bool"):
                data[f.name] = _as_bool(value)
            elif f.type in (int, "int"):
                data[f.name] = int(value)
            elif f.name == "cookie_domain":
                data[f.name] = value or None
            else:
                data[f.name] = value
        return cls.from_dict(data)
