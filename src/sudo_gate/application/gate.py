"""
The gate: decides what happens to every inbound request.

For each request it detects the transport surface, asks the registry
whether the request is a sensitive operation and asks the session service
whether the principal is elevated. When a sensitive request arrives
without elevation the gate defers it (stash + challenge redirect),
soft-blocks it (structured "sudo_required" error for JSON callers) or
hard-blocks it (surface policy), depending on the surface.

Non-interactive surfaces (CLI, cron, legacy RPC) are handled once per
process, or once per legacy RPC request, by ``enforce_surface``. In the
``limited`` tier the host's lowest-level mutation functions, wrapped with
``protect``, refuse to run.
"""

import functools
import inspect
import logging
import re
from contextvars import ContextVar
from typing import Any, Callable, Optional, TypeVar

from sudo_gate.application.config import SudoGateConfig
from sudo_gate.application.registry import ActionRegistry
from sudo_gate.application.results import GateDecision
from sudo_gate.application.session import ElevatedSessionService
from sudo_gate.application.stash import RequestStash
from sudo_gate.context import RequestScope
from sudo_gate.domain.errors import PolicyBlockedError, SurfaceDisabledError
from sudo_gate.domain.events import ActionAllowed, ActionBlocked, ActionGated
from sudo_gate.domain.rules import Rule
from sudo_gate.domain.value_objects import (
    InboundRequest,
    PolicyTier,
    RuntimeContext,
    Surface,
)
from sudo_gate.identity import ANONYMOUS_PRINCIPAL, AuthMethod
from sudo_gate.infrastructure.ports.audit import AuditSink
from sudo_gate.infrastructure.ports.stores import EphemeralStore

logger = logging.getLogger(__name__)

BLOCKED_NOTICE_PREFIX = "sudo:blocked:"

# Surface names used in audit events for the API sub-channels
API_KEY_CHANNEL = "rest_api_key"
GRAPHQL_CHANNEL = "graphql"

F = TypeVar("F", bound=Callable[..., Any])

# Non-interactive surface whose mutation primitives are guarded. A CLI or
# cron process arms it once in its main context; an HTTP worker arms it
# for the duration of one legacy RPC request.
_guarded_surface: ContextVar[Optional[Surface]] = ContextVar(
    "sudo_gate_guarded_surface", default=None
)


def _required_message(rule: Rule) -> str:
    return (
        f"This action ({rule.label or rule.id}) requires reauthentication. "
        "Please confirm your identity."
    )


class Gate:
    def __init__(
        self,
        registry: ActionRegistry,
        session: ElevatedSessionService,
        stash: RequestStash,
        notices: EphemeralStore,
        audit: AuditSink,
        config: Optional[SudoGateConfig] = None,
    ):
        self.registry = registry
        self.session = session
        self.stash = stash
        self.notices = notices
        self.audit = audit
        self.config = config or SudoGateConfig()
        self._overrides: dict[str, PolicyTier] = dict(self.config.api_key_policies)
        self._graphql_pattern = re.compile(
            rf"^{re.escape(self.config.graphql_route.rstrip('/'))}/?$"
        )

    # ═══════════════════════════════════════════════════════════
    # DETECTION AND MATCHING
    # ═══════════════════════════════════════════════════════════

    def detect_surface(self, runtime: RuntimeContext) -> Surface:
        """
        Classify the invocation channel.

        Scheduled jobs win over everything (cron may run from the command
        line or alongside an API bootstrap), then CLI, legacy RPC, async
        RPC, API and finally the interactive UI.
        """
        if runtime.is_cron:
            return Surface.CRON
        if runtime.is_cli:
            return Surface.CLI
        if runtime.is_legacy_rpc:
            return Surface.LEGACY_RPC
        if runtime.is_async_rpc:
            return Surface.ASYNC_RPC
        if runtime.is_api:
            return Surface.API
        if runtime.is_interactive:
            return Surface.INTERACTIVE
        return Surface.UNKNOWN

    def match(self, surface: Surface, request: InboundRequest) -> Optional[Rule]:
        if surface not in (Surface.INTERACTIVE, Surface.ASYNC_RPC, Surface.API):
            return None
        return self.registry.match(surface, request)

    # ═══════════════════════════════════════════════════════════
    # POLICY
    # ═══════════════════════════════════════════════════════════

    def register_policy_override(self, credential_id: str, tier: Any) -> None:
        """Per-credential API policy; takes precedence over the global tier."""
        self._overrides[str(credential_id)] = PolicyTier.normalize(tier)

    def policy_for_credential(self, credential_id: Optional[str]) -> PolicyTier:
        if credential_id is not None and str(credential_id) in self._overrides:
            return self._overrides[str(credential_id)]
        return self.config.api_key_policy

    # ═══════════════════════════════════════════════════════════
    # REQUEST INTERCEPTION
    # ═══════════════════════════════════════════════════════════

    async def intercept(
        self, request: InboundRequest, scope: RequestScope, surface: Surface
    ) -> GateDecision:
        if surface in (Surface.INTERACTIVE, Surface.ASYNC_RPC):
            return await self._intercept_interactive(request, scope, surface)
        if surface == Surface.API:
            return await self.intercept_api(request, scope)
        return GateDecision.proceed()

    async def _elevated(self, request: InboundRequest, scope: RequestScope) -> bool:
        principal_id = scope.principal_id
        if await self.session.is_active(principal_id, scope):
            return True
        # An already-open form submitted just after expiry may still complete
        if request.verb not in ("GET", "HEAD"):
            return await self.session.is_within_grace(principal_id, scope)
        return False

    async def _intercept_interactive(
        self, request: InboundRequest, scope: RequestScope, surface: Surface
    ) -> GateDecision:
        if not scope.identity.is_authenticated:
            return GateDecision.proceed()

        rule = self.match(surface, request)
        if rule is None:
            return GateDecision.proceed()

        if await self._elevated(request, scope):
            return GateDecision.proceed(rule)

        principal_id = scope.principal_id
        self.audit.emit(
            ActionGated(principal_id=principal_id, rule_id=rule.id, surface=surface.value)
        )

        if surface == Surface.ASYNC_RPC:
            await self._set_blocked_notice(principal_id, rule)
            # 200 so JSON callers parse it on their success path
            return GateDecision.soft_block(rule, _required_message(rule), 200)

        key = await self.stash.save(principal_id, rule, request)
        return GateDecision.challenge(rule, self.challenge_url(key), key)

    def challenge_url(self, stash_key: str) -> str:
        separator = "&" if "?" in self.config.challenge_path else "?"
        return f"{self.config.challenge_path}{separator}stash_key={stash_key}"

    async def intercept_api(
        self, request: InboundRequest, scope: RequestScope
    ) -> GateDecision:
        """
        Declarative-API interception, run after routing and before the handler.

        Session-bound callers get a soft ``sudo_required`` (they can complete
        the challenge); long-lived credentials get their policy tier.
        """
        if self._graphql_pattern.match(request.path):
            return await self._intercept_graphql(request, scope)

        if not scope.identity.is_authenticated:
            return GateDecision.proceed()

        rule = self.match(Surface.API, request)
        if rule is None:
            return GateDecision.proceed()

        if await self._elevated(request, scope):
            return GateDecision.proceed(rule)

        principal_id = scope.principal_id
        if scope.identity.auth_method == AuthMethod.API_KEY:
            tier = self.policy_for_credential(scope.identity.credential_id)
            return self._apply_api_key_policy(principal_id, rule, tier)

        self.audit.emit(
            ActionGated(principal_id=principal_id, rule_id=rule.id, surface=Surface.API.value)
        )
        await self._set_blocked_notice(principal_id, rule)
        return GateDecision.soft_block(rule, _required_message(rule), 403)

    def _apply_api_key_policy(
        self, principal_id: str, rule: Rule, tier: PolicyTier
    ) -> GateDecision:
        if tier == PolicyTier.UNRESTRICTED:
            self.audit.emit(
                ActionAllowed(principal_id=principal_id, rule_id=rule.id, surface=API_KEY_CHANNEL)
            )
            return GateDecision.proceed(rule)

        if tier == PolicyTier.DISABLED:
            return GateDecision.policy_block(
                rule,
                "sudo_disabled",
                "This site has disabled API access with long-lived credentials.",
            )

        self.audit.emit(
            ActionBlocked(
                principal_id=principal_id,
                rule_id=rule.id,
                surface=API_KEY_CHANNEL,
                tier=tier.value,
            )
        )
        return GateDecision.policy_block(
            rule,
            "sudo_blocked",
            "This operation requires an elevated session and cannot be "
            "performed with a long-lived credential.",
        )

    async def _intercept_graphql(
        self, request: InboundRequest, scope: RequestScope
    ) -> GateDecision:
        """
        Query-language endpoint.

        Mutations are recognised by the literal word "mutation" anywhere in
        the body. This over-matches (a query mentioning the word is blocked
        too) but cannot miss a real mutation.
        """
        tier = self.config.graphql_policy
        if tier == PolicyTier.UNRESTRICTED:
            return GateDecision.proceed()

        if tier == PolicyTier.DISABLED:
            return GateDecision.policy_block(
                None, "sudo_disabled", "This site has disabled the GraphQL endpoint."
            )

        if "mutation" not in request.raw_body:
            return GateDecision.proceed()

        identity = scope.identity
        if identity.is_authenticated and await self.session.is_active(
            scope.principal_id, scope
        ):
            return GateDecision.proceed()

        self.audit.emit(
            ActionBlocked(
                principal_id=scope.principal_id if identity.is_authenticated else ANONYMOUS_PRINCIPAL,
                rule_id="graphql.mutation",
                surface=GRAPHQL_CHANNEL,
                tier=tier.value,
            )
        )
        return GateDecision.policy_block(
            None,
            "sudo_blocked",
            "GraphQL mutations require an elevated session.",
        )

    # ═══════════════════════════════════════════════════════════
    # BLOCKED NOTICE
    # ═══════════════════════════════════════════════════════════

    async def _set_blocked_notice(self, principal_id: str, rule: Rule) -> None:
        await self.notices.set(
            BLOCKED_NOTICE_PREFIX + principal_id,
            {"rule_id": rule.id, "label": rule.label},
            self.config.blocked_notice_ttl_seconds,
        )

    async def consume_blocked_notice(self, principal_id: str) -> Optional[dict[str, Any]]:
        """Read and clear the "you were just blocked" notice for the next page."""
        key = BLOCKED_NOTICE_PREFIX + principal_id
        notice = await self.notices.get(key)
        if notice is not None:
            await self.notices.delete(key)
        return notice

    # ═══════════════════════════════════════════════════════════
    # NON-INTERACTIVE SURFACES
    # ═══════════════════════════════════════════════════════════

    def enforce_surface(self, surface: Surface) -> PolicyTier:
        """
        Apply a non-interactive surface's policy, early in the process.

        ``disabled`` raises ``SurfaceDisabledError`` at once. ``limited``
        arms the ``protect`` guards; ``unrestricted`` leaves them disarmed.
        """
        if not surface.is_non_interactive:
            return PolicyTier.UNRESTRICTED

        tier = self.config.policy_for(surface)
        if tier == PolicyTier.DISABLED:
            logger.info(f"Refusing {surface.value} invocation: surface disabled")
            raise SurfaceDisabledError(surface.value)

        _guarded_surface.set(surface if tier == PolicyTier.LIMITED else None)
        return tier

    def release_surface(self) -> None:
        _guarded_surface.set(None)

    @property
    def guarded_surface(self) -> Optional[Surface]:
        return _guarded_surface.get()

    def check_protected(self, rule_id: str) -> None:
        """Raise if the operation runs on a guarded non-interactive surface."""
        surface = _guarded_surface.get()
        if surface is None:
            return
        self.audit.emit(
            ActionBlocked(
                principal_id=ANONYMOUS_PRINCIPAL,
                rule_id=rule_id,
                surface=surface.value,
                tier=PolicyTier.LIMITED.value,
            )
        )
        raise PolicyBlockedError(rule_id, surface.value, PolicyTier.LIMITED.value)

    def protect(self, rule_id: str) -> Callable[[F], F]:
        """
        Decorator for the host's low-level mutation functions.

        Example:
            @gate.protect("plugin.activate")
            def activate_plugin(slug): ...
        """

        def decorator(func: F) -> F:
            if inspect.iscoroutinefunction(func):

                @functools.wraps(func)
                async def async_wrapper(*args, **kwargs):
                    self.check_protected(rule_id)
                    return await func(*args, **kwargs)

                return async_wrapper  # type: ignore[return-value]

            @functools.wraps(func)
            def wrapper(*args, **kwargs):
                self.check_protected(rule_id)
                return func(*args, **kwargs)

            return wrapper  # type: ignore[return-value]

        return decorator
