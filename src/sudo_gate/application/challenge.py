"""
Challenge flow: the thin layer behind the re-authentication screen.

Password and second-factor submissions are turned into session state
transitions; once the principal is elevated the stashed request is handed
back for replay. Failures surface as domain errors so every transport
maps them the same way.
"""

import logging
from typing import Optional

from sudo_gate.application.config import SudoGateConfig
from sudo_gate.application.results import (
    ActivationCode,
    ChallengeOutcome,
    ChallengeStatus,
    ReplayInstruction,
)
from sudo_gate.application.session import ElevatedSessionService
from sudo_gate.application.stash import RequestStash
from sudo_gate.context import RequestScope
from sudo_gate.domain.errors import (
    InvalidPasswordError,
    InvalidSecondFactorError,
    LockedOutError,
    NotAllowedError,
)
from sudo_gate.domain.events import ActionReplayed
from sudo_gate.domain.records import StashedRequest
from sudo_gate.infrastructure.ports.audit import AuditSink

logger = logging.getLogger(__name__)


class ChallengeFlow:
    def __init__(
        self,
        session: ElevatedSessionService,
        stash: RequestStash,
        audit: AuditSink,
        config: Optional[SudoGateConfig] = None,
    ):
        self.session = session
        self.stash = stash
        self.audit = audit
        self.config = config or SudoGateConfig()

    def _require_principal(self, scope: RequestScope) -> str:
        if not scope.identity.is_authenticated:
            raise NotAllowedError()
        return scope.principal_id

    async def describe(
        self, stash_key: Optional[str], scope: RequestScope
    ) -> Optional[StashedRequest]:
        """The stashed request a challenge screen is about, without consuming it."""
        principal_id = self._require_principal(scope)
        if not stash_key:
            return None
        return await self.stash.get(stash_key, principal_id)

    async def authenticate(
        self, password: str, stash_key: Optional[str], scope: RequestScope
    ) -> ChallengeOutcome:
        principal_id = self._require_principal(scope)
        result = await self.session.attempt_activation(principal_id, password, scope)

        if result.code == ActivationCode.SUCCESS:
            return await self._complete(stash_key, scope)
        if result.code == ActivationCode.TWO_FACTOR_PENDING:
            return ChallengeOutcome(
                status=ChallengeStatus.TWO_FACTOR_REQUIRED,
                expires_at=result.expires_at,
                mutations=scope.mutations,
            )
        if result.code == ActivationCode.LOCKED_OUT:
            raise LockedOutError(result.remaining or 0)
        if result.code == ActivationCode.NOT_ALLOWED:
            raise NotAllowedError()
        raise InvalidPasswordError()

    async def verify_second_factor(
        self, code: str, stash_key: Optional[str], scope: RequestScope
    ) -> ChallengeOutcome:
        principal_id = self._require_principal(scope)
        if not await self.session.validate_two_factor(principal_id, code, scope):
            raise InvalidSecondFactorError()
        return await self._complete(stash_key, scope)

    async def _complete(
        self, stash_key: Optional[str], scope: RequestScope
    ) -> ChallengeOutcome:
        replay = await self.replay(stash_key, scope)
        if replay is None:
            scope.mutations.redirect(self.config.fallback_url)
            return ChallengeOutcome(
                status=ChallengeStatus.COMPLETE,
                redirect_url=self.config.fallback_url,
                mutations=scope.mutations,
            )

        if replay.is_redirect:
            scope.mutations.redirect(replay.url)
        return ChallengeOutcome(
            status=ChallengeStatus.COMPLETE,
            redirect_url=replay.url if replay.is_redirect else None,
            replay=replay,
            mutations=scope.mutations,
        )

    async def replay(
        self, stash_key: Optional[str], scope: RequestScope
    ) -> Optional[ReplayInstruction]:
        """
        Consume a stash entry and turn it into a replay instruction.

        A missing, expired, foreign or already-consumed entry yields None;
        callers fall back to a safe landing page.
        """
        if not stash_key:
            return None
        principal_id = scope.principal_id
        stashed = await self.stash.get(stash_key, principal_id)
        if stashed is None:
            logger.debug(f"No stash to replay for principal {principal_id}")
            return None

        await self.stash.delete(stash_key)
        self.audit.emit(
            ActionReplayed(
                principal_id=principal_id,
                rule_id=stashed.rule_id,
                method=stashed.method,
            )
        )
        return ReplayInstruction(
            rule_id=stashed.rule_id,
            method=stashed.method,
            url=stashed.url,
            body=stashed.body_params,
        )
