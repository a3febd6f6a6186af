"""
Elevated session state machine.

States per principal: inactive, elevated (unexpired record and a matching
binding token), grace (expired less than ``grace_seconds`` ago, token
still matching) and, on a separate axis, locked out after too many failed
password attempts.

The binding token and the two-factor challenge nonce only ever leave the
service inside a ``CookieInstruction``; the stores hold their HMAC-SHA256
hashes.
"""

import hashlib
import hmac
import logging
import secrets
from datetime import timedelta
from typing import Iterable, Optional

from sudo_gate.application.config import SudoGateConfig
from sudo_gate.application.results import ActivationResult
from sudo_gate.clock import Clock, Sleeper, sleep, utcnow
from sudo_gate.context import RequestScope
from sudo_gate.domain.errors import ChallengeExpiredError
from sudo_gate.domain.events import (
    LockoutTriggered,
    ReauthFailed,
    SessionActivated,
    SessionDeactivated,
    TwoFactorRequested,
)
from sudo_gate.domain.records import ElevationRecord, LockoutRecord, TwoFactorPending
from sudo_gate.domain.value_objects import CookieInstruction, ResponseMutations
from sudo_gate.identity import ANONYMOUS_PRINCIPAL
from sudo_gate.infrastructure.ports.audit import AuditSink
from sudo_gate.infrastructure.ports.principals import PrincipalDirectory
from sudo_gate.infrastructure.ports.second_factor import SecondFactorProvider
from sudo_gate.infrastructure.ports.stores import DurableStore, EphemeralStore

logger = logging.getLogger(__name__)

SESSION_KEY = "sudo_session"
LOCKOUT_KEY = "sudo_lockout"
TOKEN_COOKIE = "sudo_token"
CHALLENGE_COOKIE = "sudo_challenge"
TWO_FACTOR_PREFIX = "sudo:2fa_pending:"


class ElevatedSessionService:
    def __init__(
        self,
        durable: DurableStore,
        ephemeral: EphemeralStore,
        principals: PrincipalDirectory,
        second_factor: SecondFactorProvider,
        audit: AuditSink,
        config: Optional[SudoGateConfig] = None,
        clock: Clock = utcnow,
        sleeper: Sleeper = sleep,
    ):
        self.durable = durable
        self.ephemeral = ephemeral
        self.principals = principals
        self.second_factor = second_factor
        self.audit = audit
        self.config = config or SudoGateConfig()
        self._clock = clock
        self._sleep = sleeper

    # ── Helpers ─────────────────────────────────────────────────

    def _hash(self, value: str) -> str:
        key = self.config.token_secret.encode("utf-8")
        return hmac.new(key, value.encode("utf-8"), hashlib.sha256).hexdigest()

    def _cookie(self, name: str, value: str, max_age: int) -> CookieInstruction:
        return CookieInstruction(
            name=name,
            value=value,
            max_age=max_age,
            path=self.config.cookie_path,
            domain=self.config.cookie_domain,
            secure=self.config.cookie_secure,
            httponly=True,
            samesite="strict",
        )

    def _expire_cookie(self, name: str) -> CookieInstruction:
        return self._cookie(name, "", 0)

    def _token_matches(self, record: ElevationRecord, scope: RequestScope) -> bool:
        token = scope.cookie(TOKEN_COOKIE)
        if not token:
            return False
        return hmac.compare_digest(record.token_hash, self._hash(token))

    async def _load_session(self, principal_id: str) -> Optional[ElevationRecord]:
        data = await self.durable.get(principal_id, SESSION_KEY)
        if not data:
            return None
        try:
            return ElevationRecord.from_dict(data)
        except (KeyError, TypeError, ValueError):
            logger.warning(f"Ignoring malformed session record for principal {principal_id}")
            return None

    async def _load_lockout(self, principal_id: str) -> LockoutRecord:
        data = await self.durable.get(principal_id, LOCKOUT_KEY)
        if not data:
            return LockoutRecord()
        try:
            return LockoutRecord.from_dict(data)
        except (KeyError, TypeError, ValueError):
            return LockoutRecord()

    # ── Elevation state ─────────────────────────────────────────

    async def is_active(self, principal_id: str, scope: RequestScope) -> bool:
        """
        Whether the principal is elevated for this request.

        Memoised on the scope. Unreadable state counts as not elevated.
        """
        if principal_id in scope.elevation_memo:
            return scope.elevation_memo[principal_id]

        active = await self._compute_active(principal_id, scope)
        scope.elevation_memo[principal_id] = active
        return active

    async def _compute_active(self, principal_id: str, scope: RequestScope) -> bool:
        record = await self._load_session(principal_id)
        if record is None:
            return False

        now = self._clock()
        if not record.is_active(now):
            if record.is_past_grace(now, self.config.grace_seconds):
                await self._clear(principal_id, scope)
            return False

        return self._token_matches(record, scope)

    async def is_within_grace(self, principal_id: str, scope: RequestScope) -> bool:
        record = await self._load_session(principal_id)
        if record is None:
            return False
        if not record.is_within_grace(self._clock(), self.config.grace_seconds):
            return False
        return self._token_matches(record, scope)

    async def time_remaining(self, principal_id: str) -> int:
        """Seconds left in the session; 0 when not elevated."""
        record = await self._load_session(principal_id)
        if record is None:
            return 0
        return record.remaining_seconds(self._clock())

    async def activate(self, principal_id: str, scope: RequestScope) -> ActivationResult:
        duration = self.config.session_duration_seconds
        expires_at = self._clock() + timedelta(seconds=duration)
        token = secrets.token_urlsafe(32)

        record = ElevationRecord(expires_at=expires_at, token_hash=self._hash(token))
        await self.durable.set(principal_id, SESSION_KEY, record.to_dict())
        await self.durable.delete(principal_id, LOCKOUT_KEY)

        mutations = ResponseMutations()
        # The cookie outlives the session by the grace window so in-flight
        # submissions can still present it
        mutations.set_cookie(
            self._cookie(TOKEN_COOKIE, token, duration + self.config.grace_seconds)
        )
        scope.apply(mutations)
        scope.forget(principal_id)

        logger.debug(f"Elevated session started for principal {principal_id}")
        self.audit.emit(
            SessionActivated(
                principal_id=principal_id,
                expires_at=expires_at,
                duration_seconds=duration,
            )
        )
        return ActivationResult.success(expires_at, mutations)

    async def deactivate(
        self, principal_id: str, scope: RequestScope, reason: str = "manual"
    ) -> ResponseMutations:
        mutations = await self._clear(principal_id, scope)
        self.audit.emit(SessionDeactivated(principal_id=principal_id, reason=reason))
        return mutations

    async def _clear(self, principal_id: str, scope: RequestScope) -> ResponseMutations:
        await self.durable.delete(principal_id, SESSION_KEY)
        mutations = ResponseMutations()
        if scope.principal_id == principal_id:
            mutations.set_cookie(self._expire_cookie(TOKEN_COOKIE))
        scope.apply(mutations)
        scope.forget(principal_id)
        logger.debug(f"Elevated session cleared for principal {principal_id}")
        return mutations

    # ── Lockout ─────────────────────────────────────────────────

    async def is_locked_out(self, principal_id: str) -> bool:
        record = await self._load_lockout(principal_id)
        if record.lockout_until is None:
            return False
        if record.is_locked(self._clock()):
            return True
        # Lockout over: start counting from zero again
        await self.durable.delete(principal_id, LOCKOUT_KEY)
        return False

    async def lockout_remaining(self, principal_id: str) -> int:
        record = await self._load_lockout(principal_id)
        return record.remaining_seconds(self._clock())

    async def _record_failure(self, principal_id: str) -> LockoutRecord:
        record = await self._load_lockout(principal_id)
        record.failed_attempts += 1
        if record.failed_attempts >= self.config.max_failed_attempts:
            record.lockout_until = self._clock() + timedelta(
                seconds=self.config.lockout_seconds
            )
        await self.durable.set(principal_id, LOCKOUT_KEY, record.to_dict())
        return record

    # ── Re-authentication ───────────────────────────────────────

    async def attempt_activation(
        self, principal_id: str, password: str, scope: RequestScope
    ) -> ActivationResult:
        """
        Password step of the challenge.

        Returns ``locked_out`` without checking the password while a
        lockout is in force. Wrong passwords are counted; attempts listed in
        ``progressive_delays`` sleep before answering.
        """
        if not principal_id or principal_id == ANONYMOUS_PRINCIPAL:
            return ActivationResult.not_allowed()

        if await self.is_locked_out(principal_id):
            return ActivationResult.locked_out(await self.lockout_remaining(principal_id))

        if not await self.principals.verify_password(principal_id, password):
            return await self._fail(principal_id)

        await self.durable.delete(principal_id, LOCKOUT_KEY)

        if await self.second_factor.is_required(principal_id):
            return await self._start_two_factor(principal_id, scope)

        return await self.activate(principal_id, scope)

    async def _fail(self, principal_id: str) -> ActivationResult:
        record = await self._record_failure(principal_id)
        attempts = record.failed_attempts
        self.audit.emit(ReauthFailed(principal_id=principal_id, attempts=attempts))

        delay = self.config.progressive_delays.get(attempts)
        if delay:
            await self._sleep(delay)

        if record.lockout_until is not None:
            logger.info(f"Principal {principal_id} locked out after {attempts} attempts")
            self.audit.emit(
                LockoutTriggered(
                    principal_id=principal_id,
                    attempts=attempts,
                    lockout_until=record.lockout_until,
                )
            )
            return ActivationResult.locked_out(self.config.lockout_seconds)

        return ActivationResult.invalid_password(attempts)

    async def _start_two_factor(
        self, principal_id: str, scope: RequestScope
    ) -> ActivationResult:
        # A new password success replaces any challenge this browser held
        previous = scope.cookie(CHALLENGE_COOKIE)
        if previous:
            await self.ephemeral.delete(TWO_FACTOR_PREFIX + self._hash(previous))

        window = self.config.two_factor_window_seconds
        expires_at = self._clock() + timedelta(seconds=window)
        nonce = secrets.token_urlsafe(32)

        pending = TwoFactorPending(principal_id=principal_id, expires_at=expires_at)
        await self.ephemeral.set(
            TWO_FACTOR_PREFIX + self._hash(nonce), pending.to_dict(), window
        )

        mutations = ResponseMutations()
        mutations.set_cookie(self._cookie(CHALLENGE_COOKIE, nonce, window))
        scope.apply(mutations)

        self.audit.emit(TwoFactorRequested(principal_id=principal_id, expires_at=expires_at))
        return ActivationResult.two_factor_pending(expires_at, mutations)

    async def get_two_factor_pending(
        self, principal_id: str, scope: RequestScope
    ) -> Optional[TwoFactorPending]:
        """The current browser's pending record, if it belongs to the principal."""
        nonce = scope.cookie(CHALLENGE_COOKIE)
        if not nonce:
            return None
        data = await self.ephemeral.get(TWO_FACTOR_PREFIX + self._hash(nonce))
        if not data:
            return None
        pending = TwoFactorPending.from_dict(data)
        if pending.principal_id != principal_id:
            return None
        if pending.is_expired(self._clock()):
            return None
        return pending

    async def validate_two_factor(
        self, principal_id: str, submitted: str, scope: RequestScope
    ) -> bool:
        """
        Second-factor step of the challenge.

        Raises ``ChallengeExpiredError`` when the browser holds no usable
        pending record (absent, foreign or expired). Returns False for a
        wrong code, leaving the record in place for another try.
        """
        nonce = scope.cookie(CHALLENGE_COOKIE)
        if not nonce:
            raise ChallengeExpiredError()

        key = TWO_FACTOR_PREFIX + self._hash(nonce)
        data = await self.ephemeral.get(key)
        if not data:
            raise ChallengeExpiredError()

        pending = TwoFactorPending.from_dict(data)
        if pending.principal_id != principal_id:
            raise ChallengeExpiredError()
        if pending.is_expired(self._clock()):
            await self.ephemeral.delete(key)
            raise ChallengeExpiredError()

        if not await self.second_factor.validate(principal_id, submitted):
            return False

        await self.ephemeral.delete(key)
        mutations = ResponseMutations()
        mutations.set_cookie(self._expire_cookie(CHALLENGE_COOKIE))
        scope.apply(mutations)

        await self.activate(principal_id, scope)
        return True

    # ── Lifecycle hooks ─────────────────────────────────────────

    async def grant_on_login(self, principal_id: str, scope: RequestScope) -> bool:
        """
        Start a session right after an interactive login.

        Skipped when disabled or when the principal must pass a second
        factor the login did not check.
        """
        if not self.config.grant_on_login:
            return False
        if await self.second_factor.is_required(principal_id):
            return False
        await self.activate(principal_id, scope)
        return True

    async def on_password_changed(
        self,
        principal_id: str,
        old_hash: str,
        new_hash: str,
        scope: RequestScope,
    ) -> bool:
        if hmac.compare_digest(old_hash.encode("utf-8"), new_hash.encode("utf-8")):
            return False
        await self.deactivate(principal_id, scope, reason="password_changed")
        return True

    async def on_password_reset(self, principal_id: str, scope: RequestScope) -> None:
        await self.deactivate(principal_id, scope, reason="password_reset")

    async def sweep(self, principal_ids: Iterable[str]) -> int:
        """Delete session records expired beyond the grace window."""
        now = self._clock()
        cleared = 0
        for principal_id in principal_ids:
            record = await self._load_session(principal_id)
            if record and record.is_past_grace(now, self.config.grace_seconds):
                await self.durable.delete(principal_id, SESSION_KEY)
                cleared += 1
        if cleared:
            logger.info(f"Swept {cleared} expired elevated sessions")
        return cleared
