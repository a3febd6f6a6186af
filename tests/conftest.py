"""
Pytest configuration for py-sudo-gate tests.
"""

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from sudo_gate.application.challenge import ChallengeFlow
from sudo_gate.application.config import SudoGateConfig
from sudo_gate.application.default_rules import default_rules
from sudo_gate.application.gate import Gate
from sudo_gate.application.registry import ActionRegistry
from sudo_gate.application.session import ElevatedSessionService
from sudo_gate.application.stash import RequestStash
from sudo_gate.context import RequestScope
from sudo_gate.domain.events import AuditEvent
from sudo_gate.domain.value_objects import InboundRequest
from sudo_gate.identity import AnonymousIdentity, AuthMethod, AuthenticatedIdentity
from sudo_gate.infrastructure.adapters.principals import InMemoryPrincipalDirectory
from sudo_gate.infrastructure.adapters.second_factor import (
    InMemoryTOTPSecretStore,
    TOTPSecondFactorProvider,
)
from sudo_gate.infrastructure.adapters.stores import (
    InMemoryDurableStore,
    InMemoryEphemeralStore,
)
from sudo_gate.infrastructure.ports.audit import AuditSink

PRINCIPAL_ID = "42"
PASSWORD = "correct horse battery staple"


# -----------------------------------------------------------------------------
# TEST DOUBLES
# -----------------------------------------------------------------------------


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class RecordingSleeper:
    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class RecordingAuditSink(AuditSink):
    def __init__(self):
        self.events: list[AuditEvent] = []

    def emit(self, event: AuditEvent) -> None:
        self.events.append(event)

    @property
    def names(self) -> list[str]:
        return [e.name for e in self.events]

    def of_type(self, event_type) -> list:
        return [e for e in self.events if isinstance(e, event_type)]


def next_scope(
    previous: RequestScope, request: InboundRequest = None, identity=None
) -> RequestScope:
    """A new request from the same browser: cookies carry over."""
    request = request or InboundRequest()
    identity = identity or previous.identity
    request = replace(request, cookies={**previous.cookies, **request.cookies})
    return RequestScope.for_request(identity, request)


# -----------------------------------------------------------------------------
# IDENTITIES
# -----------------------------------------------------------------------------


@pytest.fixture
def anonymous_identity():
    return AnonymousIdentity()


@pytest.fixture
def authenticated_identity():
    """Fixture providing the principal every service test acts as."""
    return AuthenticatedIdentity(user_id=PRINCIPAL_ID, username="alice")


@pytest.fixture
def api_key_identity():
    return AuthenticatedIdentity(
        user_id=PRINCIPAL_ID,
        username="alice",
        auth_method=AuthMethod.API_KEY,
        credential_id="cred-1",
    )


@pytest.fixture
def scope(authenticated_identity):
    return RequestScope.for_request(authenticated_identity, InboundRequest())


# -----------------------------------------------------------------------------
# COLLABORATORS
# -----------------------------------------------------------------------------


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleeper():
    return RecordingSleeper()


@pytest.fixture
def audit():
    return RecordingAuditSink()


@pytest.fixture
def config():
    return SudoGateConfig(token_secret="test-secret")


@pytest.fixture
def durable():
    return InMemoryDurableStore()


@pytest.fixture
def ephemeral(clock):
    return InMemoryEphemeralStore(clock=clock)


@pytest.fixture
def principals():
    directory = InMemoryPrincipalDirectory(rounds=4)
    directory.add(PRINCIPAL_ID, "alice", PASSWORD)
    directory.add("7", "bob", "bobs password")
    return directory


@pytest.fixture
def totp_secrets():
    return InMemoryTOTPSecretStore()


@pytest.fixture
def second_factor(totp_secrets):
    return TOTPSecondFactorProvider(totp_secrets)


# -----------------------------------------------------------------------------
# SERVICES
# -----------------------------------------------------------------------------


@pytest.fixture
def session(durable, ephemeral, principals, second_factor, audit, config, clock, sleeper):
    return ElevatedSessionService(
        durable=durable,
        ephemeral=ephemeral,
        principals=principals,
        second_factor=second_factor,
        audit=audit,
        config=config,
        clock=clock,
        sleeper=sleeper,
    )


@pytest.fixture
def stash(ephemeral, config, clock):
    return RequestStash(ephemeral, config=config, clock=clock)


@pytest.fixture
def registry(config):
    return ActionRegistry(default_rules(config.critical_options))


@pytest.fixture
def gate(registry, session, stash, ephemeral, audit, config):
    return Gate(
        registry=registry,
        session=session,
        stash=stash,
        notices=ephemeral,
        audit=audit,
        config=config,
    )


@pytest.fixture
def challenge(session, stash, audit, config):
    return ChallengeFlow(session=session, stash=stash, audit=audit, config=config)


@pytest.fixture
def password():
    return PASSWORD


@pytest.fixture
def carry():
    """Build the next request's scope from the previous one's cookies."""
    return next_scope

