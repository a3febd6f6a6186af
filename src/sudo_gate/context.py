"""
Request scope and context variable management.

A ``RequestScope`` is created by the transport adapter at the start of each
request and dropped at the end. It carries everything the core must not
keep in process-wide state: the cookies the caller presented, the
per-request elevation memo and the response mutations produced while the
request was handled.
"""

import uuid
from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from typing import Optional

from sudo_gate.domain.value_objects import (
    CookieInstruction,
    InboundRequest,
    ResponseMutations,
)
from sudo_gate.identity import Identity, AnonymousIdentity


@dataclass
class RequestScope:
    """
    Request-scoped state shared by the gate services.

    ``cookies`` starts as the presented cookies and tracks instructions
    applied during the request, so a session activated mid-request is
    visible to later checks in the same request.
    """

    identity: Identity = field(default_factory=AnonymousIdentity)
    request: Optional[InboundRequest] = None
    cookies: dict[str, str] = field(default_factory=dict)
    elevation_memo: dict[str, bool] = field(default_factory=dict)
    mutations: ResponseMutations = field(default_factory=ResponseMutations)
    correlation_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @classmethod
    def for_request(
        cls, identity: Identity, request: InboundRequest
    ) -> "RequestScope":
        return cls(identity=identity, request=request, cookies=dict(request.cookies))

    @property
    def principal_id(self) -> str:
        return self.identity.user_id

    def cookie(self, name: str) -> Optional[str]:
        return self.cookies.get(name) or None

    def apply(self, mutations: ResponseMutations) -> None:
        """Record mutations for the response and reflect their cookies."""
        for instruction in mutations.cookies:
            self._reflect(instruction)
        self.mutations.merge(mutations)

    def take_mutations(self) -> ResponseMutations:
        """Hand the pending mutations to the caller applying them."""
        mutations, self.mutations = self.mutations, ResponseMutations()
        return mutations

    def forget(self, principal_id: str) -> None:
        self.elevation_memo.pop(principal_id, None)

    def _reflect(self, instruction: CookieInstruction) -> None:
        if instruction.expires_cookie:
            self.cookies.pop(instruction.name, None)
        else:
            self.cookies[instruction.name] = instruction.value


# Global context variable for the current request scope
request_scope: ContextVar[Optional[RequestScope]] = ContextVar(
    "request_scope", default=None
)


def get_scope() -> RequestScope:
    """
    Get the current request scope.

    Returns a fresh anonymous scope if none is bound.
    """
    scope = request_scope.get()
    return scope if scope is not None else RequestScope()


def bind_scope(scope: RequestScope) -> Token:
    """Bind a scope for the current request; pass the token to ``reset_scope``."""
    return request_scope.set(scope)


def reset_scope(token: Token) -> None:
    request_scope.reset(token)
