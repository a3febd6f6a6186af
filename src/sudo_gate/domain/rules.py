"""
Sensitive-operation rules and their per-surface matchers.

A rule names one destructive operation and describes, for each transport
surface, which requests perform it. Rules are immutable value objects; the
optional predicate on a matcher is a plain callable that receives the live
``InboundRequest`` as its only input.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, Optional, Pattern, Union

from sudo_gate.domain.value_objects import (
    InboundRequest,
    RequestPredicate,
    Surface,
)

logger = logging.getLogger(__name__)

ANY_METHOD = "ANY"


def _as_tuple(value: Union[str, Iterable[str], None]) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(value)


def _evaluate(predicate: Optional[RequestPredicate], request: InboundRequest) -> bool:
    if predicate is None:
        return True
    try:
        return bool(predicate(request))
    except Exception:
        # A predicate that cannot decide narrows nothing: treat as a match
        logger.warning(
            "Rule predicate %r raised; treating request as sensitive",
            predicate,
            exc_info=True,
        )
        return True


@dataclass(frozen=True)
class InteractiveMatcher:
    """
    Matches server-rendered admin requests.

    ``pages`` and ``actions`` accept a single string or a sequence. An empty
    string in ``actions`` matches a request with no action parameter.
    """

    pages: tuple[str, ...]
    actions: tuple[str, ...]
    method: str = ANY_METHOD
    predicate: Optional[RequestPredicate] = None

    def __post_init__(self):
        object.__setattr__(self, "pages", _as_tuple(self.pages))
        object.__setattr__(self, "actions", _as_tuple(self.actions))
        object.__setattr__(self, "method", self.method.upper())

    @property
    def is_empty(self) -> bool:
        return not self.pages or not self.actions

    def matches(self, request: InboundRequest) -> bool:
        if request.page not in self.pages:
            return False
        if request.action_name not in self.actions:
            return False
        if self.method != ANY_METHOD and request.verb != self.method:
            return False
        return _evaluate(self.predicate, request)


@dataclass(frozen=True)
class AsyncRpcMatcher:
    """Matches in-page RPC calls by action name only."""

    actions: tuple[str, ...]

    def __post_init__(self):
        object.__setattr__(self, "actions", _as_tuple(self.actions))

    @property
    def is_empty(self) -> bool:
        return not self.actions

    def matches(self, request: InboundRequest) -> bool:
        return str(request.param("action", "") or "") in self.actions


@dataclass(frozen=True)
class ApiMatcher:
    """
    Matches declarative-API requests.

    ``route`` is a regular expression searched against the request path;
    ``methods`` is the set of verbs the rule covers.
    """

    route: str
    methods: tuple[str, ...]
    predicate: Optional[RequestPredicate] = None
    _pattern: Optional[Pattern[str]] = field(
        default=None, init=False, repr=False, compare=False
    )

    def __post_init__(self):
        methods = tuple(m.upper() for m in _as_tuple(self.methods))
        object.__setattr__(self, "methods", methods)
        if self.route:
            object.__setattr__(self, "_pattern", re.compile(self.route))

    @property
    def is_empty(self) -> bool:
        return not self.route or not self.methods

    def matches(self, request: InboundRequest) -> bool:
        if self._pattern is None or not self._pattern.search(request.path):
            return False
        if request.verb not in self.methods:
            return False
        return _evaluate(self.predicate, request)


SurfaceMatcher = Union[InteractiveMatcher, AsyncRpcMatcher, ApiMatcher]


@dataclass(frozen=True)
class Rule:
    """
    One sensitive operation.

    Invariant: at least one non-empty surface matcher.
    """

    id: str
    label: str
    category: str
    interactive: Optional[InteractiveMatcher] = None
    async_rpc: Optional[AsyncRpcMatcher] = None
    api: Optional[ApiMatcher] = None

    def __post_init__(self):
        if not self.id:
            raise ValueError("Rule id must not be empty")
        matchers = [m for m in (self.interactive, self.async_rpc, self.api) if m]
        if not any(not m.is_empty for m in matchers):
            raise ValueError(f"Rule {self.id!r} has no non-empty surface matcher")

    def matcher_for(self, surface: Surface) -> Optional[SurfaceMatcher]:
        if surface == Surface.INTERACTIVE:
            return self.interactive
        if surface == Surface.ASYNC_RPC:
            return self.async_rpc
        if surface == Surface.API:
            return self.api
        return None

    @property
    def surfaces(self) -> tuple[Surface, ...]:
        return tuple(
            s
            for s in (Surface.INTERACTIVE, Surface.ASYNC_RPC, Surface.API)
            if self.matcher_for(s) is not None
        )

    def matches(self, surface: Surface, request: InboundRequest) -> bool:
        matcher = self.matcher_for(surface)
        if matcher is None or matcher.is_empty:
            return False
        return matcher.matches(request)
