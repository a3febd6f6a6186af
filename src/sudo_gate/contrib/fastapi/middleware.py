from typing import Callable, Optional
import logging
from fastapi import Request, Response
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.routing import Match

from sudo_gate.application.results import DecisionKind, GateDecision
from sudo_gate.contrib.dependency_injector import SudoGateContainer
from sudo_gate.contrib.transport import TransportSettings, build_runtime
from sudo_gate.context import RequestScope, bind_scope, reset_scope
from sudo_gate.domain.errors import SurfaceDisabledError
from sudo_gate.domain.value_objects import ResponseMutations, Surface
from sudo_gate.factory import get_default_container
from sudo_gate.identity import Identity, get_identity
from .dependencies import CONTAINER_STATE_KEY, SCOPE_STATE_KEY, to_inbound_request

logger = logging.getLogger(__name__)

IdentityResolver = Callable[[Request], Identity]


def _identity_from_context(request: Request) -> Identity:
    identity = getattr(request.state, "identity", None)
    return identity if identity is not None else get_identity()


def has_route(request: Request) -> bool:
    """Whether some route of the app fully matches the request (path and method)."""
    router = getattr(request.app, "router", None)
    if router is None:
        return True
    return any(route.matches(request.scope)[0] == Match.FULL for route in router.routes)


def apply_mutations(response: Response, mutations: ResponseMutations) -> None:
    """Write cookie instructions produced by the gate onto a response."""
    for cookie in mutations.cookies:
        if cookie.expires_cookie:
            response.delete_cookie(
                cookie.name,
                path=cookie.path,
                domain=cookie.domain,
                secure=cookie.secure,
                httponly=cookie.httponly,
                samesite=cookie.samesite,
            )
        else:
            response.set_cookie(
                cookie.name,
                cookie.value,
                max_age=cookie.max_age,
                path=cookie.path,
                domain=cookie.domain,
                secure=cookie.secure,
                httponly=cookie.httponly,
                samesite=cookie.samesite,
            )


def decision_response(decision: GateDecision) -> Optional[Response]:
    """Response for a gate decision, or None when the request may proceed."""
    if decision.kind == DecisionKind.PASS:
        return None
    if decision.kind == DecisionKind.CHALLENGE:
        return RedirectResponse(decision.redirect_url, status_code=decision.status_code)
    return JSONResponse(decision.body or {}, status_code=decision.status_code)


class SudoGateMiddleware(BaseHTTPMiddleware):
    """
    Runs the gate in front of every request.

    Must sit inside the authentication middleware so the identity is
    already known. Sensitive interactive requests are redirected to the
    challenge, async and API callers get a JSON error, and legacy RPC
    requests run under their surface policy.

    API requests are only gated once a route matches them; unrouted API
    paths fall through to the router and get its 404 or 405.
    """

    def __init__(
        self,
        app,
        container: Optional[SudoGateContainer] = None,
        identity_resolver: Optional[IdentityResolver] = None,
        transport: Optional[TransportSettings] = None,
        public_paths: Optional[list[str]] = None,
    ):
        super().__init__(app)
        self._container = container
        self.identity_resolver = identity_resolver or _identity_from_context
        self._transport = transport
        self.public_paths = public_paths or ["/health"]

    def _is_public(self, path: str) -> bool:
        return any(path.startswith(p) for p in self.public_paths)

    def _resolve_container(self, request: Request) -> SudoGateContainer:
        if self._container is not None:
            return self._container
        container = getattr(request.app.state, CONTAINER_STATE_KEY, None)
        return container if container is not None else get_default_container()

    async def dispatch(self, request: Request, call_next) -> Response:
        if self._is_public(request.url.path):
            return await call_next(request)

        gate = self._resolve_container(request).gate()
        transport = self._transport or TransportSettings(
            graphql_route=gate.config.graphql_route
        )
        inbound = await to_inbound_request(request, transport)
        surface = gate.detect_surface(build_runtime(transport, request.url.path))

        scope = RequestScope.for_request(self.identity_resolver(request), inbound)
        setattr(request.state, SCOPE_STATE_KEY, scope)
        token = bind_scope(scope)
        try:
            if surface == Surface.API and not has_route(request):
                response = await call_next(request)
            elif surface.is_non_interactive:
                response = await self._run_guarded(gate, surface, request, call_next)
            else:
                decision = await gate.intercept(inbound, scope, surface)
                response = decision_response(decision)
                if response is None:
                    response = await call_next(request)
            apply_mutations(response, scope.take_mutations())
            return response
        finally:
            reset_scope(token)

    async def _run_guarded(self, gate, surface, request: Request, call_next) -> Response:
        try:
            gate.enforce_surface(surface)
        except SurfaceDisabledError as exc:
            return JSONResponse(exc.to_dict(), status_code=exc.status_code)
        try:
            return await call_next(request)
        finally:
            gate.release_surface()
