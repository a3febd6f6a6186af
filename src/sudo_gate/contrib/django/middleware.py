from typing import Any, Optional
import logging
from django.conf import settings
from django.http import HttpRequest, HttpResponse, HttpResponseRedirect, JsonResponse

from sudo_gate.application.results import DecisionKind, GateDecision
from sudo_gate.contrib.dependency_injector import SudoGateContainer
from sudo_gate.contrib.transport import (
    TransportSettings,
    build_request,
    build_runtime,
    parse_body,
)
from sudo_gate.context import RequestScope, bind_scope, reset_scope
from sudo_gate.domain.errors import SurfaceDisabledError
from sudo_gate.domain.value_objects import InboundRequest, ResponseMutations
from sudo_gate.factory import get_default_container
from sudo_gate.identity import get_identity

logger = logging.getLogger(__name__)

SCOPE_ATTRIBUTE = "sudo_scope"


def _querydict(data) -> dict[str, Any]:
    """``name[]`` keys keep every value; other keys keep the last one."""
    result: dict[str, Any] = {}
    for key, values in data.lists():
        result[key] = list(values) if key.endswith("[]") else values[-1]
    return result


def to_inbound_request(
    request: HttpRequest, transport: Optional[TransportSettings] = None
) -> InboundRequest:
    transport = transport or TransportSettings()
    if request.content_type == "multipart/form-data":
        body, raw = _querydict(request.POST), b""
    else:
        raw = request.body
        body = parse_body(request.content_type, raw)
    return build_request(
        transport,
        method=request.method or "GET",
        path=request.path,
        query=_querydict(request.GET),
        body=body,
        headers=dict(request.headers),
        cookies=dict(request.COOKIES),
        url=request.get_full_path(),
        raw_body=raw,
    )


def apply_mutations(response: HttpResponse, mutations: ResponseMutations) -> None:
    """Write cookie instructions produced by the gate onto a response."""
    for cookie in mutations.cookies:
        if cookie.expires_cookie:
            response.delete_cookie(
                cookie.name,
                path=cookie.path,
                domain=cookie.domain,
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


def decision_response(decision: GateDecision) -> Optional[HttpResponse]:
    if decision.kind == DecisionKind.PASS:
        return None
    if decision.kind == DecisionKind.CHALLENGE:
        return HttpResponseRedirect(decision.redirect_url)
    return JsonResponse(decision.body or {}, status=decision.status_code)


def get_request_scope(request: HttpRequest) -> RequestScope:
    """Scope bound by ``SudoGateMiddleware``, or a fresh one for this request."""
    scope = getattr(request, SCOPE_ATTRIBUTE, None)
    if scope is None:
        scope = RequestScope.for_request(get_identity(), to_inbound_request(request))
        setattr(request, SCOPE_ATTRIBUTE, scope)
    return scope


class SudoGateMiddleware:
    """
    Runs the gate in front of every request.

    Place it after the authentication middleware. Settings:
    ``SUDO_GATE`` (gate config dict), ``SUDO_GATE_TRANSPORT`` (URL to
    surface mapping) and ``SUDO_GATE_PUBLIC_PATHS``.

    API paths are checked before URL resolution. Use ``sudo_required`` on
    the API views instead when unrouted paths must still answer 404.
    """

    async_capable = True
    sync_capable = False

    def __init__(self, get_response, container: Optional[SudoGateContainer] = None):
        self.get_response = get_response
        self._container = container
        self._transport_settings = getattr(settings, "SUDO_GATE_TRANSPORT", None)
        self._public_paths = getattr(settings, "SUDO_GATE_PUBLIC_PATHS", ["/health"])

    @property
    def container(self) -> SudoGateContainer:
        if self._container is None:
            self._container = get_default_container()
        return self._container

    def _is_public(self, path: str) -> bool:
        return any(path.startswith(p) for p in self._public_paths)

    def _transport(self, graphql_route: str) -> TransportSettings:
        data = dict(self._transport_settings or {})
        data.setdefault("graphql_route", graphql_route)
        return TransportSettings.from_mapping(data)

    async def __call__(self, request: HttpRequest) -> HttpResponse:
        if self._is_public(request.path):
            return await self.get_response(request)

        gate = self.container.gate()
        transport = self._transport(gate.config.graphql_route)
        inbound = to_inbound_request(request, transport)
        surface = gate.detect_surface(build_runtime(transport, request.path))

        scope = RequestScope.for_request(get_identity(), inbound)
        setattr(request, SCOPE_ATTRIBUTE, scope)
        token = bind_scope(scope)
        try:
            if surface.is_non_interactive:
                response = await self._run_guarded(gate, surface, request)
            else:
                decision = await gate.intercept(inbound, scope, surface)
                response = decision_response(decision)
                if response is None:
                    response = await self.get_response(request)
            apply_mutations(response, scope.take_mutations())
            return response
        finally:
            reset_scope(token)

    async def _run_guarded(self, gate, surface, request: HttpRequest) -> HttpResponse:
        try:
            gate.enforce_surface(surface)
        except SurfaceDisabledError as exc:
            return JsonResponse(exc.to_dict(), status=exc.status_code)
        try:
            return await self.get_response(request)
        finally:
            gate.release_surface()
