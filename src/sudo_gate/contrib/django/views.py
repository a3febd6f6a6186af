from typing import Any, List
from django.http import HttpRequest, HttpResponse, HttpResponseRedirect, JsonResponse
from django.urls import path
from django.views import View

from sudo_gate.application.results import ChallengeOutcome
from sudo_gate.contrib.dependency_injector import SudoGateContainer
from sudo_gate.contrib.transport import parse_body, render_replay_form, wants_html
from sudo_gate.context import RequestScope
from sudo_gate.domain.errors import NotAllowedError, SudoGateError
from sudo_gate.factory import get_default_container
from .middleware import apply_mutations, get_request_scope


class SudoView(View):
    """
    Base view for the challenge endpoints.

    Resolves the container, maps domain errors to JSON and writes the
    scope's pending cookie changes onto every response.
    """

    container: SudoGateContainer = None

    def get_container(self) -> SudoGateContainer:
        return self.container or get_default_container()

    def parse_body(self, request: HttpRequest) -> dict[str, Any]:
        if request.content_type == "multipart/form-data":
            return request.POST.dict()
        return parse_body(request.content_type, request.body)

    def principal(self, scope: RequestScope) -> str:
        if not scope.identity.is_authenticated:
            raise NotAllowedError()
        return scope.principal_id

    async def dispatch(self, request: HttpRequest, *args, **kwargs) -> HttpResponse:
        scope = get_request_scope(request)
        try:
            response = await super().dispatch(request, *args, **kwargs)
        except SudoGateError as e:
            response = JsonResponse(e.to_dict(), status=e.status_code)
            if e.code == "locked_out":
                response["Retry-After"] = str(e.details.get("remaining", 0))
        apply_mutations(response, scope.take_mutations())
        return response

    def outcome_response(
        self, request: HttpRequest, outcome: ChallengeOutcome
    ) -> HttpResponse:
        if wants_html(request.headers.get("Accept")) and outcome.is_complete:
            if outcome.replay is not None and not outcome.replay.is_redirect:
                return HttpResponse(render_replay_form(outcome.replay))
            if outcome.redirect_url:
                return HttpResponseRedirect(outcome.redirect_url)
        return JsonResponse(outcome.to_dict())


class ChallengeView(SudoView):
    async def get(self, request: HttpRequest) -> JsonResponse:
        scope = get_request_scope(request)
        principal_id = self.principal(scope)
        container = self.get_container()
        session = container.session()

        stashed = await container.challenge().describe(request.GET.get("stash_key"), scope)
        pending = await session.get_two_factor_pending(principal_id, scope)
        return JsonResponse(
            {
                "rule_id": stashed.rule_id if stashed else None,
                "label": stashed.label if stashed else None,
                "method": stashed.method if stashed else None,
                "two_factor_pending": pending is not None,
                "locked_out": await session.is_locked_out(principal_id),
                "lockout_remaining": await session.lockout_remaining(principal_id),
            }
        )


class PasswordView(SudoView):
    async def post(self, request: HttpRequest) -> HttpResponse:
        data = self.parse_body(request)
        scope = get_request_scope(request)
        outcome = await self.get_container().challenge().authenticate(
            str(data.get("password", "")), data.get("stash_key"), scope
        )
        return self.outcome_response(request, outcome)


class SecondFactorView(SudoView):
    async def post(self, request: HttpRequest) -> HttpResponse:
        data = self.parse_body(request)
        scope = get_request_scope(request)
        outcome = await self.get_container().challenge().verify_second_factor(
            str(data.get("code", "")), data.get("stash_key"), scope
        )
        return self.outcome_response(request, outcome)


class StatusView(SudoView):
    async def get(self, request: HttpRequest) -> JsonResponse:
        scope = get_request_scope(request)
        principal_id = self.principal(scope)
        session = self.get_container().session()
        active = await session.is_active(principal_id, scope)
        remaining = await session.time_remaining(principal_id) if active else 0
        return JsonResponse({"active": active, "remaining": remaining})


class DeactivateView(SudoView):
    async def post(self, request: HttpRequest) -> JsonResponse:
        scope = get_request_scope(request)
        principal_id = self.principal(scope)
        await self.get_container().session().deactivate(principal_id, scope)
        return JsonResponse({"active": False})


class NoticeView(SudoView):
    async def get(self, request: HttpRequest) -> JsonResponse:
        scope = get_request_scope(request)
        principal_id = self.principal(scope)
        notice = await self.get_container().gate().consume_blocked_notice(principal_id)
        return JsonResponse({"notice": notice})


def get_sudo_urls() -> List[Any]:
    """
    Factory to get URL patterns for the challenge endpoints.

    Mount under the prefix matching ``challenge_path``:
        path("sudo/", include(get_sudo_urls()))
    """
    return [
        path("challenge/", ChallengeView.as_view(), name="sudo_challenge"),
        path("challenge/password/", PasswordView.as_view(), name="sudo_password"),
        path("challenge/two-factor/", SecondFactorView.as_view(), name="sudo_two_factor"),
        path("status/", StatusView.as_view(), name="sudo_status"),
        path("deactivate/", DeactivateView.as_view(), name="sudo_deactivate"),
        path("notice/", NoticeView.as_view(), name="sudo_notice"),
    ]
