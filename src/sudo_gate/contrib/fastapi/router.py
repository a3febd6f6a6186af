from typing import Optional
from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from pydantic import BaseModel

from sudo_gate.application.results import ChallengeOutcome
from sudo_gate.contrib.dependency_injector import SudoGateContainer
from sudo_gate.contrib.transport import render_replay_form, wants_html
from sudo_gate.context import RequestScope
from sudo_gate.identity import Identity
from .dependencies import get_container, get_request_scope, require_principal
from .middleware import apply_mutations


class PasswordRequest(BaseModel):
    password: str
    stash_key: Optional[str] = None


class SecondFactorRequest(BaseModel):
    code: str
    stash_key: Optional[str] = None


def _finish(response: Response, scope: RequestScope) -> Response:
    apply_mutations(response, scope.take_mutations())
    return response


def _outcome_response(
    request: Request, outcome: ChallengeOutcome, scope: RequestScope
) -> Response:
    if wants_html(request.headers.get("accept")) and outcome.is_complete:
        if outcome.replay is not None and not outcome.replay.is_redirect:
            return _finish(HTMLResponse(render_replay_form(outcome.replay)), scope)
        if outcome.redirect_url:
            return _finish(
                RedirectResponse(outcome.redirect_url, status_code=status.HTTP_303_SEE_OTHER),
                scope,
            )
    return _finish(JSONResponse(outcome.to_dict()), scope)


# -----------------------------------------------------------------------------
# Module-level handlers
# -----------------------------------------------------------------------------


async def challenge_info(
    stash_key: Optional[str] = None,
    identity: Identity = Depends(require_principal),
    scope: RequestScope = Depends(get_request_scope),
    container: SudoGateContainer = Depends(get_container),
):
    """What the challenge screen needs to render."""
    session = container.session()
    stashed = await container.challenge().describe(stash_key, scope)
    pending = await session.get_two_factor_pending(identity.user_id, scope)
    return {
        "rule_id": stashed.rule_id if stashed else None,
        "label": stashed.label if stashed else None,
        "method": stashed.method if stashed else None,
        "two_factor_pending": pending is not None,
        "locked_out": await session.is_locked_out(identity.user_id),
        "lockout_remaining": await session.lockout_remaining(identity.user_id),
    }


async def submit_password(
    request: Request,
    data: PasswordRequest,
    scope: RequestScope = Depends(get_request_scope),
    container: SudoGateContainer = Depends(get_container),
):
    outcome = await container.challenge().authenticate(data.password, data.stash_key, scope)
    return _outcome_response(request, outcome, scope)


async def submit_second_factor(
    request: Request,
    data: SecondFactorRequest,
    scope: RequestScope = Depends(get_request_scope),
    container: SudoGateContainer = Depends(get_container),
):
    outcome = await container.challenge().verify_second_factor(
        data.code, data.stash_key, scope
    )
    return _outcome_response(request, outcome, scope)


async def session_status(
    identity: Identity = Depends(require_principal),
    scope: RequestScope = Depends(get_request_scope),
    container: SudoGateContainer = Depends(get_container),
):
    session = container.session()
    active = await session.is_active(identity.user_id, scope)
    return _finish(
        JSONResponse(
            {
                "active": active,
                "remaining": await session.time_remaining(identity.user_id) if active else 0,
            }
        ),
        scope,
    )


async def deactivate(
    identity: Identity = Depends(require_principal),
    scope: RequestScope = Depends(get_request_scope),
    container: SudoGateContainer = Depends(get_container),
):
    await container.session().deactivate(identity.user_id, scope)
    return _finish(JSONResponse({"active": False}), scope)


async def blocked_notice(
    identity: Identity = Depends(require_principal),
    container: SudoGateContainer = Depends(get_container),
):
    """Read-and-clear notice about the last soft-blocked action."""
    notice = await container.gate().consume_blocked_notice(identity.user_id)
    return {"notice": notice}


# -----------------------------------------------------------------------------
# Router Factory
# -----------------------------------------------------------------------------


def create_sudo_router(prefix: str = "/sudo") -> APIRouter:
    """
    Factory to create a FastAPI router with the challenge endpoints.

    The prefix should match ``challenge_path`` in the gate settings
    (``/sudo/challenge`` by default).
    """
    router = APIRouter(prefix=prefix, tags=["sudo"])

    router.add_api_route("/challenge", challenge_info, methods=["GET"])
    router.add_api_route("/challenge/password", submit_password, methods=["POST"])
    router.add_api_route("/challenge/two-factor", submit_second_factor, methods=["POST"])
    router.add_api_route("/status", session_status, methods=["GET"])
    router.add_api_route("/deactivate", deactivate, methods=["POST"])
    router.add_api_route("/notice", blocked_notice, methods=["GET"])

    return router
