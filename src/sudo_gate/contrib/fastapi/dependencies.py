from typing import Callable, Optional
import logging
from fastapi import Depends, Request

from sudo_gate.application.gate import Gate
from sudo_gate.contrib.dependency_injector import SudoGateContainer
from sudo_gate.contrib.transport import (
    TransportSettings,
    build_request,
    parse_body,
    parse_query,
)
from sudo_gate.context import RequestScope
from sudo_gate.domain.errors import ElevationRequiredError, NotAllowedError
from sudo_gate.domain.value_objects import InboundRequest
from sudo_gate.factory import get_default_container
from sudo_gate.identity import Identity, get_identity as _get_identity

logger = logging.getLogger(__name__)

CONTAINER_STATE_KEY = "sudo_gate_container"
SCOPE_STATE_KEY = "sudo_scope"


def get_container(request: Request) -> SudoGateContainer:
    """Container registered on ``app.state``, else the process default."""
    container = getattr(request.app.state, CONTAINER_STATE_KEY, None)
    if container is None:
        container = get_default_container()
    return container


async def to_inbound_request(
    request: Request, settings: Optional[TransportSettings] = None
) -> InboundRequest:
    """Snapshot a Starlette request. Reading the body caches it for the endpoint."""
    settings = settings or TransportSettings()
    raw = await request.body()
    return build_request(
        settings,
        method=request.method,
        path=request.url.path,
        query=parse_query(request.url.query),
        body=parse_body(request.headers.get("content-type"), raw),
        headers=dict(request.headers),
        cookies=dict(request.cookies),
        url=str(request.url.path)
        + (f"?{request.url.query}" if request.url.query else ""),
        raw_body=raw,
    )


async def get_request_scope(request: Request) -> RequestScope:
    """
    Scope bound by ``SudoGateMiddleware``.

    Without the middleware a scope is built on the spot; endpoints using it
    must then apply its mutations themselves.
    """
    scope = getattr(request.state, SCOPE_STATE_KEY, None)
    if scope is not None:
        return scope
    scope = RequestScope.for_request(_get_identity(), await to_inbound_request(request))
    setattr(request.state, SCOPE_STATE_KEY, scope)
    return scope


def get_gate(container: SudoGateContainer = Depends(get_container)) -> Gate:
    return container.gate()


def require_principal(scope: RequestScope = Depends(get_request_scope)) -> Identity:
    if not scope.identity.is_authenticated:
        raise NotAllowedError()
    return scope.identity


def require_elevation(rule_id: str = "route.sudo") -> Callable:
    """
    Factory for a dependency that requires an active elevated session.

    Guards routes that are not covered by a registry rule. Raises
    ``ElevationRequiredError`` (403 ``sudo_required``) otherwise.

    Example:
        @app.delete("/backups/{name}", dependencies=[Depends(require_elevation("backup.delete"))])
    """

    async def dependency(
        identity: Identity = Depends(require_principal),
        scope: RequestScope = Depends(get_request_scope),
        container: SudoGateContainer = Depends(get_container),
    ) -> Identity:
        session = container.session()
        if not await session.is_active(identity.user_id, scope):
            logger.info(f"Elevation required for {rule_id} (principal {identity.user_id})")
            raise ElevationRequiredError(rule_id)
        return identity

    return dependency
