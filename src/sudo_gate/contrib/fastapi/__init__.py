"""
FastAPI integration for py-sudo-gate.

Provides the gate middleware, dependencies, exception handlers and the
challenge router for FastAPI applications.
"""

from .dependencies import (
    get_container,
    get_request_scope,
    get_gate,
    require_principal,
    require_elevation,
    to_inbound_request,
)
from .middleware import (
    SudoGateMiddleware,
    apply_mutations,
    decision_response,
)
from .exception_handlers import register_exception_handlers
from .router import create_sudo_router, render_replay_form

__all__ = [
    "get_container",
    "get_request_scope",
    "get_gate",
    "require_principal",
    "require_elevation",
    "to_inbound_request",
    "SudoGateMiddleware",
    "apply_mutations",
    "decision_response",
    "register_exception_handlers",
    "create_sudo_router",
    "render_replay_form",
]
