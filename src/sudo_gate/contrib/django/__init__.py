"""
Django integration for py-sudo-gate.

Provides the gate middleware, challenge views and the ``sudo_required``
view decorator.
"""

from .middleware import (
    SudoGateMiddleware,
    apply_mutations,
    get_request_scope,
    to_inbound_request,
)
from .decorators import sudo_required
from .views import get_sudo_urls

__all__ = [
    "SudoGateMiddleware",
    "apply_mutations",
    "get_request_scope",
    "to_inbound_request",
    "sudo_required",
    "get_sudo_urls",
]
