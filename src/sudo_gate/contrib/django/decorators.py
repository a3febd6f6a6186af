from functools import wraps
from typing import Callable
from django.http import HttpRequest, JsonResponse

from sudo_gate.domain.errors import ElevationRequiredError, NotAllowedError
from sudo_gate.factory import get_default_container
from .middleware import get_request_scope


def _find_request(args) -> HttpRequest:
    # Function views get the request first; view methods get it after self
    for arg in args:
        if isinstance(arg, HttpRequest):
            return arg
    raise TypeError("sudo_required needs a view receiving an HttpRequest")


def sudo_required(rule_id: str = "view.sudo") -> Callable:
    """
    Decorator requiring an active elevated session for an async view.

    For views no registry rule covers. Responds 403 ``sudo_required``.
    """

    def decorator(view_func: Callable) -> Callable:
        @wraps(view_func)
        async def wrapper(*args, **kwargs):
            request = _find_request(args)
            scope = get_request_scope(request)
            if not scope.identity.is_authenticated:
                error = NotAllowedError()
                return JsonResponse(error.to_dict(), status=error.status_code)

            session = get_default_container().session()
            if not await session.is_active(scope.principal_id, scope):
                error = ElevationRequiredError(rule_id)
                return JsonResponse(error.to_dict(), status=error.status_code)
            return await view_func(*args, **kwargs)

        return wrapper

    return decorator
