"""
Exception handlers for FastAPI.

Maps domain errors to JSON responses carrying the error's stable code.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from sudo_gate.domain.errors import LockedOutError, SudoGateError


async def sudo_gate_error_handler(request: Request, exc: SudoGateError):
    """Handle any SudoGateError with its own status code."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def locked_out_error_handler(request: Request, exc: LockedOutError):
    """Handle LockedOutError (429) with a Retry-After header."""
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers={"Retry-After": str(max(exc.remaining, 0))},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register all sudo gate exception handlers on a FastAPI app.

    Usage:
        from sudo_gate.contrib.fastapi import register_exception_handlers

        app = FastAPI()
        register_exception_handlers(app)
    """
    app.add_exception_handler(LockedOutError, locked_out_error_handler)
    app.add_exception_handler(SudoGateError, sudo_gate_error_handler)
