from typing import Protocol, runtime_checkable

from sudo_gate.domain.events import AuditEvent


@runtime_checkable
class AuditSink(Protocol):
    """
    Protocol for audit signals.

    Fire-and-forget: implementations must not raise into the caller and
    the gate never waits on delivery.
    """

    def emit(self, event: AuditEvent) -> None:
        ...
