import logging
from typing import Callable, Iterable, Optional

from sudo_gate.domain.events import AuditEvent
from sudo_gate.infrastructure.ports.audit import AuditSink

logger = logging.getLogger("sudo_gate.audit")

AuditSubscriber = Callable[[AuditEvent], None]


class LoggingAuditSink(AuditSink):
    """Writes every audit event to the ``sudo_gate.audit`` logger."""

    def __init__(self, level: int = logging.INFO):
        self.level = level

    def emit(self, event: AuditEvent) -> None:
        logger.log(
            self.level,
            f"{event.name} principal={event.principal_id}",
            extra={"audit_event": event.to_dict()},
        )


class DispatchingAuditSink(AuditSink):
    """
    Fans events out to subscribers.

    A failing subscriber is logged and skipped; the others still run and
    the caller never sees the error.
    """

    def __init__(self, subscribers: Optional[Iterable[AuditSubscriber]] = None):
        self._subscribers: list[AuditSubscriber] = list(subscribers or [])

    def subscribe(self, subscriber: AuditSubscriber) -> None:
        self._subscribers.append(subscriber)

    def emit(self, event: AuditEvent) -> None:
        for subscriber in self._subscribers:
            try:
                subscriber(event)
            except Exception:
                logger.exception(f"Audit subscriber failed for {event.name}")
