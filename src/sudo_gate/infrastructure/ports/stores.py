from typing import Any, Optional, Protocol, runtime_checkable


@runtime_checkable
class DurableStore(Protocol):
    """
    Protocol for durable per-principal key/value state.

    No TTL: elevation and lockout records are cleared explicitly or by the
    grace-window logic. Values are JSON-safe dicts.
    """

    async def get(self, principal_id: str, key: str) -> Optional[dict[str, Any]]:
        """Return the stored value, or None if absent or unreadable."""
        ...

    async def set(self, principal_id: str, key: str, value: dict[str, Any]) -> None:
        """Store a value. Raises if the write did not happen."""
        ...

    async def delete(self, principal_id: str, key: str) -> None:
        ...


@runtime_checkable
class EphemeralStore(Protocol):
    """
    Protocol for short-lived TTL-keyed records.

    Used for stashed requests, two-factor pending records and the blocked
    notice. A record must not be returned once its TTL has elapsed.
    """

    async def get(self, key: str) -> Optional[dict[str, Any]]:
        ...

    async def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...
