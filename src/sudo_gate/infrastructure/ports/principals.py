from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable


@dataclass(frozen=True)
class Principal:
    """A principal as seen by the gate. The hash is opaque to the core."""

    principal_id: str
    username: str
    password_hash: str = ""


@runtime_checkable
class PrincipalDirectory(Protocol):
    """
    Protocol for the host's principal directory.

    The gate never stores or compares credentials itself; it asks the
    directory.
    """

    async def get(self, principal_id: str) -> Optional[Principal]:
        """Look up a principal by id."""
        ...

    async def verify_password(self, principal_id: str, password: str) -> bool:
        """
        Verify a plaintext password against the stored hash.

        Returns False for unknown principals rather than raising, so callers
        cannot tell the two apart.
        """
        ...
