import logging
from typing import Dict, Optional

import bcrypt

from sudo_gate.infrastructure.ports.principals import Principal, PrincipalDirectory

logger = logging.getLogger("sudo_gate.infrastructure.adapters.principals")


def hash_password(password: str, rounds: int = 12) -> str:
    """Hash a password with bcrypt for storage."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds)).decode(
        "utf-8"
    )


def check_password(password: str, password_hash: str) -> bool:
    """Verify a password against its bcrypt hash."""
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


class InMemoryPrincipalDirectory(PrincipalDirectory):
    """
    In-memory principal directory backed by bcrypt hashes.

    Suitable for development and testing. Hosts with their own user store
    implement PrincipalDirectory against it instead.

    Usage:
        directory = InMemoryPrincipalDirectory()
        directory.add("42", "alice", "correct horse")
    """

    def __init__(self, rounds: int = 12):
        self._principals: Dict[str, Principal] = {}
        self._rounds = rounds

    def add(self, principal_id: str, username: str, password: str) -> Principal:
        principal = Principal(
            principal_id=principal_id,
            username=username,
            password_hash=hash_password(password, self._rounds),
        )
        self._principals[principal_id] = principal
        logger.debug(f"Registered principal: {principal_id}")
        return principal

    def set_password(self, principal_id: str, password: str) -> Principal:
        """Replace a principal's password, keeping the id and username."""
        current = self._principals[principal_id]
        return self.add(principal_id, current.username, password)

    async def get(self, principal_id: str) -> Optional[Principal]:
        return self._principals.get(principal_id)

    async def verify_password(self, principal_id: str, password: str) -> bool:
        principal = self._principals.get(principal_id)
        if principal is None:
            return False
        return check_password(password, principal.password_hash)
