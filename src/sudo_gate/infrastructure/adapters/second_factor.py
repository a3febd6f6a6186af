"""
Second-factor providers.

The TOTP provider uses pyotp for authenticator-app codes (Google
Authenticator, Authy, ...). Principals without an enrolled secret do not
need a second factor.
"""

import logging
from typing import Dict, Optional

import pyotp

from sudo_gate.infrastructure.ports.second_factor import SecondFactorProvider

logger = logging.getLogger("sudo_gate.infrastructure.adapters.second_factor")


class InMemoryTOTPSecretStore:
    """
    In-memory store of base32 TOTP secrets keyed by principal id.

    For production, secrets belong in a persistent store with encryption
    at rest.
    """

    def __init__(self):
        self._secrets: Dict[str, str] = {}

    async def get(self, principal_id: str) -> Optional[str]:
        return self._secrets.get(principal_id)

    async def save(self, principal_id: str, secret: str) -> None:
        self._secrets[principal_id] = secret
        logger.debug(f"Saved TOTP secret for principal: {principal_id}")

    async def delete(self, principal_id: str) -> None:
        self._secrets.pop(principal_id, None)


class TOTPSecondFactorProvider(SecondFactorProvider):
    """TOTP second factor using pyotp."""

    def __init__(
        self,
        secrets: InMemoryTOTPSecretStore,
        issuer_name: str = "Sudo Gate",
        valid_window: int = 1,
    ):
        self.secrets = secrets
        self.issuer_name = issuer_name
        self.valid_window = valid_window

    async def is_required(self, principal_id: str) -> bool:
        return await self.secrets.get(principal_id) is not None

    async def validate(self, principal_id: str, submitted: str) -> bool:
        secret = await self.secrets.get(principal_id)
        if not secret or not submitted:
            return False
        totp = pyotp.TOTP(secret)
        return totp.verify(submitted.strip(), valid_window=self.valid_window)

    async def enroll(self, principal_id: str, username: str) -> tuple[str, str]:
        """
        Generate and store a new secret for a principal.

        Returns:
            Tuple of (base32 secret, provisioning URI for a QR code)
        """
        secret = pyotp.random_base32()
        uri = pyotp.TOTP(secret).provisioning_uri(
            name=username, issuer_name=self.issuer_name
        )
        await self.secrets.save(principal_id, secret)
        return secret, uri


class NoSecondFactorProvider(SecondFactorProvider):
    """Provider for hosts without any second factor: never required."""

    async def is_required(self, principal_id: str) -> bool:
        return False

    async def validate(self, principal_id: str, submitted: str) -> bool:
        return False
