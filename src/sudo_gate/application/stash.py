"""
Request stash: intercepted requests waiting for re-authentication.

Each stash entry is owned by one principal, keyed by a random 128-bit
key, expires after ``stash_ttl_seconds`` and is consumed at most once.
"""

import logging
import secrets
from datetime import timedelta
from typing import Optional

from sudo_gate.application.config import SudoGateConfig
from sudo_gate.clock import Clock, utcnow
from sudo_gate.domain.records import StashedRequest
from sudo_gate.domain.rules import Rule
from sudo_gate.domain.value_objects import InboundRequest
from sudo_gate.infrastructure.ports.stores import EphemeralStore

logger = logging.getLogger(__name__)

STASH_PREFIX = "sudo:stash:"


class RequestStash:
    def __init__(
        self,
        store: EphemeralStore,
        config: Optional[SudoGateConfig] = None,
        clock: Clock = utcnow,
    ):
        self.store = store
        self.config = config or SudoGateConfig()
        self._clock = clock

    @staticmethod
    def _key(key: str) -> str:
        return STASH_PREFIX + key

    async def save(self, principal_id: str, rule: Rule, request: InboundRequest) -> str:
        """
        Stash a request and return its key.

        Query and body parameters are stored as received, without any
        sanitising, so the replay is byte-for-byte the original.
        """
        key = secrets.token_hex(16)
        stashed = StashedRequest(
            key=key,
            principal_id=principal_id,
            rule_id=rule.id,
            label=rule.label,
            method=request.verb,
            url=request.full_url,
            query_params=dict(request.query),
            body_params=dict(request.body),
            created_at=self._clock(),
        )
        await self.store.set(
            self._key(key), stashed.to_dict(), self.config.stash_ttl_seconds
        )
        logger.debug(f"Stashed {rule.id} request for principal {principal_id}")
        return key

    async def get(self, key: str, principal_id: str) -> Optional[StashedRequest]:
        """The stashed request, only for its owner and only before it expires."""
        if not key:
            return None

        data = await self.store.get(self._key(key))
        if not data:
            return None

        try:
            stashed = StashedRequest.from_dict(key, data)
        except (KeyError, TypeError, ValueError):
            logger.warning("Ignoring malformed stash record")
            return None

        if stashed.principal_id != principal_id:
            logger.warning(
                f"Principal {principal_id} asked for a stash owned by someone else"
            )
            return None

        # Stores without native TTL may hand back stale entries
        if stashed.created_at is not None:
            ttl = timedelta(seconds=self.config.stash_ttl_seconds)
            if self._clock() >= stashed.created_at + ttl:
                return None

        return stashed

    async def delete(self, key: str) -> None:
        if key:
            await self.store.delete(self._key(key))

    async def exists(self, key: str, principal_id: str) -> bool:
        return await self.get(key, principal_id) is not None
