"""Active session state: distributed cache first, local memory mirror second."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from voice_activity.cache import ReadThroughCache
from voice_activity.data_models import ActiveSession
from voice_activity.exceptions import DataError
from voice_activity.redis_protocol.error_types import REDIS_ERRORS
from voice_activity.redis_schema import ActiveSessionKey

logger = logging.getLogger(__name__)

UserKey = Tuple[str, str]


class ActiveSessionStore:
    """
    One record per (tenant, user).

    Writes go to the cache with the session TTL and are mirrored locally. Reads
    prefer the cache and fall back to the local mirror on a miss or failure.
    Cache problems are logged and never raised.
    """

    def __init__(self, cache: ReadThroughCache, ttl_seconds: int = 86_400):
        self._cache = cache
        self.ttl_seconds = ttl_seconds
        self.local: Dict[UserKey, ActiveSession] = {}

    @staticmethod
    def _key(tenant_id: str, user_id: str) -> str:
        return ActiveSessionKey(tenant_id, user_id).key()

    async def get(self, tenant_id: str, user_id: str) -> Optional[ActiveSession]:
        try:
            payload = await self._cache.get_json(self._key(tenant_id, user_id))
        except REDIS_ERRORS as exc:  # Local mirror answers instead  # policy_guard: allow-silent-handler
            logger.warning("Session cache read failed for %s/%s: %s", tenant_id, user_id, exc)
            payload = None

        if payload is not None:
            try:
                session = ActiveSession.from_payload(payload)
            except DataError as exc:  # Malformed entry is a miss  # policy_guard: allow-silent-handler
                logger.warning("Ignoring malformed session record for %s/%s: %s", tenant_id, user_id, exc)
            else:
                self.local[(tenant_id, user_id)] = session
                return session

        return self.local.get((tenant_id, user_id))

    async def put(self, session: ActiveSession) -> None:
        try:
            await self._cache.set_json(self._key(session.tenant_id, session.user_id), session.to_payload(), self.ttl_seconds)
        except REDIS_ERRORS as exc:  # Continue on local state  # policy_guard: allow-silent-handler
            logger.warning("Session cache write failed for %s/%s: %s", session.tenant_id, session.user_id, exc)
        self.local[(session.tenant_id, session.user_id)] = session

    async def delete(self, tenant_id: str, user_id: str) -> None:
        try:
            await self._cache.invalidate(self._key(tenant_id, user_id))
        except REDIS_ERRORS as exc:  # Continue on local state  # policy_guard: allow-silent-handler
            logger.warning("Session cache delete failed for %s/%s: %s", tenant_id, user_id, exc)
        self.local.pop((tenant_id, user_id), None)

    async def list_cached_keys(self) -> List[ActiveSessionKey]:
        """Every active-session key currently in the cache."""
        try:
            raw_keys = await self._cache.keys_with_prefix(ActiveSessionKey.prefix())
        except REDIS_ERRORS as exc:  # policy_guard: allow-silent-handler
            logger.warning("Unable to enumerate cached sessions: %s", exc)
            return []

        keys: List[ActiveSessionKey] = []
        for raw_key in raw_keys:
            try:
                keys.append(ActiveSessionKey.parse(raw_key))
            except ValueError as exc:  # policy_guard: allow-silent-handler
                logger.warning("Skipping unrecognised session key: %s", exc)
        return keys

    def __len__(self) -> int:
        return len(self.local)
