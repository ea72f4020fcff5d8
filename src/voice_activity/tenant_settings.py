"""
Per-tenant configuration reads with read-through caching.

Settings CRUD lives outside the core; ``TenantSettingsSource`` is the read side
of that collaborator. ``TenantSettingsCache`` memoizes lookups for the tenant
configuration TTL and exposes invalidation hooks the CRUD layer calls after a
write.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, Optional, Protocol

from voice_activity.cache import CacheTTL, ReadThroughCache
from voice_activity.redis_protocol.error_types import PARSING_ERRORS
from voice_activity.redis_schema import TenantAllRulesKey, TenantExclusionsKey, TenantRuleKey

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExclusionPolicy:
    """Resources that never accrue duration; fully excluded ones are not even logged."""

    fully_excluded: FrozenSet[str] = field(default_factory=frozenset)
    activity_limited: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def excluded(self) -> FrozenSet[str]:
        return self.fully_excluded | self.activity_limited

    def is_tracked(self, resource_id: Optional[str]) -> bool:
        return resource_id is not None and resource_id not in self.excluded

    def logs_activity(self, resource_id: Optional[str]) -> bool:
        return resource_id is not None and resource_id not in self.fully_excluded

    def to_payload(self) -> Dict[str, list]:
        return {"fully_excluded": sorted(self.fully_excluded), "activity_limited": sorted(self.activity_limited)}

    @classmethod
    def from_payload(cls, payload: Dict[str, Iterable[str]]) -> "ExclusionPolicy":
        return cls(
            fully_excluded=frozenset(str(item) for item in payload["fully_excluded"]),
            activity_limited=frozenset(str(item) for item in payload["activity_limited"]),
        )


class TenantSettingsSource(Protocol):
    async def fetch_exclusions(self, tenant_id: str) -> ExclusionPolicy: ...

    async def fetch_activity_threshold_hours(self, tenant_id: str, filter_name: str) -> Optional[float]: ...


class InMemoryTenantSettingsSource:
    """Dictionary-backed source for embedding and tests."""

    def __init__(self) -> None:
        self._exclusions: Dict[str, ExclusionPolicy] = {}
        self._thresholds: Dict[tuple[str, str], float] = {}

    def set_exclusions(
        self, tenant_id: str, *, fully_excluded: Iterable[str] = (), activity_limited: Iterable[str] = ()
    ) -> None:
        self._exclusions[tenant_id] = ExclusionPolicy(frozenset(fully_excluded), frozenset(activity_limited))

    def set_activity_threshold(self, tenant_id: str, filter_name: str, hours: float) -> None:
        self._thresholds[(tenant_id, filter_name)] = hours

    async def fetch_exclusions(self, tenant_id: str) -> ExclusionPolicy:
        return self._exclusions.get(tenant_id, ExclusionPolicy())

    async def fetch_activity_threshold_hours(self, tenant_id: str, filter_name: str) -> Optional[float]:
        return self._thresholds.get((tenant_id, filter_name))


class TenantSettingsCache:
    def __init__(self, source: TenantSettingsSource, cache: ReadThroughCache, ttl: CacheTTL | None = None):
        self._source = source
        self._cache = cache
        self._ttl = ttl or CacheTTL()

    async def get_exclusions(self, tenant_id: str) -> ExclusionPolicy:
        return await self._cache.get_or_load(
            TenantExclusionsKey(tenant_id).key(),
            lambda: self._source.fetch_exclusions(tenant_id),
            self._ttl.tenant_config,
            encode=ExclusionPolicy.to_payload,
            decode=ExclusionPolicy.from_payload,
        )

    async def get_activity_threshold_hours(self, tenant_id: str, filter_name: str, default: float) -> float:
        """Configured threshold for ``filter_name``; ``default`` when the tenant has none."""

        async def load() -> Dict[str, Optional[float]]:
            return {"hours": await self._source.fetch_activity_threshold_hours(tenant_id, filter_name)}

        cached = await self._cache.get_or_load(TenantRuleKey(tenant_id, filter_name).key(), load, self._ttl.tenant_config)
        try:
            hours = cached["hours"]
            return default if hours is None else float(hours)
        except PARSING_ERRORS as exc:  # policy_guard: allow-silent-handler
            logger.warning("Malformed threshold for tenant %s filter %s: %s", tenant_id, filter_name, exc)
            return default

    async def invalidate_exclusions(self, tenant_id: str) -> None:
        await self._cache.invalidate(TenantExclusionsKey(tenant_id).key())

    async def invalidate_threshold(self, tenant_id: str, filter_name: str) -> None:
        """Drop the rule and the tenant-wide rules aggregate derived from it."""
        await self._cache.invalidate(
            TenantRuleKey(tenant_id, filter_name).key(),
            TenantAllRulesKey(tenant_id).key(),
        )


__all__ = [
    "ExclusionPolicy",
    "InMemoryTenantSettingsSource",
    "TenantSettingsCache",
    "TenantSettingsSource",
]
