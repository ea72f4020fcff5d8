"""Type-specific cache lifetimes."""

from __future__ import annotations

from dataclasses import dataclass

from voice_activity.config.shared import CacheSettings, get_cache_settings


@dataclass(frozen=True)
class CacheTTL:
    active_session: int = 86_400
    activity_snapshot: int = 300
    tenant_config: int = 600

    @classmethod
    def from_settings(cls, settings: CacheSettings | None = None) -> "CacheTTL":
        resolved = settings or get_cache_settings()
        return cls(
            activity_snapshot=resolved.activity_snapshot_ttl,
            tenant_config=resolved.tenant_config_ttl,
        )
