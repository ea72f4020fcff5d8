from __future__ import annotations

"""Tenant-scoped key helpers for sessions, snapshots, settings and reports."""


from dataclasses import dataclass
from datetime import date

from .namespaces import KeyBuilder, RedisNamespace, sanitize_segment


@dataclass(frozen=True)
class ActiveSessionKey:
    """String key holding one serialized ``ActiveSession``."""

    tenant_id: str
    user_id: str

    def key(self) -> str:
        return KeyBuilder(
            RedisNamespace.SESSIONS, (sanitize_segment(self.tenant_id), sanitize_segment(self.user_id))
        ).render()

    @staticmethod
    def prefix() -> str:
        return f"{RedisNamespace.SESSIONS.value}:"

    @classmethod
    def parse(cls, key: str) -> "ActiveSessionKey":
        """Inverse of ``key()``; raises ``ValueError`` for foreign keys."""
        if not key.startswith(cls.prefix()):
            raise ValueError(f"Not an active session key: {key!r}")
        remainder = key[len(cls.prefix()) :]
        tenant_id, sep, user_id = remainder.partition(":")
        if not sep or not tenant_id or not user_id or ":" in user_id:
            raise ValueError(f"Malformed active session key: {key!r}")
        return cls(tenant_id=tenant_id, user_id=user_id)


@dataclass(frozen=True)
class ActivitySnapshotKey:
    tenant_id: str
    user_id: str

    def key(self) -> str:
        return KeyBuilder(
            RedisNamespace.ACTIVITY, (sanitize_segment(self.tenant_id), sanitize_segment(self.user_id))
        ).render()


@dataclass(frozen=True)
class TenantExclusionsKey:
    """Excluded-resource policy of one tenant."""

    tenant_id: str

    def key(self) -> str:
        return KeyBuilder(RedisNamespace.SETTINGS, (sanitize_segment(self.tenant_id), "exclusions")).render()


@dataclass(frozen=True)
class TenantRuleKey:
    """Activity threshold rule for one role/filter of a tenant."""

    tenant_id: str
    filter_name: str

    def key(self) -> str:
        return KeyBuilder(
            RedisNamespace.SETTINGS,
            (sanitize_segment(self.tenant_id), "rule", sanitize_segment(self.filter_name)),
        ).render()


@dataclass(frozen=True)
class TenantAllRulesKey:
    """Aggregate of every rule in a tenant; derived from ``TenantRuleKey`` entries."""

    tenant_id: str

    def key(self) -> str:
        return KeyBuilder(RedisNamespace.SETTINGS, (sanitize_segment(self.tenant_id), "rules")).render()


@dataclass(frozen=True)
class ReportKey:
    """Deterministic key for a rendered report: tenant, filter and inclusive date range."""

    tenant_id: str
    filter_name: str
    start_date: date
    end_date: date

    def key(self) -> str:
        return KeyBuilder(
            RedisNamespace.REPORTS,
            (
                sanitize_segment(self.tenant_id),
                sanitize_segment(self.filter_name),
                self.start_date.isoformat(),
                self.end_date.isoformat(),
            ),
        ).render()
