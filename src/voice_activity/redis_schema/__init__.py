"""Redis key schema for the voice activity core."""

from .keys import (
    ActiveSessionKey,
    ActivitySnapshotKey,
    ReportKey,
    TenantAllRulesKey,
    TenantExclusionsKey,
    TenantRuleKey,
)
from .namespaces import KeyBuilder, RedisNamespace, sanitize_segment

__all__ = [
    "ActiveSessionKey",
    "ActivitySnapshotKey",
    "KeyBuilder",
    "RedisNamespace",
    "ReportKey",
    "TenantAllRulesKey",
    "TenantExclusionsKey",
    "TenantRuleKey",
    "sanitize_segment",
]
