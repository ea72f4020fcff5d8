from datetime import date

import pytest

from voice_activity.exceptions import ValidationError
from voice_activity.redis_schema import (
    ActiveSessionKey,
    ActivitySnapshotKey,
    ReportKey,
    TenantAllRulesKey,
    TenantExclusionsKey,
    TenantRuleKey,
    sanitize_segment,
)


def test_keys_are_tenant_scoped():
    assert ActiveSessionKey("g1", "u1").key() == "voice:session:g1:u1"
    assert ActivitySnapshotKey("g1", "u1").key() == "voice:activity:g1:u1"
    assert TenantExclusionsKey("g1").key() == "voice:settings:g1:exclusions"
    assert TenantRuleKey("g1", "정회원").key() == "voice:settings:g1:rule:정회원"
    assert TenantAllRulesKey("g1").key() == "voice:settings:g1:rules"
    assert ReportKey("g1", "members", date(2024, 3, 1), date(2024, 3, 31)).key() == (
        "voice:report:g1:members:2024-03-01:2024-03-31"
    )


def test_session_key_parse_rejects_foreign_keys():
    assert ActiveSessionKey.parse("voice:session:g1:u1") == ActiveSessionKey("g1", "u1")
    for key in ("voice:activity:g1:u1", "voice:session:g1", "voice:session:g1:u1:extra"):
        with pytest.raises(ValueError):
            ActiveSessionKey.parse(key)


def test_segments_cannot_break_the_colon_layout():
    assert sanitize_segment(" late night ") == "late_night"
    with pytest.raises(ValidationError):
        sanitize_segment("a:b")
    with pytest.raises(ValidationError):
        sanitize_segment("")
