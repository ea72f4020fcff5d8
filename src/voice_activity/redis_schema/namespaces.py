from __future__ import annotations

"""Namespace utilities shared by Redis schema helpers."""


import re
from dataclasses import dataclass
from enum import Enum

from voice_activity.exceptions import ValidationError

# Unicode word characters so localized role names remain valid segments.
_SEGMENT_RE = re.compile(r"^[\w.\-\[\]]+$")


class RedisNamespace(str, Enum):
    """Top-level key namespaces; every key below them is tenant scoped."""

    SESSIONS = "voice:session"
    ACTIVITY = "voice:activity"
    SETTINGS = "voice:settings"
    REPORTS = "voice:report"


@dataclass(frozen=True)
class KeyBuilder:
    """Compose colon-delimited Redis keys."""

    namespace: RedisNamespace
    segments: tuple[str, ...]

    def render(self) -> str:
        return ":".join([self.namespace.value, *self.segments])


def sanitize_segment(segment: object) -> str:
    """Return a key segment, raising if it would break the colon layout."""

    normalized = str(segment).strip().replace(" ", "_")
    if not normalized or not _SEGMENT_RE.match(normalized):
        raise ValidationError(f"Invalid Redis key segment: {segment!r}", segment=segment)
    return normalized
