"""Session records flowing from the tracker into storage."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from voice_activity.exceptions import DataError, ValidationError


class TransitionKind(str, Enum):
    JOIN = "join"
    LEAVE = "leave"
    MOVE = "move"
    NOOP = "noop"


@dataclass(frozen=True)
class TransitionEvent:
    """One presence change reported by the platform."""

    user_id: str
    tenant_id: str
    old_resource_id: Optional[str]
    new_resource_id: Optional[str]
    timestamp: int
    display_name: str = ""

    @property
    def user_key(self) -> tuple[str, str]:
        return (self.tenant_id, self.user_id)


@dataclass
class ActiveSession:
    user_id: str
    tenant_id: str
    resource_id: str
    start_time: int
    display_name: str = ""

    def to_payload(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "tenant_id": self.tenant_id,
            "resource_id": self.resource_id,
            "start_time": self.start_time,
            "display_name": self.display_name,
        }

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "ActiveSession":
        """Rebuild from a cached mapping; raises ``DataError`` when fields are missing or mistyped."""
        try:
            return cls(
                user_id=str(payload["user_id"]),
                tenant_id=str(payload["tenant_id"]),
                resource_id=str(payload["resource_id"]),
                start_time=int(payload["start_time"]),
                display_name=str(payload.get("display_name") or ""),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise DataError("Malformed active session payload", payload=payload) from exc

    def elapsed_ms(self, now: int) -> int:
        return max(0, now - self.start_time)


@dataclass(frozen=True)
class CompletedSession:
    """Immutable record of a finished session; identity is its natural key."""

    user_id: str
    tenant_id: str
    resource_id: str
    start_time: int
    end_time: int

    def __post_init__(self) -> None:
        if self.end_time < self.start_time:
            raise ValidationError(
                "Completed session ends before it starts",
                start_time=self.start_time,
                end_time=self.end_time,
            )

    @property
    def duration_ms(self) -> int:
        return self.end_time - self.start_time

    @property
    def natural_key(self) -> tuple[str, str, str, int, int]:
        return (self.tenant_id, self.user_id, self.resource_id, self.start_time, self.end_time)

    @classmethod
    def from_active(cls, session: ActiveSession, end_time: int) -> "CompletedSession":
        """Close ``session`` at ``end_time``; a clock running backwards yields a zero-length session."""
        return cls(
            user_id=session.user_id,
            tenant_id=session.tenant_id,
            resource_id=session.resource_id,
            start_time=session.start_time,
            end_time=max(end_time, session.start_time),
        )
