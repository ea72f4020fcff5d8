"""Classification of presence transitions into tracking actions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from voice_activity.data_models import TransitionEvent, TransitionKind
from voice_activity.tenant_settings import ExclusionPolicy


def classify_transition(old_resource_id: Optional[str], new_resource_id: Optional[str]) -> TransitionKind:
    if old_resource_id == new_resource_id:
        return TransitionKind.NOOP
    if old_resource_id is None:
        return TransitionKind.JOIN
    if new_resource_id is None:
        return TransitionKind.LEAVE
    return TransitionKind.MOVE


def is_observer(display_name: str, markers: Sequence[str]) -> bool:
    return any(marker and marker in display_name for marker in markers)


@dataclass(frozen=True)
class TransitionDecision:
    """What the tracker must do for one event under the policy current at that moment."""

    kind: TransitionKind
    close_existing: bool
    start_resource_id: Optional[str]
    log_departure: bool
    log_arrival: bool

    @property
    def is_noop(self) -> bool:
        return not (self.close_existing or self.start_resource_id or self.log_departure or self.log_arrival)


def decide(event: TransitionEvent, policy: ExclusionPolicy, observer_markers: Sequence[str] = ()) -> TransitionDecision:
    """
    Map ``event`` to tracking actions.

    Leaving a resource always closes an open session, even when the resource
    was excluded after the session started. A session only starts when the
    destination is tracked under the current policy and the member is not
    marked as an observer.
    """
    kind = classify_transition(event.old_resource_id, event.new_resource_id)
    if kind is TransitionKind.NOOP:
        return TransitionDecision(kind, False, None, False, False)

    leaves_old = kind in (TransitionKind.LEAVE, TransitionKind.MOVE)
    enters_new = kind in (TransitionKind.JOIN, TransitionKind.MOVE)

    start_resource_id = None
    if enters_new and policy.is_tracked(event.new_resource_id) and not is_observer(event.display_name, observer_markers):
        start_resource_id = event.new_resource_id

    return TransitionDecision(
        kind=kind,
        close_existing=leaves_old,
        start_resource_id=start_resource_id,
        log_departure=leaves_old and policy.logs_activity(event.old_resource_id),
        log_arrival=enters_new and policy.logs_activity(event.new_resource_id),
    )
