from __future__ import annotations

import pytest

from voice_activity.config.shared import DEFAULT_OBSERVER_MARKERS
from voice_activity.data_models import TransitionEvent, TransitionKind
from voice_activity.session_tracker_helpers import classify_transition, decide, is_observer
from voice_activity.tenant_settings import ExclusionPolicy


def _event(old, new, display_name=""):
    return TransitionEvent("u1", "g1", old, new, 1_000, display_name=display_name)


@pytest.mark.parametrize(
    ("old", "new", "kind"),
    [
        (None, "R1", TransitionKind.JOIN),
        ("R1", None, TransitionKind.LEAVE),
        ("R1", "R2", TransitionKind.MOVE),
        ("R1", "R1", TransitionKind.NOOP),
        (None, None, TransitionKind.NOOP),
    ],
)
def test_classify_transition(old, new, kind):
    assert classify_transition(old, new) is kind


def test_observer_markers_match_anywhere_in_name():
    assert is_observer("Alice [대기]", DEFAULT_OBSERVER_MARKERS)
    assert not is_observer("Alice", DEFAULT_OBSERVER_MARKERS)
    assert not is_observer("Alice", ("",))


def test_leave_from_excluded_room_still_closes():
    policy = ExclusionPolicy(fully_excluded=frozenset({"R1"}))

    decision = decide(_event("R1", None), policy)

    assert decision.close_existing is True
    assert decision.log_departure is False
    assert decision.start_resource_id is None


def test_move_into_activity_limited_room_logs_without_starting():
    policy = ExclusionPolicy(activity_limited=frozenset({"R2"}))

    decision = decide(_event("R1", "R2"), policy)

    assert decision.kind is TransitionKind.MOVE
    assert decision.close_existing is True
    assert decision.start_resource_id is None
    assert (decision.log_departure, decision.log_arrival) == (True, True)


def test_observer_join_is_logged_but_not_tracked():
    decision = decide(_event(None, "R1", display_name="[관전] Bob"), ExclusionPolicy(), DEFAULT_OBSERVER_MARKERS)

    assert decision.start_resource_id is None
    assert decision.log_arrival is True
    assert not decision.is_noop


def test_noop_decision():
    decision = decide(_event("R1", "R1"), ExclusionPolicy())

    assert decision.is_noop
