from __future__ import annotations

import pytest

from core.errors import InvalidSessionState
from core.models import MoodSnapshot
from core.mood import (
    build_mood_timeline,
    classify_mood_state,
    compute_flow,
    compute_tension,
    compute_warmth,
    detect_mood_arcs,
)
from core.mood_rules import MoodInsightRegistry
from shared.enums import ArcType, MoodState


def _point(index: int, score: int, tension: int = 40, warmth: int = 50) -> MoodSnapshot:
    return MoodSnapshot(
        turn_index=index * 2,
        raw_score=score,
        smoothed_mood_score=score,
        mood_state=MoodState.NEUTRAL,
        tension=tension,
        warmth=warmth,
        vibe=50,
        flow=50,
    )


def test_single_message_smoothed_equals_raw(snapshot_factory) -> None:
    timeline = build_mood_timeline(snapshot_factory(scores=[72]))

    assert len(timeline.snapshots) == 1
    assert timeline.snapshots[0].smoothed_mood_score == 72
    assert timeline.snapshots[0].flow == 50
    assert timeline.arcs == []


def test_two_message_ema(snapshot_factory) -> None:
    timeline = build_mood_timeline(snapshot_factory(scores=[40, 80]))

    assert [item.smoothed_mood_score for item in timeline.snapshots] == [40, 54]
    assert timeline.current.mood_percent == 54


def test_only_user_messages_are_plotted(snapshot_factory) -> None:
    timeline = build_mood_timeline(snapshot_factory(scores=[50, 60, 70]))

    assert [item.turn_index for item in timeline.snapshots] == [0, 2, 4]


def test_zero_user_messages_is_invalid(snapshot_factory) -> None:
    with pytest.raises(InvalidSessionState):
        build_mood_timeline(snapshot_factory(scores=[]))


def test_warmup_scenario(snapshot_factory) -> None:
    session = snapshot_factory(
        scores=[30, 40, 60, 75, 90],
        traits={"tension_control": 50, "emotional_warmth": 60, "humor": 50, "confidence": 50},
    )
    timeline = build_mood_timeline(session)

    smoothed = [item.smoothed_mood_score for item in timeline.snapshots]
    states = [item.mood_state for item in timeline.snapshots]
    assert smoothed == [30, 34, 43, 54, 67]
    assert smoothed == sorted(smoothed)
    assert states == [MoodState.NEUTRAL] * 4 + [MoodState.WARM]
    assert all(item.tension == 50 and item.warmth == 60 for item in timeline.snapshots)
    assert timeline.current.mood_state == MoodState.WARM
    assert timeline.arcs == []

    fired = MoodInsightRegistry().evaluate_all(timeline)
    assert [item.id for item in fired] == ["MOOD_WARMUP_SUCCESS_V1"]
    assert "+37 points" in fired[0].evidence


def test_arc_detection_can_be_disabled(snapshot_factory) -> None:
    session = snapshot_factory(scores=[20, 60, 90], enable_arc_detection=False)
    timeline = build_mood_timeline(session)

    assert len(timeline.snapshots) == 3
    assert timeline.arcs == []


def test_tension_and_warmth_tag_bumps() -> None:
    assert compute_tension(50, ["negative_tension", "neediness"]) == 55
    assert compute_tension(0, ["tension"] * 3) == 100
    assert compute_warmth(60, ["positive_vibe", "warm_opener", "HIGH_CLARITY"]) == 66
    assert compute_warmth(99, ["warm"] * 5) == 100


def test_flow_window_and_fallback() -> None:
    assert compute_flow([70], None) == 50
    assert compute_flow([70], 64) == 64
    assert compute_flow([70, 70], None) == 100
    assert compute_flow([60, 80], None) == 80
    assert compute_flow([60, 80], 100) == round(0.35 * 80 + 0.65 * 100)


def test_mood_state_priority() -> None:
    assert classify_mood_state(85, 10, 60, 80) == MoodState.FLOW
    assert classify_mood_state(85, 75, 60, 80) == MoodState.TENSE
    assert classify_mood_state(45, 55, 60, 50) == MoodState.TENSE
    assert classify_mood_state(70, 40, 55, 50) == MoodState.WARM
    assert classify_mood_state(70, 40, 50, 50) == MoodState.NEUTRAL
    assert classify_mood_state(20, 40, 30, 50) == MoodState.COLD


def test_rising_warmth_arc() -> None:
    points = [_point(0, 50, warmth=40), _point(1, 55, warmth=50), _point(2, 65, warmth=65)]
    arcs = detect_mood_arcs(points)

    assert len(arcs) == 1
    arc = arcs[0]
    assert arc.type == ArcType.RISING_WARMTH
    assert (arc.start_index, arc.end_index) == (1, 2)
    assert (arc.start_turn_index, arc.end_turn_index) == (2, 4)
    assert arc.score_change == 10
    assert "55 to 65" in arc.summary


def test_cool_down_arc_spans_the_run() -> None:
    points = [_point(0, 58, warmth=70), _point(1, 48, warmth=60), _point(2, 38, warmth=50)]
    arcs = detect_mood_arcs(points)

    assert [arc.type for arc in arcs] == [ArcType.COOL_DOWN]
    assert (arcs[0].start_index, arcs[0].end_index) == (0, 2)
    assert arcs[0].score_change == -20


def test_testing_spike_arc() -> None:
    arcs = detect_mood_arcs([_point(0, 60, tension=30), _point(1, 45, tension=60)])

    assert [arc.type for arc in arcs] == [ArcType.TESTING_SPIKE]
    assert arcs[0].tension_change == 30


def test_run_closes_when_type_changes() -> None:
    points = [
        _point(0, 50, warmth=40),
        _point(1, 62, warmth=50),
        _point(2, 72, warmth=60),
        _point(3, 58, tension=70, warmth=60),
    ]
    arcs = detect_mood_arcs(points)

    assert arcs[0].type == ArcType.RISING_WARMTH
    assert (arcs[0].start_index, arcs[0].end_index) == (0, 2)
    assert arcs[1].type == ArcType.TESTING_SPIKE
    assert (arcs[1].start_index, arcs[1].end_index) == (2, 3)


def test_fewer_than_two_points_have_no_arcs() -> None:
    assert detect_mood_arcs([]) == []
    assert detect_mood_arcs([_point(0, 50)]) == []
