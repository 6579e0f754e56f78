from __future__ import annotations

import pytest

from core.models import SessionMessage
from core.signals import (
    HOOK_STRATEGIES,
    extract_signals,
    fallback_to_tags,
    prefer_structured,
    resolve_positive_hooks,
    trait_snapshot,
)


def test_prefer_structured_skips_negative_and_duplicates(snapshot_factory) -> None:
    session = snapshot_factory(
        hooks=[["GOOD_HUMOR"], [], []],
        hook_triggers=[
            {"hook_key": "HIGH_CONFIDENCE", "hook_type": "POSITIVE", "turn_index": 2},
            {"hook_key": "CREEPY_LINE", "hook_type": "NEGATIVE", "turn_index": 4},
            {"hook_key": "HIGH_CONFIDENCE", "hook_type": "POSITIVE", "turn_index": 4},
        ],
    )

    hooks = prefer_structured(session)
    assert [(item.hook_key, item.strength, item.turn_index) for item in hooks] == [("HIGH_CONFIDENCE", 1.0, 2)]
    assert resolve_positive_hooks(session) == ("PreferStructured", hooks)


def test_fallback_to_tags_counts_occurrences(snapshot_factory) -> None:
    session = snapshot_factory(
        scores=[50, 60, 70, 80],
        hooks=[["HIGH_WARMTH"], ["HIGH_WARMTH", "GOOD_HUMOR"], [], ["HIGH_WARMTH", "HIGH_WARMTH"]],
    )

    assert prefer_structured(session) == []
    name, hooks = resolve_positive_hooks(session)
    assert name == "FallbackToTags"
    by_key = {item.hook_key: item for item in hooks}
    assert by_key["HIGH_WARMTH"].strength == 1.0
    assert by_key["HIGH_WARMTH"].turn_index == 0
    assert by_key["GOOD_HUMOR"].strength == pytest.approx(1 / 3)
    assert by_key["GOOD_HUMOR"].turn_index == 2


def test_no_strategy_yields_hooks(snapshot_factory) -> None:
    session = snapshot_factory()

    assert fallback_to_tags(session) == []
    assert resolve_positive_hooks(session, HOOK_STRATEGIES) == (None, [])


def test_custom_strategy_order(snapshot_factory) -> None:
    session = snapshot_factory(
        hooks=[["GOOD_HUMOR"], [], []],
        hook_triggers=[{"hook_key": "HIGH_CONFIDENCE", "hook_type": "POSITIVE"}],
    )

    name, hooks = resolve_positive_hooks(session, [("FallbackToTags", fallback_to_tags)])
    assert name == "FallbackToTags"
    assert [item.hook_key for item in hooks] == ["GOOD_HUMOR"]


def test_failed_gates_and_patterns(snapshot_factory) -> None:
    session = snapshot_factory(
        patterns=[["neediness"], ["neediness", "overexplaining"], ["neediness"]],
        gate_outcomes=[
            {"gate_key": "GATE_MIN_MESSAGES", "passed": True},
            {"gate_key": "GATE_FAIL_FLOOR", "passed": False, "reason_code": "LOW_SCORE"},
        ],
    )
    signals = extract_signals(session)

    assert [(item.gate_key, item.reason_code) for item in signals.failed_gates] == [("GATE_FAIL_FLOOR", "LOW_SCORE")]
    severities = {item.pattern_key: item.severity for item in signals.negative_patterns}
    assert severities == {"neediness": 1.0, "overexplaining": 0.5}


def test_trait_snapshot_ignores_out_of_range_values() -> None:
    messages = [
        SessionMessage(turn_index=0, role="USER", traits={"confidence": 60, "clarity": 150}),
        SessionMessage(turn_index=2, role="USER", traits={"confidence": 81, "clarity": -5}),
        SessionMessage(turn_index=4, role="USER", traits={"confidence": float("nan")}),
    ]

    snapshot = trait_snapshot(messages)
    assert snapshot["confidence"] == 71
    assert snapshot["clarity"] == 0
    assert snapshot["dominance"] == 0
    assert len(snapshot) == 6


def test_top_and_bottom_messages(snapshot_factory) -> None:
    signals = extract_signals(snapshot_factory(scores=[55, 90, 30, 75, 60]))

    assert [item.score for item in signals.top_messages] == [90, 75, 60]
    assert [item.score for item in signals.bottom_messages] == [30, 55, 60]
    assert signals.top_messages[0].turn_index == 2
