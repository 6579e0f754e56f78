from __future__ import annotations

import math
from collections.abc import Callable, Sequence

from core.models import (
    FailedGate,
    InsightSignals,
    NegativePatternSignal,
    PositiveHookSignal,
    ScoredMessage,
    SessionMessage,
    SessionSnapshot,
)
from core.numeric import round_half_up
from shared.enums import TRAIT_KEYS, HookType

HOOK_SATURATION = 3
PATTERN_SATURATION = 2
EVIDENCE_MESSAGES = 3

HookStrategy = Callable[[SessionSnapshot], list[PositiveHookSignal]]


def _count_tags(messages: Sequence[SessionMessage], attr: str) -> dict[str, tuple[int, int]]:
    """Tag -> (occurrences, first turn index), in first-seen order."""
    counts: dict[str, tuple[int, int]] = {}
    for message in messages:
        for tag in getattr(message, attr):
            if tag in counts:
                count, first_turn = counts[tag]
                counts[tag] = (count + 1, first_turn)
            else:
                counts[tag] = (1, message.turn_index)
    return counts


def prefer_structured(snapshot: SessionSnapshot) -> list[PositiveHookSignal]:
    if not snapshot.hook_triggers:
        return []
    signals: dict[str, PositiveHookSignal] = {}
    for trigger in snapshot.hook_triggers:
        if trigger.hook_type == HookType.NEGATIVE or trigger.hook_key in signals:
            continue
        signals[trigger.hook_key] = PositiveHookSignal(
            hook_key=trigger.hook_key,
            strength=1.0,
            turn_index=trigger.turn_index,
        )
    return list(signals.values())


def fallback_to_tags(snapshot: SessionSnapshot) -> list[PositiveHookSignal]:
    counts = _count_tags(snapshot.user_messages, "hooks")
    return [
        PositiveHookSignal(
            hook_key=key,
            strength=min(1.0, count / HOOK_SATURATION),
            turn_index=first_turn,
        )
        for key, (count, first_turn) in counts.items()
    ]


HOOK_STRATEGIES: tuple[tuple[str, HookStrategy], ...] = (
    ("PreferStructured", prefer_structured),
    ("FallbackToTags", fallback_to_tags),
)


def resolve_positive_hooks(
    snapshot: SessionSnapshot,
    strategies: Sequence[tuple[str, HookStrategy]] = HOOK_STRATEGIES,
) -> tuple[str | None, list[PositiveHookSignal]]:
    """Return the first strategy that yields hooks, with its name."""
    for name, strategy in strategies:
        hooks = strategy(snapshot)
        if hooks:
            return name, hooks
    return None, []


def extract_failed_gates(snapshot: SessionSnapshot) -> list[FailedGate]:
    if not snapshot.gate_outcomes:
        return []
    return [
        FailedGate(gate_key=outcome.gate_key, reason_code=outcome.reason_code)
        for outcome in snapshot.gate_outcomes
        if not outcome.passed
    ]


def extract_negative_patterns(snapshot: SessionSnapshot) -> list[NegativePatternSignal]:
    counts = _count_tags(snapshot.user_messages, "patterns")
    return [
        NegativePatternSignal(
            pattern_key=key,
            severity=min(1.0, count / PATTERN_SATURATION),
            turn_index=first_turn,
        )
        for key, (count, first_turn) in counts.items()
    ]


def trait_snapshot(messages: Sequence[SessionMessage]) -> dict[str, int]:
    snapshot: dict[str, int] = {}
    for trait in TRAIT_KEYS:
        samples = [
            value
            for value in (message.traits.get(trait) for message in messages)
            if value is not None and math.isfinite(value) and 0 <= value <= 100
        ]
        snapshot[trait] = round_half_up(sum(samples) / len(samples)) if samples else 0
    return snapshot


def extract_signals(snapshot: SessionSnapshot) -> InsightSignals:
    messages = snapshot.user_messages
    _, hooks = resolve_positive_hooks(snapshot)

    scored = [
        ScoredMessage(turn_index=message.turn_index, score=message.score)
        for message in messages
        if message.score is not None
    ]
    by_score = sorted(scored, key=lambda item: item.score, reverse=True)
    bottom = list(reversed(by_score[-EVIDENCE_MESSAGES:])) if by_score else []

    return InsightSignals(
        failed_gates=extract_failed_gates(snapshot),
        positive_hooks=hooks,
        negative_patterns=extract_negative_patterns(snapshot),
        trait_snapshot=trait_snapshot(messages),
        top_messages=by_score[:EVIDENCE_MESSAGES],
        bottom_messages=bottom,
    )
