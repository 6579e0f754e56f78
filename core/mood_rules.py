from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from core.models import CandidateInsight, MoodInsight, MoodTimelinePayload
from core.numeric import round_half_up
from shared.enums import InsightKind, InsightSource, MoodState, RotationSurface

logger = logging.getLogger("session_insights.mood_rules")

MoodRule = Callable[[MoodTimelinePayload], list[MoodInsight]]

MOOD_SURFACES = [RotationSurface.MISSION_END, RotationSurface.ADVANCED_TAB, RotationSurface.MOOD_TIMELINE]
MAX_MOOD_INSIGHTS = 3


def warmup_success(payload: MoodTimelinePayload) -> list[MoodInsight]:
    if len(payload.snapshots) < 2:
        return []
    first = payload.snapshots[0]
    last = payload.snapshots[-1]
    started_low = first.mood_state in {MoodState.COLD, MoodState.NEUTRAL}
    ended_high = last.mood_state in {MoodState.WARM, MoodState.FLOW}
    gain = last.smoothed_mood_score - first.smoothed_mood_score
    if not (started_low and ended_high and gain > 15):
        return []
    return [
        MoodInsight(
            id="MOOD_WARMUP_SUCCESS_V1",
            title="You Found Your Groove",
            body=(
                f"You started {first.mood_state.value.lower()} but finished {last.mood_state.value.lower()}. "
                f"Your mood improved by {gain} points, showing you can adapt and build momentum."
            ),
            category="improvement",
            evidence=f"Mood transition: {first.mood_state.value} -> {last.mood_state.value} (+{gain} points)",
            priority_score=85,
        )
    ]


def consistent_flow(payload: MoodTimelinePayload) -> list[MoodInsight]:
    total = len(payload.snapshots)
    if total < 3:
        return []
    flow_count = sum(1 for item in payload.snapshots if item.mood_state == MoodState.FLOW)
    ratio = flow_count / total
    if ratio < 0.5:
        return []
    return [
        MoodInsight(
            id="MOOD_CONSISTENT_FLOW_V1",
            title="You Were in the Zone",
            body=(
                f"You maintained a flow state for {round_half_up(ratio * 100)}% of your messages. "
                "This shows strong consistency and engagement."
            ),
            category="strength",
            evidence=f"{flow_count}/{total} snapshots in FLOW state",
            priority_score=80,
        )
    ]


def tension_recovery(payload: MoodTimelinePayload) -> list[MoodInsight]:
    snapshots = payload.snapshots
    if len(snapshots) < 3:
        return []
    peak = 0
    peak_index = -1
    for index, item in enumerate(snapshots):
        if item.tension > peak:
            peak = item.tension
            peak_index = index
    if peak_index < 0 or peak_index >= len(snapshots) - 1:
        return []
    drop = peak - snapshots[peak_index + 1].tension
    if drop <= 20 or peak <= 60:
        return []
    return [
        MoodInsight(
            id="MOOD_TENSION_RECOVERY_V1",
            title="You Managed Tension Well",
            body=(
                f"You experienced high tension ({peak}) but quickly recovered, dropping {drop} points. "
                "This shows resilience."
            ),
            category="recovery",
            evidence=f"Tension peak: {peak}, recovery: {drop} point drop",
            priority_score=75,
        )
    ]


def high_warmth(payload: MoodTimelinePayload) -> list[MoodInsight]:
    if len(payload.snapshots) < 2:
        return []
    average = sum(item.warmth for item in payload.snapshots) / len(payload.snapshots)
    if average <= 70:
        return []
    shown = round_half_up(average)
    return [
        MoodInsight(
            id="MOOD_HIGH_WARMTH_V1",
            title="You Showed Consistent Warmth",
            body=f"Your average emotional warmth was {shown}, showing you consistently create positive connections.",
            category="strength",
            evidence=f"Average warmth: {shown}/100",
            priority_score=70,
        )
    ]


def decline_warning(payload: MoodTimelinePayload) -> list[MoodInsight]:
    if len(payload.snapshots) < 3:
        return []
    first = payload.snapshots[0]
    last = payload.snapshots[-1]
    decline = first.smoothed_mood_score - last.smoothed_mood_score
    # Literal grouping kept: a TENSE ending fires regardless of decline.
    if not ((decline > 20 and last.mood_state == MoodState.COLD) or last.mood_state == MoodState.TENSE):
        return []
    return [
        MoodInsight(
            id="MOOD_DECLINE_WARNING_V1",
            title="Mood Shifted Downward",
            body=(
                f"Your mood declined by {decline} points, ending in {last.mood_state.value.lower()}. "
                "Consider focusing on building confidence and reducing tension."
            ),
            category="improvement",
            evidence=f"Mood decline: {decline} points ({first.mood_state.value} -> {last.mood_state.value})",
            priority_score=65,
        )
    ]


DEFAULT_MOOD_RULES: tuple[MoodRule, ...] = (
    warmup_success,
    consistent_flow,
    tension_recovery,
    high_warmth,
    decline_warning,
)


class MoodInsightRegistry:
    def __init__(self, rules: Iterable[MoodRule] = DEFAULT_MOOD_RULES) -> None:
        self._rules = tuple(rules)

    def evaluate_all(self, payload: MoodTimelinePayload) -> list[MoodInsight]:
        found: list[MoodInsight] = []
        for rule in self._rules:
            try:
                found.extend(rule(payload))
            except Exception:
                logger.warning("mood rule %s failed", getattr(rule, "__name__", rule), exc_info=True)
        return found

    def select(
        self,
        payload: MoodTimelinePayload,
        excluded_ids: Iterable[str] = (),
        limit: int = MAX_MOOD_INSIGHTS,
    ) -> list[MoodInsight]:
        excluded = set(excluded_ids)
        available = [item for item in self.evaluate_all(payload) if item.id not in excluded]
        available.sort(key=lambda item: (-item.priority_score, item.id))
        return available[:limit]

    def candidates(self, payload: MoodTimelinePayload) -> list[CandidateInsight]:
        return [
            CandidateInsight(
                id=item.id,
                kind=InsightKind.MOOD,
                source=InsightSource.MOOD,
                category=item.category or "mood",
                priority=item.priority_score,
                weight=item.priority_score,
                evidence={"summary": item.evidence},
                is_premium=False,
                surfaces=list(MOOD_SURFACES),
                title=item.title,
                body=item.body,
            )
            for item in self.evaluate_all(payload)
        ]
