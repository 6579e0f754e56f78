from __future__ import annotations

import math
from collections.abc import Sequence
from statistics import pvariance

from core.errors import InvalidSessionState
from core.models import MoodArc, MoodCurrent, MoodSnapshot, MoodTimelinePayload, SessionSnapshot
from core.numeric import clamp_score, round_half_up
from shared.enums import ArcType, MoodState

EMA_ALPHA = 0.35
DEFAULT_SCORE = 50
DEFAULT_TRAIT = 50.0
FLOW_WINDOW = 3


def _trait(traits: dict[str, float], key: str) -> float:
    value = traits.get(key)
    if value is not None and math.isfinite(value):
        return float(value)
    return DEFAULT_TRAIT


def compute_tension(tension_control: float, patterns: Sequence[str]) -> int:
    hits = sum(1 for item in patterns if "negative" in item.lower() or "tension" in item.lower())
    return clamp_score(100 - tension_control + hits * 5)


def compute_warmth(emotional_warmth: float, hooks: Sequence[str]) -> int:
    hits = sum(1 for item in hooks if "positive" in item.lower() or "warm" in item.lower())
    return clamp_score(emotional_warmth + hits * 3)


def compute_vibe(humor: float, confidence: float) -> int:
    return clamp_score((humor + confidence) / 2)


def compute_flow(scores: Sequence[int], previous_flow: int | None, alpha: float = EMA_ALPHA) -> int:
    window = list(scores[-FLOW_WINDOW:])
    if len(window) < 2:
        return previous_flow if previous_flow is not None else 50
    stability = max(0.0, 100 - 2 * math.sqrt(pvariance(window)))
    if previous_flow is None:
        return round_half_up(stability)
    return round_half_up(alpha * stability + (1 - alpha) * previous_flow)


def classify_mood_state(smoothed: int, tension: int, warmth: int, flow: int) -> MoodState:
    if smoothed >= 80 and flow > 70 and tension < 40:
        return MoodState.FLOW
    if tension > 70 or (smoothed < 50 and tension > 50):
        return MoodState.TENSE
    if 60 <= smoothed < 80 and warmth > 50:
        return MoodState.WARM
    if smoothed < 30 and warmth < 40:
        return MoodState.COLD
    return MoodState.NEUTRAL


def _detect_transition(prev: MoodSnapshot, curr: MoodSnapshot) -> ArcType | None:
    score_delta = curr.smoothed_mood_score - prev.smoothed_mood_score
    tension_delta = curr.tension - prev.tension
    warmth_delta = curr.warmth - prev.warmth

    if score_delta > 5 and warmth_delta > 3 and curr.smoothed_mood_score > 60:
        return ArcType.RISING_WARMTH
    if score_delta < -5 and warmth_delta < -3 and curr.smoothed_mood_score < 50:
        return ArcType.COOL_DOWN
    if tension_delta > 20 and score_delta < -10:
        return ArcType.TESTING_SPIKE
    if (
        prev.smoothed_mood_score < 40
        and curr.smoothed_mood_score > prev.smoothed_mood_score + 10
        and score_delta > 8
    ):
        return ArcType.RECOVERY_ARC
    if tension_delta > 5 and curr.tension > 60:
        return ArcType.TENSION_BUILD
    if abs(score_delta) < 5 and abs(tension_delta) < 5 and 50 <= curr.smoothed_mood_score <= 70:
        return ArcType.STABLE_ARC
    return None


def _arc_summary(arc_type: ArcType, start: MoodSnapshot, end: MoodSnapshot) -> str:
    score_change = end.smoothed_mood_score - start.smoothed_mood_score
    tension_change = end.tension - start.tension
    if arc_type == ArcType.RISING_WARMTH:
        return (
            f"Mood improved from {start.smoothed_mood_score} to {end.smoothed_mood_score} "
            f"(+{score_change}), warmth increased"
        )
    if arc_type == ArcType.COOL_DOWN:
        return (
            f"Mood cooled from {start.smoothed_mood_score} to {end.smoothed_mood_score} "
            f"({score_change}), warmth faded"
        )
    if arc_type == ArcType.TESTING_SPIKE:
        return f"Tension spike: tension rose to {end.tension}, mood dropped to {end.smoothed_mood_score}"
    if arc_type == ArcType.RECOVERY_ARC:
        return (
            f"Recovery: mood recovered from {start.smoothed_mood_score} to "
            f"{end.smoothed_mood_score} (+{score_change})"
        )
    if arc_type == ArcType.TENSION_BUILD:
        return f"Tension building: increased from {start.tension} to {end.tension} (+{tension_change})"
    return f"Stable period: mood around {end.smoothed_mood_score}, consistent performance"


def _close_arc(arc_type: ArcType, snapshots: Sequence[MoodSnapshot], start: int, end: int) -> MoodArc:
    first = snapshots[start]
    last = snapshots[end]
    return MoodArc(
        type=arc_type,
        start_index=start,
        end_index=end,
        start_turn_index=first.turn_index,
        end_turn_index=last.turn_index,
        score_change=last.smoothed_mood_score - first.smoothed_mood_score,
        tension_change=last.tension - first.tension,
        summary=_arc_summary(arc_type, first, last),
    )


def detect_mood_arcs(snapshots: Sequence[MoodSnapshot]) -> list[MoodArc]:
    if len(snapshots) < 2:
        return []

    arcs: list[MoodArc] = []
    run_start = 0
    run_type: ArcType | None = None

    for index in range(1, len(snapshots)):
        detected = _detect_transition(snapshots[index - 1], snapshots[index])
        if detected == run_type:
            continue
        if run_type is not None and run_start < index - 1:
            arcs.append(_close_arc(run_type, snapshots, run_start, index - 1))
        run_type = detected
        if detected is not None:
            run_start = index - 1

    last = len(snapshots) - 1
    if run_type is not None and run_start < last:
        arcs.append(_close_arc(run_type, snapshots, run_start, last))
    return arcs


def build_mood_snapshots(session: SessionSnapshot, alpha: float = EMA_ALPHA) -> list[MoodSnapshot]:
    snapshots: list[MoodSnapshot] = []
    scores: list[int] = []
    previous_smoothed: int | None = None
    previous_flow: int | None = None

    for message in session.user_messages:
        raw_score = message.score if message.score is not None else DEFAULT_SCORE
        scores.append(raw_score)

        if previous_smoothed is None:
            smoothed = raw_score
        else:
            smoothed = round_half_up(alpha * raw_score + (1 - alpha) * previous_smoothed)

        traits = message.traits
        tension = compute_tension(_trait(traits, "tension_control"), message.patterns)
        warmth = compute_warmth(_trait(traits, "emotional_warmth"), message.hooks)
        vibe = compute_vibe(_trait(traits, "humor"), _trait(traits, "confidence"))
        flow = compute_flow(scores, previous_flow, alpha)

        snapshots.append(
            MoodSnapshot(
                turn_index=message.turn_index,
                raw_score=raw_score,
                smoothed_mood_score=smoothed,
                mood_state=classify_mood_state(smoothed, tension, warmth, flow),
                tension=tension,
                warmth=warmth,
                vibe=vibe,
                flow=flow,
            )
        )
        previous_smoothed = smoothed
        previous_flow = flow
    return snapshots


def build_mood_timeline(session: SessionSnapshot, alpha: float = EMA_ALPHA) -> MoodTimelinePayload:
    if not session.user_messages:
        raise InvalidSessionState(session.session_id, "no user messages")

    snapshots = build_mood_snapshots(session, alpha)
    last = snapshots[-1]
    arcs = detect_mood_arcs(snapshots) if session.enable_arc_detection else []
    return MoodTimelinePayload(
        snapshots=snapshots,
        current=MoodCurrent(mood_state=last.mood_state, mood_percent=last.smoothed_mood_score),
        arcs=arcs,
    )
