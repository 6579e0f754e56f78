from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from itertools import combinations

from core.models import (
    CandidateInsight,
    EmotionLinks,
    GraphData,
    GraphEdge,
    GraphNode,
    MoodTimelinePayload,
    SynergyPayload,
)
from core.numeric import clamp, round_half_up, round_to
from shared.enums import TRAIT_KEYS, InsightKind, InsightSource, RotationSurface

SYNERGY_WINDOW = 15
MIN_SESSIONS = 5
CORRELATION_THRESHOLD = 0.45
STRONG_CORRELATION = 0.7
TENSION_TREND_BAND = 5

TRAIT_LABELS: dict[str, str] = {
    "confidence": "Confidence",
    "clarity": "Clarity",
    "humor": "Humor",
    "tension_control": "Tension Control",
    "emotional_warmth": "Emotional Warmth",
    "dominance": "Dominance",
}

SYNERGY_SURFACES = [RotationSurface.SYNERGY_MAP, RotationSurface.ADVANCED_TAB]

_LAYOUT_RADIUS = 150.0
_LAYOUT_CENTER = (200.0, 200.0)


def node_layout() -> list[GraphNode]:
    count = len(TRAIT_KEYS)
    nodes: list[GraphNode] = []
    for index, trait in enumerate(TRAIT_KEYS):
        angle = (2 * math.pi * index) / count - math.pi / 2
        nodes.append(
            GraphNode(
                id=trait,
                label=TRAIT_LABELS[trait],
                x=round(_LAYOUT_CENTER[0] + _LAYOUT_RADIUS * math.cos(angle), 4),
                y=round(_LAYOUT_CENTER[1] + _LAYOUT_RADIUS * math.sin(angle), 4),
            )
        )
    return nodes


def pearson(values_a: Sequence[float], values_b: Sequence[float]) -> float:
    if len(values_a) != len(values_b) or not values_a:
        return 0.0
    n = len(values_a)
    mean_a = sum(values_a) / n
    mean_b = sum(values_b) / n
    covariance = 0.0
    variance_a = 0.0
    variance_b = 0.0
    for a, b in zip(values_a, values_b):
        diff_a = a - mean_a
        diff_b = b - mean_b
        covariance += diff_a * diff_b
        variance_a += diff_a * diff_a
        variance_b += diff_b * diff_b
    denominator = math.sqrt(variance_a * variance_b)
    if denominator == 0:
        return 0.0
    return clamp(round_to(covariance / denominator, 2), -1.0, 1.0)


def identity_matrix() -> dict[str, dict[str, float]]:
    return {a: {b: 1.0 if a == b else 0.0 for b in TRAIT_KEYS} for a in TRAIT_KEYS}


def correlation_matrix(history: Sequence[Mapping[str, float]]) -> dict[str, dict[str, float]]:
    columns: dict[str, list[float]] = {trait: [] for trait in TRAIT_KEYS}
    for row in history:
        for trait in TRAIT_KEYS:
            value = row.get(trait)
            columns[trait].append(float(value) if isinstance(value, (int, float)) else 0.0)

    matrix = identity_matrix()
    for trait_a, trait_b in combinations(TRAIT_KEYS, 2):
        value = pearson(columns[trait_a], columns[trait_b])
        matrix[trait_a][trait_b] = value
        matrix[trait_b][trait_a] = value
    return matrix


def graph_edges(matrix: Mapping[str, Mapping[str, float]]) -> list[GraphEdge]:
    return [
        GraphEdge(source=trait_a, target=trait_b, weight=matrix[trait_a][trait_b])
        for trait_a, trait_b in combinations(TRAIT_KEYS, 2)
    ]


def emotion_links(timeline: MoodTimelinePayload | None) -> EmotionLinks:
    if timeline is None or not timeline.snapshots:
        return EmotionLinks()
    delta = timeline.snapshots[-1].tension - timeline.snapshots[0].tension
    if delta > TENSION_TREND_BAND:
        hint = "RISING"
    elif delta < -TENSION_TREND_BAND:
        hint = "FALLING"
    else:
        hint = "FLAT"
    return EmotionLinks(mood_state_at_end=timeline.current.mood_state, tension_trend_hint=hint)


def compute_synergy(
    history: Sequence[Mapping[str, float]],
    timeline: MoodTimelinePayload | None = None,
    min_sessions: int = MIN_SESSIONS,
) -> SynergyPayload:
    """Correlate per-session trait averages, ordered oldest first."""
    if len(history) < min_sessions:
        matrix = identity_matrix()
        edges: list[GraphEdge] = []
    else:
        matrix = correlation_matrix(history)
        edges = graph_edges(matrix)
    return SynergyPayload(
        sessions_used=len(history),
        correlation_matrix=matrix,
        graph_data=GraphData(nodes=node_layout(), edges=edges),
        emotion_links=emotion_links(timeline),
    )


def _synergy_copy(label_a: str, label_b: str, correlation: float) -> tuple[str, str]:
    lower_a = label_a.lower()
    lower_b = label_b.lower()
    shown = f"{correlation:.2f}"
    strong = abs(correlation) >= STRONG_CORRELATION
    if correlation > 0:
        if strong:
            return (
                f"Strong Synergy: {label_a} & {label_b}",
                f"Your {lower_a} and {lower_b} traits show a strong positive correlation ({shown}). "
                "When one improves, the other tends to follow. This synergy creates a powerful foundation for growth.",
            )
        return (
            f"Synergy: {label_a} & {label_b}",
            f"Your {lower_a} and {lower_b} traits are positively correlated ({shown}). "
            "Working on one can help strengthen the other.",
        )
    if strong:
        return (
            f"Trade-off: {label_a} vs {label_b}",
            f"Your {lower_a} and {lower_b} traits show a strong negative correlation ({shown}). "
            "When one increases, the other tends to decrease. Finding balance between these traits is key.",
        )
    return (
        f"Inverse Relationship: {label_a} & {label_b}",
        f"Your {lower_a} and {lower_b} traits are inversely related ({shown}). "
        "Consider how to balance both effectively.",
    )


def synergy_candidates(
    payload: SynergyPayload,
    threshold: float = CORRELATION_THRESHOLD,
) -> list[CandidateInsight]:
    candidates: list[CandidateInsight] = []
    matrix = payload.correlation_matrix
    for trait_a, trait_b in combinations(TRAIT_KEYS, 2):
        correlation = float(matrix.get(trait_a, {}).get(trait_b, 0.0))
        strength = abs(correlation)
        if strength < threshold:
            continue
        sign = "positive" if correlation > 0 else "negative"
        title, body = _synergy_copy(TRAIT_LABELS[trait_a], TRAIT_LABELS[trait_b], correlation)
        score = round_half_up(strength * 100)
        candidates.append(
            CandidateInsight(
                id=f"synergy_{trait_a}_{trait_b}_{sign}_v1",
                kind=InsightKind.SYNERGY,
                source=InsightSource.SYNERGY,
                category="synergy",
                priority=score,
                weight=score,
                evidence={"trait_a": trait_a, "trait_b": trait_b, "correlation": correlation},
                is_premium=True,
                surfaces=list(SYNERGY_SURFACES),
                title=title,
                body=body,
            )
        )
    return candidates
