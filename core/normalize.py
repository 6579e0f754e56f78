from __future__ import annotations

import logging
import math
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from core.models import (
    DeepInsightsMeta,
    DeepInsightsPayload,
    DeepInsightsRecord,
    DeepParagraph,
    EmotionLinks,
    GraphData,
    GraphEdge,
    GraphNode,
    InsightCard,
    MoodArc,
    MoodCurrent,
    MoodInsight,
    MoodInsightsBlock,
    MoodSnapshot,
    MoodTimelinePayload,
    RotationMeta,
    RotationPack,
    RotationQuotas,
    SynergyInsightsBlock,
    SynergyPayload,
)
from core.rotation import quotas_for_surface

logger = logging.getLogger("session_insights.normalize")

M = TypeVar("M", bound=BaseModel)


def _mapping(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _known(model: type[BaseModel], data: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in data.items() if key in model.model_fields}


def _one(model: type[M], value: Any) -> M | None:
    if not isinstance(value, dict):
        return None
    try:
        return model.model_validate(_known(model, value))
    except ValidationError:
        logger.debug("dropping malformed %s", model.__name__)
        return None


def _items(model: type[M], value: Any) -> list[M]:
    if not isinstance(value, list):
        return []
    out: list[M] = []
    for raw in value:
        item = _one(model, raw)
        if item is not None:
            out.append(item)
    return out


def _strings(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


def _int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return default
    return int(value)


def _number_map(value: Any) -> dict[str, float]:
    return {
        key: float(item)
        for key, item in _mapping(value).items()
        if isinstance(key, str)
        and isinstance(item, (int, float))
        and not isinstance(item, bool)
        and math.isfinite(item)
    }


def normalize_deep_insights(raw: Any, session_id: str = "", user_id: str = "") -> DeepInsightsRecord:
    data = _mapping(raw)
    payload = _mapping(data.get("insights_v2"))
    meta = _mapping(payload.get("meta"))
    return DeepInsightsRecord(
        session_id=data.get("session_id") if isinstance(data.get("session_id"), str) else session_id,
        user_id=data.get("user_id") if isinstance(data.get("user_id"), str) else user_id,
        insights_v2=DeepInsightsPayload(
            gate_insights=_items(InsightCard, payload.get("gate_insights")),
            positive_insights=_items(InsightCard, payload.get("positive_insights")),
            negative_insights=_items(InsightCard, payload.get("negative_insights")),
            trait_deltas=_number_map(payload.get("trait_deltas")),
            meta=DeepInsightsMeta(
                seed=meta.get("seed") if isinstance(meta.get("seed"), str) else "",
                excluded_ids=_strings(meta.get("excluded_ids")),
                picked_ids=_strings(meta.get("picked_ids")),
                picked_paragraph_ids=_strings(meta.get("picked_paragraph_ids")),
            ),
        ),
        analyzer_paragraphs=_items(DeepParagraph, data.get("analyzer_paragraphs")),
    )


def normalize_mood_timeline(raw: Any) -> MoodTimelinePayload:
    data = _mapping(raw)
    snapshots = _items(MoodSnapshot, data.get("snapshots"))
    current = _one(MoodCurrent, data.get("current"))
    if current is None:
        current = (
            MoodCurrent(mood_state=snapshots[-1].mood_state, mood_percent=snapshots[-1].smoothed_mood_score)
            if snapshots
            else MoodCurrent()
        )
    block = data.get("mood_insights")
    mood_insights = None
    if isinstance(block, dict):
        mood_insights = MoodInsightsBlock(
            picked_ids=_strings(block.get("picked_ids")),
            insights=_items(MoodInsight, block.get("insights")),
        )
    return MoodTimelinePayload(
        snapshots=snapshots,
        current=current,
        arcs=_items(MoodArc, data.get("arcs")),
        mood_insights=mood_insights,
    )


def normalize_synergy(raw: Any) -> SynergyPayload:
    data = _mapping(raw)
    matrix: dict[str, dict[str, float]] = {}
    for key, row in _mapping(data.get("correlation_matrix")).items():
        values = {name: max(-1.0, min(1.0, value)) for name, value in _number_map(row).items()}
        if isinstance(key, str) and values:
            matrix[key] = values
    graph = _mapping(data.get("graph_data"))
    return SynergyPayload(
        sessions_used=max(0, _int(data.get("sessions_used"))),
        correlation_matrix=matrix,
        graph_data=GraphData(
            nodes=_items(GraphNode, graph.get("nodes")),
            edges=_items(GraphEdge, graph.get("edges")),
        ),
        emotion_links=_one(EmotionLinks, data.get("emotion_links")) or EmotionLinks(),
        synergy_insights=SynergyInsightsBlock(
            picked_ids=_strings(_mapping(data.get("synergy_insights")).get("picked_ids")),
        ),
    )


def normalize_rotation_pack(raw: Any, surface: str, session_id: str = "") -> RotationPack:
    data = _mapping(raw)
    meta = _mapping(data.get("meta"))
    cards = _items(InsightCard, data.get("selected_insights"))
    return RotationPack(
        session_id=data.get("session_id") if isinstance(data.get("session_id"), str) else session_id,
        surface=surface,
        selected_insights=cards,
        selected_paragraphs=_items(DeepParagraph, data.get("selected_paragraphs")),
        meta=RotationMeta(
            seed=meta.get("seed") if isinstance(meta.get("seed"), str) else "",
            excluded_ids=_strings(meta.get("excluded_ids")),
            picked_ids=_strings(meta.get("picked_ids")),
            quotas=_one(RotationQuotas, meta.get("quotas")) or quotas_for_surface(surface),
            total_available=_int(meta.get("total_available"), len(cards)),
            filtered_because_premium=_int(meta.get("filtered_because_premium")),
            is_premium_user=meta.get("is_premium_user") is True,
            premium_insight_ids=_strings(meta.get("premium_insight_ids")),
        ),
    )
