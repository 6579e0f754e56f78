from __future__ import annotations

from collections.abc import Iterable, Sequence

from core.models import (
    CandidateInsight,
    DeepParagraph,
    InsightCard,
    InsightHistory,
    RotationMeta,
    RotationPack,
    RotationQuotas,
)
from shared.enums import InsightKind, InsightSource, RotationSurface

QUOTAS: dict[RotationSurface, RotationQuotas] = {
    RotationSurface.MISSION_END: RotationQuotas(gate=2, hook=2, pattern=1, tip=3, mood=1, synergy=1),
    RotationSurface.ADVANCED_TAB: RotationQuotas(gate=1, hook=1, pattern=1, tip=1, mood=1, synergy=1),
    RotationSurface.ANALYZER: RotationQuotas(analyzer=2),
    RotationSurface.SYNERGY_MAP: RotationQuotas(synergy=3),
    RotationSurface.MOOD_TIMELINE: RotationQuotas(mood=3),
}
DEFAULT_QUOTAS = RotationQuotas(gate=1, hook=1, pattern=1, tip=1)

SOURCE_QUOTA_FIELD: dict[InsightSource, str] = {
    InsightSource.GATES: "gate",
    InsightSource.HOOKS: "hook",
    InsightSource.PATTERNS: "pattern",
    InsightSource.GENERAL: "tip",
    InsightSource.MOOD: "mood",
    InsightSource.SYNERGY: "synergy",
    InsightSource.ANALYZER: "analyzer",
}


def quotas_for_surface(surface: str) -> RotationQuotas:
    try:
        return QUOTAS[RotationSurface(surface)]
    except ValueError:
        return DEFAULT_QUOTAS


def sort_candidates(candidates: Iterable[CandidateInsight]) -> list[CandidateInsight]:
    return sorted(candidates, key=lambda item: (-item.priority, -item.weight, item.id))


def apply_cooldown(candidates: Iterable[CandidateInsight], history: InsightHistory) -> list[CandidateInsight]:
    excluded = set(history.all_ids())
    return [candidate for candidate in candidates if candidate.id not in excluded]


def filter_by_surface(candidates: Iterable[CandidateInsight], surface: str) -> list[CandidateInsight]:
    return [candidate for candidate in candidates if not candidate.surfaces or surface in candidate.surfaces]


def filter_premium(candidates: Iterable[CandidateInsight], is_premium: bool) -> list[CandidateInsight]:
    if is_premium:
        return list(candidates)
    return [candidate for candidate in candidates if not candidate.is_premium]


def apply_quotas(candidates: Iterable[CandidateInsight], quotas: RotationQuotas) -> list[CandidateInsight]:
    """Take the top N of each source, in fixed source order."""
    groups: dict[InsightSource, list[CandidateInsight]] = {source: [] for source in InsightSource}
    for candidate in candidates:
        groups[candidate.source].append(candidate)

    selected: list[CandidateInsight] = []
    seen: set[str] = set()
    for source, group in groups.items():
        limit = getattr(quotas, SOURCE_QUOTA_FIELD[source])
        for candidate in sort_candidates(group)[:limit]:
            if candidate.id not in seen:
                selected.append(candidate)
                seen.add(candidate.id)
    return selected


def to_card(candidate: CandidateInsight) -> InsightCard:
    return InsightCard(
        id=candidate.id,
        kind=candidate.kind,
        category=candidate.category,
        title=candidate.title or candidate.id.replace("_", " ").title(),
        body=candidate.body or f"Insight about {candidate.category}",
        related_turn_index=candidate.related_turn_index,
        is_premium=candidate.is_premium,
    )


def to_paragraph(candidate: CandidateInsight) -> DeepParagraph:
    return DeepParagraph(
        id=candidate.id,
        title=candidate.title or candidate.id.replace("_", " ").title(),
        body=candidate.body or "",
        category=candidate.category,
    )


def select_base_pack(
    candidates: Sequence[CandidateInsight],
    history: InsightHistory,
    surface: str,
    seed: str,
    session_id: str = "",
) -> RotationPack:
    """Premium-agnostic pack; viewer filtering happens on read."""
    quotas = quotas_for_surface(surface)
    eligible = sort_candidates(filter_by_surface(apply_cooldown(candidates, history), surface))
    selected = apply_quotas(eligible, quotas)

    cards = [to_card(item) for item in selected if item.kind != InsightKind.ANALYZER_PARAGRAPH]
    paragraphs = [to_paragraph(item) for item in selected if item.kind == InsightKind.ANALYZER_PARAGRAPH]
    return RotationPack(
        session_id=session_id,
        surface=surface,
        selected_insights=cards,
        selected_paragraphs=paragraphs,
        meta=RotationMeta(
            seed=seed,
            excluded_ids=history.all_ids(),
            picked_ids=[item.id for item in selected],
            quotas=quotas,
            total_available=len(cards),
            filtered_because_premium=0,
            is_premium_user=False,
            premium_insight_ids=[item.id for item in selected if item.is_premium],
        ),
    )


def premium_view(base: RotationPack, is_premium: bool) -> RotationPack:
    cards = base.selected_insights
    visible = list(cards) if is_premium else [card for card in cards if not card.is_premium]
    premium_ids = [card.id for card in cards if card.is_premium]
    meta = base.meta.model_copy(
        update={
            "total_available": len(cards),
            "is_premium_user": is_premium,
            "filtered_because_premium": len(cards) - len(visible),
            "premium_insight_ids": [] if is_premium else premium_ids,
            "picked_ids": [card.id for card in visible],
        }
    )
    return base.model_copy(update={"selected_insights": visible, "meta": meta}, deep=True)


def empty_pack(session_id: str, surface: str, is_premium: bool = False) -> RotationPack:
    return RotationPack(
        session_id=session_id,
        surface=surface,
        meta=RotationMeta(quotas=quotas_for_surface(surface), is_premium_user=is_premium),
    )
