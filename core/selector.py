from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from core.catalog import InsightCatalog
from core.models import (
    CandidateInsight,
    DeepInsightsMeta,
    DeepInsightsPayload,
    InsightCard,
    InsightSignals,
    InsightTemplate,
)
from shared.enums import InsightKind, InsightSource, RotationSurface

GATE_PRIORITY = 100
HOOK_PRIORITY = 80
PATTERN_PRIORITY = 60
TIP_PRIORITY = 40

MAX_SELECTED = 6
MAX_POSITIVE_SPILL = 3
MAX_NEGATIVE_SPILL = 2
FALLBACK_HOOK_CATEGORY = "confidence"

DEEP_INSIGHT_SURFACES = [RotationSurface.MISSION_END, RotationSurface.ADVANCED_TAB]

KIND_PRIORITY: dict[InsightKind, int] = {
    InsightKind.GATE_FAIL: GATE_PRIORITY,
    InsightKind.POSITIVE_HOOK: HOOK_PRIORITY,
    InsightKind.NEGATIVE_PATTERN: PATTERN_PRIORITY,
    InsightKind.GENERAL_TIP: TIP_PRIORITY,
}

KIND_SOURCE: dict[InsightKind, InsightSource] = {
    InsightKind.GATE_FAIL: InsightSource.GATES,
    InsightKind.POSITIVE_HOOK: InsightSource.HOOKS,
    InsightKind.NEGATIVE_PATTERN: InsightSource.PATTERNS,
    InsightKind.GENERAL_TIP: InsightSource.GENERAL,
}


@dataclass(slots=True)
class _Quota:
    limit: int
    used: int = 0

    @property
    def full(self) -> bool:
        return self.used >= self.limit


def _candidate(
    template: InsightTemplate,
    evidence: dict[str, object],
    turn_index: int | None = None,
) -> CandidateInsight:
    return CandidateInsight(
        id=template.id,
        kind=template.kind,
        source=KIND_SOURCE[template.kind],
        category=template.category,
        priority=KIND_PRIORITY[template.kind],
        weight=template.weight,
        evidence=evidence,
        surfaces=list(DEEP_INSIGHT_SURFACES),
        title=template.title,
        body=template.body,
        related_turn_index=turn_index,
    )


def build_candidates(
    signals: InsightSignals,
    catalog: InsightCatalog,
    excluded: set[str],
) -> list[CandidateInsight]:
    candidates: list[CandidateInsight] = []

    for gate in signals.failed_gates:
        for template in catalog.gate_insights(gate.gate_key):
            if template.id not in excluded:
                candidates.append(_candidate(template, {"gate_key": gate.gate_key}))

    for hook in signals.positive_hooks:
        templates = catalog.hook_insights(hook_key=hook.hook_key)
        if not templates:
            templates = catalog.hook_insights(category=FALLBACK_HOOK_CATEGORY)
        evidence = {"hook_key": hook.hook_key, "strength": hook.strength, "turn_index": hook.turn_index}
        for template in templates:
            if template.id not in excluded:
                candidates.append(_candidate(template, evidence, hook.turn_index))

    for pattern in signals.negative_patterns:
        evidence = {
            "pattern_key": pattern.pattern_key,
            "severity": pattern.severity,
            "turn_index": pattern.turn_index,
        }
        for template in catalog.pattern_insights(pattern_key=pattern.pattern_key):
            if template.id not in excluded:
                candidates.append(_candidate(template, evidence, pattern.turn_index))

    for template in catalog.general_tips():
        if template.id not in excluded:
            candidates.append(_candidate(template, {}))

    return candidates


def sort_key(candidate: CandidateInsight) -> tuple[int, int, str]:
    return (-candidate.priority, -candidate.weight, candidate.id)


def apply_selection_quotas(candidates: Iterable[CandidateInsight]) -> list[CandidateInsight]:
    quotas = {
        InsightKind.GATE_FAIL: _Quota(3),
        InsightKind.POSITIVE_HOOK: _Quota(3),
        InsightKind.NEGATIVE_PATTERN: _Quota(2),
    }
    tips = _Quota(MAX_SELECTED)
    selected: list[CandidateInsight] = []
    seen: set[str] = set()

    for candidate in sorted(candidates, key=sort_key):
        if len(selected) >= MAX_SELECTED:
            break
        if candidate.id in seen:
            continue
        quota = quotas.get(candidate.kind, tips)
        # General tips are the fallback pool and may run past their own limit.
        if quota.full and candidate.priority != TIP_PRIORITY:
            continue
        selected.append(candidate)
        seen.add(candidate.id)
        quota.used += 1
    return selected


def _card(candidate: CandidateInsight, template: InsightTemplate) -> InsightCard:
    return InsightCard(
        id=template.id,
        kind=template.kind,
        category=template.category,
        title=template.title,
        body=template.body,
        related_turn_index=candidate.related_turn_index,
    )


def select_deep_insights(
    signals: InsightSignals,
    excluded_ids: Iterable[str],
    seed: str,
    catalog: InsightCatalog,
) -> DeepInsightsPayload:
    excluded = list(dict.fromkeys(excluded_ids))
    candidates = build_candidates(signals, catalog, set(excluded))
    if not candidates:
        # Every template is cooling down; allow repeats rather than return nothing.
        candidates = build_candidates(signals, catalog, set())
    selected = apply_selection_quotas(candidates)

    gate_cards: list[InsightCard] = []
    positive_cards: list[InsightCard] = []
    negative_cards: list[InsightCard] = []
    for candidate in selected:
        template = catalog.get(candidate.id)
        if template is None:
            continue
        card = _card(candidate, template)
        if candidate.kind == InsightKind.GATE_FAIL:
            gate_cards.append(card)
        elif candidate.kind == InsightKind.POSITIVE_HOOK:
            positive_cards.append(card)
        elif candidate.kind == InsightKind.NEGATIVE_PATTERN:
            negative_cards.append(card)
        elif len(positive_cards) < MAX_POSITIVE_SPILL:
            positive_cards.append(card)
        elif len(negative_cards) < MAX_NEGATIVE_SPILL:
            negative_cards.append(card)
        else:
            gate_cards.append(card)

    return DeepInsightsPayload(
        gate_insights=gate_cards,
        positive_insights=positive_cards,
        negative_insights=negative_cards,
        meta=DeepInsightsMeta(
            seed=seed,
            excluded_ids=excluded,
            picked_ids=[candidate.id for candidate in selected],
        ),
    )
