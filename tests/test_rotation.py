from __future__ import annotations

from core.models import CandidateInsight, InsightHistory
from core.rotation import (
    DEFAULT_QUOTAS,
    QUOTAS,
    SOURCE_QUOTA_FIELD,
    apply_quotas,
    empty_pack,
    filter_by_surface,
    premium_view,
    quotas_for_surface,
    select_base_pack,
)
from shared.enums import InsightKind, InsightSource, RotationSurface

SOURCE_KIND = {
    InsightSource.GATES: InsightKind.GATE_FAIL,
    InsightSource.HOOKS: InsightKind.POSITIVE_HOOK,
    InsightSource.PATTERNS: InsightKind.NEGATIVE_PATTERN,
    InsightSource.GENERAL: InsightKind.GENERAL_TIP,
    InsightSource.MOOD: InsightKind.MOOD,
    InsightSource.SYNERGY: InsightKind.SYNERGY,
    InsightSource.ANALYZER: InsightKind.ANALYZER_PARAGRAPH,
}


def _candidate(
    candidate_id: str,
    source: InsightSource,
    priority: int = 50,
    weight: int = 50,
    *,
    premium: bool = False,
    surfaces: list[RotationSurface] | None = None,
) -> CandidateInsight:
    return CandidateInsight(
        id=candidate_id,
        kind=SOURCE_KIND[source],
        source=source,
        category="test",
        priority=priority,
        weight=weight,
        is_premium=premium,
        surfaces=surfaces or [],
        title=f"Title {candidate_id}",
        body=f"Body {candidate_id}",
    )


def _pool() -> list[CandidateInsight]:
    pool: list[CandidateInsight] = []
    for source in InsightSource:
        for index in range(4):
            pool.append(
                _candidate(
                    f"{source.value.lower()}_{index}",
                    source,
                    priority=90 - index,
                    premium=source == InsightSource.SYNERGY,
                )
            )
    return pool


def test_quota_tables() -> None:
    mission_end = quotas_for_surface("MISSION_END")
    assert (mission_end.gate, mission_end.hook, mission_end.pattern, mission_end.tip) == (2, 2, 1, 3)
    assert (mission_end.mood, mission_end.synergy, mission_end.analyzer) == (1, 1, 0)
    assert quotas_for_surface("ANALYZER").analyzer == 2
    assert quotas_for_surface("SYNERGY_MAP").synergy == 3
    assert quotas_for_surface("NOT_A_SURFACE") == DEFAULT_QUOTAS
    assert (DEFAULT_QUOTAS.mood, DEFAULT_QUOTAS.synergy, DEFAULT_QUOTAS.analyzer) == (0, 0, 0)


def test_per_source_quotas_never_exceeded() -> None:
    pool = _pool()
    for surface in [*RotationSurface, "UNKNOWN_SURFACE"]:
        name = surface.value if isinstance(surface, RotationSurface) else surface
        quotas = quotas_for_surface(name)
        selected = apply_quotas(pool, quotas)
        for source in InsightSource:
            count = sum(1 for item in selected if item.source == source)
            assert count <= getattr(quotas, SOURCE_QUOTA_FIELD[source])


def test_quota_selection_order_follows_sources() -> None:
    selected = apply_quotas(_pool(), QUOTAS[RotationSurface.MISSION_END])

    assert [item.id for item in selected] == [
        "gates_0",
        "gates_1",
        "hooks_0",
        "hooks_1",
        "patterns_0",
        "general_0",
        "general_1",
        "general_2",
        "mood_0",
        "synergy_0",
    ]


def test_surface_filter_treats_empty_as_all() -> None:
    anywhere = _candidate("anywhere", InsightSource.GENERAL)
    only_map = _candidate("map", InsightSource.SYNERGY, surfaces=[RotationSurface.SYNERGY_MAP])

    assert filter_by_surface([anywhere, only_map], "MISSION_END") == [anywhere]
    assert filter_by_surface([anywhere, only_map], "SYNERGY_MAP") == [anywhere, only_map]


def test_cooldown_removes_history_ids() -> None:
    history = InsightHistory(insight_ids=("gates_0",), mood_ids=("mood_0",), synergy_ids=("synergy_0",))
    pack = select_base_pack(_pool(), history, "MISSION_END", "seed")

    picked = pack.meta.picked_ids
    assert not {"gates_0", "mood_0", "synergy_0"} & set(picked)
    assert picked[:2] == ["gates_1", "gates_2"]
    assert pack.meta.excluded_ids == ["gates_0", "mood_0", "synergy_0"]


def test_base_pack_keeps_premium_and_free() -> None:
    pack = select_base_pack(_pool(), InsightHistory(), "MISSION_END", "seed", session_id="s1")

    assert pack.session_id == "s1"
    assert pack.surface == "MISSION_END"
    assert pack.meta.seed == "seed"
    assert pack.meta.total_available == len(pack.selected_insights) == 10
    assert pack.meta.is_premium_user is False
    assert pack.meta.filtered_because_premium == 0
    assert pack.meta.premium_insight_ids == ["synergy_0"]
    assert pack.selected_paragraphs == []


def test_analyzer_surface_selects_paragraphs() -> None:
    pack = select_base_pack(_pool(), InsightHistory(), "ANALYZER", "seed")

    assert [item.id for item in pack.selected_paragraphs] == ["analyzer_0", "analyzer_1"]
    assert pack.selected_insights == []


def test_premium_view_filters_on_read_without_touching_base() -> None:
    base = select_base_pack(_pool(), InsightHistory(), "MISSION_END", "seed")
    snapshot = base.model_dump_json()

    free = premium_view(base, False)
    assert "synergy_0" not in [card.id for card in free.selected_insights]
    assert free.meta.total_available == 10
    assert free.meta.filtered_because_premium == 1
    assert free.meta.premium_insight_ids == ["synergy_0"]
    assert free.meta.picked_ids == [card.id for card in free.selected_insights]
    assert free.meta.excluded_ids == base.meta.excluded_ids
    assert free.meta.quotas == base.meta.quotas

    paid = premium_view(base, True)
    assert "synergy_0" in [card.id for card in paid.selected_insights]
    assert paid.meta.premium_insight_ids == []
    assert paid.meta.filtered_because_premium == 0
    assert paid.meta.is_premium_user is True

    assert base.model_dump_json() == snapshot
    assert premium_view(base, False).model_dump_json() == free.model_dump_json()


def test_build_is_deterministic() -> None:
    first = select_base_pack(_pool(), InsightHistory(), "ADVANCED_TAB", "seed")
    second = select_base_pack(list(reversed(_pool())), InsightHistory(), "ADVANCED_TAB", "seed")

    assert first.meta.picked_ids == second.meta.picked_ids


def test_missing_copy_gets_defaults() -> None:
    bare = _candidate("bare_tip", InsightSource.GENERAL).model_copy(update={"title": None, "body": None})
    pack = select_base_pack([bare], InsightHistory(), "MISSION_END", "seed")

    assert pack.selected_insights[0].title == "Bare Tip"
    assert pack.selected_insights[0].body == "Insight about test"


def test_empty_pack_is_well_formed() -> None:
    pack = empty_pack("s1", "MOOD_TIMELINE", is_premium=True)

    assert pack.selected_insights == []
    assert pack.meta.quotas.mood == 3
    assert pack.meta.is_premium_user is True
