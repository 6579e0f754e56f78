from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from core.models import CandidateInsight, RotationPack
from core.normalize import normalize_rotation_pack
from core.prng import generate_seed
from core.rotation import (
    apply_cooldown,
    apply_quotas,
    empty_pack,
    filter_by_surface,
    filter_premium,
    premium_view,
    quotas_for_surface,
    select_base_pack,
    sort_candidates,
)
from session_insights.db import Database
from session_insights.history import DEFAULT_HISTORY_WINDOW, load_unified_history
from session_insights.services.analyzer_service import AnalyzerService
from session_insights.services.insights_service import InsightsService
from session_insights.services.mood_service import MoodService
from session_insights.services.synergy_service import SynergyService
from session_insights.snapshots import ensure_owner, load_session_snapshot
from shared.enums import DocumentKind, InsightSource

logger = logging.getLogger("session_insights.rotation")

Producer = Callable[[str], list[CandidateInsight]]


def rotation_seed(user_id: str, session_id: str, surface: str) -> str:
    return generate_seed(user_id, session_id, f"rotation_{surface}")


class RotationService:
    def __init__(
        self,
        db: Database,
        insights: InsightsService,
        mood: MoodService,
        synergy: SynergyService,
        analyzer: AnalyzerService,
        history_window: int = DEFAULT_HISTORY_WINDOW,
    ) -> None:
        self.db = db
        self.insights = insights
        self.mood = mood
        self.synergy = synergy
        self.analyzer = analyzer
        self.history_window = history_window

    def _producers(self) -> list[tuple[str, Producer]]:
        return [
            ("insights", self.insights.candidates_for_rotation),
            ("mood", self.mood.candidates_for_rotation),
            ("synergy", self.synergy.candidates_for_rotation),
            ("analyzer", self.analyzer.candidates_for_rotation),
        ]

    def collect_candidates(self, session_id: str) -> list[CandidateInsight]:
        candidates: list[CandidateInsight] = []
        for name, producer in self._producers():
            try:
                candidates.extend(producer(session_id))
            except Exception:
                logger.warning(
                    "rotation producer failed",
                    extra={"session_id": session_id, "producer": name},
                    exc_info=True,
                )
        return candidates

    def build_and_persist(self, user_id: str, session_id: str, surface: str) -> RotationPack:
        candidates = self.collect_candidates(session_id)
        history = load_unified_history(self.db, user_id, session_id, self.history_window)
        seed = rotation_seed(user_id, session_id, surface)
        pack = select_base_pack(candidates, history, surface, seed, session_id=session_id)

        snapshot = load_session_snapshot(self.db, session_id, require_finalized=False)
        processed = self.db.get_document(DocumentKind.DEEP_INSIGHTS, session_id) is not None
        if not (snapshot.is_finalized and processed):
            # Persisted packs are final; only store them once insights exist.
            logger.warning(
                "cannot persist rotation pack",
                extra={
                    "session_id": session_id,
                    "surface": surface,
                    "status": snapshot.status.value,
                    "processed": processed,
                },
            )
            return pack

        self.db.upsert_document(DocumentKind.ROTATION_PACK, session_id, user_id, pack, surface=surface)
        synergy_ids = [
            candidate.id
            for candidate in candidates
            if candidate.source == InsightSource.SYNERGY and candidate.id in pack.meta.picked_ids
        ]
        self.synergy.record_picked(session_id, user_id, synergy_ids)
        logger.info(
            "rotation pack stored",
            extra={"session_id": session_id, "surface": surface, "picked": len(pack.meta.picked_ids)},
        )
        return pack

    def get_rotation_pack(self, user_id: str, session_id: str, surface: str) -> RotationPack:
        ensure_owner(self.db, session_id, user_id)
        is_premium = self.db.is_premium(user_id)

        stored = self.db.get_document(DocumentKind.ROTATION_PACK, session_id, surface=surface)
        if stored is not None:
            base = normalize_rotation_pack(stored, surface, session_id)
        else:
            try:
                base = self.build_and_persist(user_id, session_id, surface)
            except Exception:
                logger.warning(
                    "rotation build failed",
                    extra={"session_id": session_id, "surface": surface},
                    exc_info=True,
                )
                return empty_pack(session_id, surface, is_premium)
        return premium_view(base, is_premium)

    def debug_rotation(self, user_id: str, session_id: str, surface: str) -> dict[str, Any]:
        ensure_owner(self.db, session_id, user_id)
        candidates = self.collect_candidates(session_id)
        history = load_unified_history(self.db, user_id, session_id, self.history_window)
        is_premium = self.db.is_premium(user_id)

        after_cooldown = apply_cooldown(candidates, history)
        after_surface = filter_by_surface(after_cooldown, surface)
        after_premium = filter_premium(after_surface, is_premium)
        selected = apply_quotas(sort_candidates(after_premium), quotas_for_surface(surface))

        return {
            "surface": surface,
            "seed": rotation_seed(user_id, session_id, surface),
            "is_premium": is_premium,
            "all_candidates": len(candidates),
            "history": {
                "insight_ids": len(history.insight_ids),
                "mood_ids": len(history.mood_ids),
                "paragraph_ids": len(history.paragraph_ids),
                "synergy_ids": len(history.synergy_ids),
            },
            "filtered_candidates": {
                "after_cooldown": len(after_cooldown),
                "after_surface": len(after_surface),
                "after_premium": len(after_premium),
                "selected": len(selected),
            },
            "selected": [
                {
                    "id": item.id,
                    "source": item.source.value,
                    "kind": item.kind.value,
                    "priority": item.priority,
                    "weight": item.weight,
                }
                for item in selected
            ],
        }
