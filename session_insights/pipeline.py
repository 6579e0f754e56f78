from __future__ import annotations

import logging
from dataclasses import dataclass, field

from core.catalog import InsightCatalog, build_default_catalog
from core.models import RotationPack
from core.mood_rules import MoodInsightRegistry
from session_insights.config import AppConfig
from session_insights.db import Database
from session_insights.services import (
    AnalyzerService,
    InsightsService,
    MoodService,
    RotationService,
    SynergyService,
)

logger = logging.getLogger("session_insights.pipeline")


@dataclass(slots=True)
class ProcessResult:
    session_id: str
    user_id: str
    deep_insight_ids: list[str] = field(default_factory=list)
    paragraph_ids: list[str] = field(default_factory=list)
    mood_state: str = ""
    mood_insight_ids: list[str] = field(default_factory=list)
    arcs: list[str] = field(default_factory=list)
    synergy_sessions_used: int = 0


class SessionInsightEngine:
    def __init__(
        self,
        config: AppConfig,
        db: Database,
        catalog: InsightCatalog | None = None,
        mood_registry: MoodInsightRegistry | None = None,
    ) -> None:
        self.config = config
        self.db = db
        self.catalog = catalog or build_default_catalog()
        window = config.history_window
        self.analyzer = AnalyzerService(db, window)
        self.insights = InsightsService(db, self.catalog, self.analyzer, window)
        self.mood = MoodService(db, mood_registry, config.mood_ema_alpha, window)
        self.synergy = SynergyService(
            db,
            window=config.synergy_window,
            min_sessions=config.synergy_min_sessions,
            threshold=config.synergy_threshold,
        )
        self.rotation = RotationService(db, self.insights, self.mood, self.synergy, self.analyzer, window)

    def process_session(self, session_id: str) -> ProcessResult:
        """Compute and persist mood, deep insights and synergy for a finalized session."""
        timeline = self.mood.compute_and_persist(session_id)
        record = self.insights.build_and_persist(session_id)
        synergy = self.synergy.compute_and_persist(session_id)

        result = ProcessResult(
            session_id=session_id,
            user_id=record.user_id,
            deep_insight_ids=list(record.insights_v2.meta.picked_ids),
            paragraph_ids=list(record.insights_v2.meta.picked_paragraph_ids),
            mood_state=timeline.current.mood_state.value,
            mood_insight_ids=list(timeline.mood_insights.picked_ids) if timeline.mood_insights else [],
            arcs=[arc.type.value for arc in timeline.arcs],
            synergy_sessions_used=synergy.sessions_used,
        )
        logger.info("session processed", extra={"session_id": session_id})
        return result

    def rotation_pack(self, user_id: str, session_id: str, surface: str) -> RotationPack:
        return self.rotation.get_rotation_pack(user_id, session_id, surface)
