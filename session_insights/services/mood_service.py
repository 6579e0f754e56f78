from __future__ import annotations

import logging

from core.models import CandidateInsight, MoodInsightsBlock, MoodTimelinePayload
from core.mood import EMA_ALPHA, build_mood_timeline
from core.mood_rules import MoodInsightRegistry
from core.normalize import normalize_mood_timeline
from session_insights.db import Database
from session_insights.history import DEFAULT_HISTORY_WINDOW, load_unified_history
from session_insights.snapshots import ensure_owner, load_session_snapshot
from shared.enums import DocumentKind

logger = logging.getLogger("session_insights.mood")


class MoodService:
    def __init__(
        self,
        db: Database,
        registry: MoodInsightRegistry | None = None,
        alpha: float = EMA_ALPHA,
        history_window: int = DEFAULT_HISTORY_WINDOW,
    ) -> None:
        self.db = db
        self.registry = registry or MoodInsightRegistry()
        self.alpha = alpha
        self.history_window = history_window

    def build_timeline(self, session_id: str) -> MoodTimelinePayload:
        snapshot = load_session_snapshot(self.db, session_id)
        return build_mood_timeline(snapshot, self.alpha)

    def compute_and_persist(self, session_id: str) -> MoodTimelinePayload:
        snapshot = load_session_snapshot(self.db, session_id)
        timeline = build_mood_timeline(snapshot, self.alpha)
        history = load_unified_history(self.db, snapshot.user_id, session_id, self.history_window)
        picked = self.registry.select(timeline, history.mood_ids)
        timeline.mood_insights = MoodInsightsBlock(
            picked_ids=[item.id for item in picked],
            insights=picked,
        )
        self.db.upsert_document(DocumentKind.MOOD_TIMELINE, session_id, snapshot.user_id, timeline)
        logger.info(
            "mood timeline stored",
            extra={
                "session_id": session_id,
                "mood_state": timeline.current.mood_state.value,
                "arcs": len(timeline.arcs),
            },
        )
        return timeline

    def get_timeline(self, session_id: str, user_id: str) -> MoodTimelinePayload:
        ensure_owner(self.db, session_id, user_id)
        return normalize_mood_timeline(self.db.get_document(DocumentKind.MOOD_TIMELINE, session_id))

    def candidates_for_rotation(self, session_id: str) -> list[CandidateInsight]:
        stored = self.db.get_document(DocumentKind.MOOD_TIMELINE, session_id)
        timeline = normalize_mood_timeline(stored) if stored is not None else None
        if timeline is None or not timeline.snapshots:
            timeline = self.build_timeline(session_id)
        return self.registry.candidates(timeline)
