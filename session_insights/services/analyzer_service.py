from __future__ import annotations

from collections.abc import Iterable

from core.analyzer import best_message, build_breakdown, paragraph_candidates, select_deep_paragraphs
from core.errors import MessageNotFound
from core.models import CandidateInsight, DeepParagraph, MessageAnalysis, SessionSnapshot
from session_insights.db import Database
from session_insights.history import DEFAULT_HISTORY_WINDOW, load_unified_history
from session_insights.snapshots import ensure_owner, load_session_snapshot


class AnalyzerService:
    def __init__(self, db: Database, history_window: int = DEFAULT_HISTORY_WINDOW) -> None:
        self.db = db
        self.history_window = history_window

    def paragraphs_for_session(self, snapshot: SessionSnapshot, excluded_ids: Iterable[str]) -> list[DeepParagraph]:
        message = best_message(snapshot.user_messages)
        if message is None:
            return []
        return select_deep_paragraphs(build_breakdown(message), excluded_ids)

    def analyze_message(self, user_id: str, session_id: str, turn_index: int) -> MessageAnalysis:
        ensure_owner(self.db, session_id, user_id)
        snapshot = load_session_snapshot(self.db, session_id)
        message = next((item for item in snapshot.user_messages if item.turn_index == turn_index), None)
        if message is None:
            raise MessageNotFound(session_id, turn_index)
        history = load_unified_history(self.db, user_id, session_id, self.history_window)
        breakdown = build_breakdown(message)
        return MessageAnalysis(
            session_id=session_id,
            breakdown=breakdown,
            paragraphs=select_deep_paragraphs(breakdown, history.paragraph_ids),
        )

    def candidates_for_rotation(self, session_id: str) -> list[CandidateInsight]:
        snapshot = load_session_snapshot(self.db, session_id)
        return paragraph_candidates(self.paragraphs_for_session(snapshot, ()))
