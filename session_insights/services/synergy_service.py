from __future__ import annotations

import logging
from collections.abc import Iterable

from core.models import CandidateInsight, SynergyPayload
from core.normalize import normalize_mood_timeline, normalize_synergy
from core.synergy import CORRELATION_THRESHOLD, MIN_SESSIONS, SYNERGY_WINDOW, compute_synergy, synergy_candidates
from session_insights.db import Database
from session_insights.snapshots import ensure_owner, load_session_snapshot
from shared.enums import DocumentKind

logger = logging.getLogger("session_insights.synergy")


class SynergyService:
    def __init__(
        self,
        db: Database,
        window: int = SYNERGY_WINDOW,
        min_sessions: int = MIN_SESSIONS,
        threshold: float = CORRELATION_THRESHOLD,
    ) -> None:
        self.db = db
        self.window = window
        self.min_sessions = min_sessions
        self.threshold = threshold

    def compute_and_persist(self, session_id: str) -> SynergyPayload:
        snapshot = load_session_snapshot(self.db, session_id)
        recent = self.db.list_trait_history(snapshot.user_id, snapshot.anchor_ts, session_id, self.window)
        history = list(reversed(recent))

        stored_mood = self.db.get_document(DocumentKind.MOOD_TIMELINE, session_id)
        timeline = normalize_mood_timeline(stored_mood) if stored_mood is not None else None

        payload = compute_synergy(history, timeline, self.min_sessions)
        previous = self.db.get_document(DocumentKind.SYNERGY, session_id)
        if previous is not None:
            payload.synergy_insights.picked_ids = normalize_synergy(previous).synergy_insights.picked_ids

        self.db.upsert_document(DocumentKind.SYNERGY, session_id, snapshot.user_id, payload)
        logger.info(
            "synergy stored",
            extra={"session_id": session_id, "sessions_used": payload.sessions_used},
        )
        return payload

    def get_synergy(self, session_id: str, user_id: str) -> SynergyPayload:
        ensure_owner(self.db, session_id, user_id)
        return normalize_synergy(self.db.get_document(DocumentKind.SYNERGY, session_id))

    def candidates_for_rotation(self, session_id: str) -> list[CandidateInsight]:
        stored = self.db.get_document(DocumentKind.SYNERGY, session_id)
        if stored is None:
            return []
        return synergy_candidates(normalize_synergy(stored), self.threshold)

    def record_picked(self, session_id: str, user_id: str, picked_ids: Iterable[str]) -> None:
        ids = list(picked_ids)
        stored = self.db.get_document(DocumentKind.SYNERGY, session_id)
        if not ids or stored is None:
            return
        payload = normalize_synergy(stored)
        merged = list(dict.fromkeys([*payload.synergy_insights.picked_ids, *ids]))
        payload.synergy_insights.picked_ids = merged
        self.db.upsert_document(DocumentKind.SYNERGY, session_id, user_id, payload)
