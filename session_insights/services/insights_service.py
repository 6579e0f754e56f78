from __future__ import annotations

import logging

from core.catalog import InsightCatalog
from core.models import CandidateInsight, DeepInsightsRecord, DeepParagraph, InsightCard
from core.normalize import normalize_deep_insights
from core.prng import generate_seed
from core.selector import DEEP_INSIGHT_SURFACES, KIND_PRIORITY, KIND_SOURCE, select_deep_insights
from core.signals import extract_signals
from core.traits import compute_trait_deltas
from session_insights.db import Database
from session_insights.history import DEFAULT_HISTORY_WINDOW, load_unified_history
from session_insights.services.analyzer_service import AnalyzerService
from session_insights.snapshots import ensure_owner, load_session_snapshot
from shared.enums import DocumentKind

logger = logging.getLogger("session_insights.insights")


def _card_candidate(card: InsightCard) -> CandidateInsight | None:
    priority = KIND_PRIORITY.get(card.kind)
    if priority is None:
        return None
    return CandidateInsight(
        id=card.id,
        kind=card.kind,
        source=KIND_SOURCE[card.kind],
        category=card.category,
        priority=priority,
        weight=priority,
        is_premium=card.is_premium,
        surfaces=list(DEEP_INSIGHT_SURFACES),
        title=card.title,
        body=card.body,
        related_turn_index=card.related_turn_index,
    )


class InsightsService:
    def __init__(
        self,
        db: Database,
        catalog: InsightCatalog,
        analyzer: AnalyzerService | None = None,
        history_window: int = DEFAULT_HISTORY_WINDOW,
    ) -> None:
        self.db = db
        self.catalog = catalog
        self.analyzer = analyzer or AnalyzerService(db, history_window)
        self.history_window = history_window

    def build_and_persist(self, session_id: str) -> DeepInsightsRecord:
        snapshot = load_session_snapshot(self.db, session_id)
        seed = generate_seed(snapshot.user_id, snapshot.session_id, "insightsV2")
        signals = extract_signals(snapshot)
        history = load_unified_history(self.db, snapshot.user_id, session_id, self.history_window)

        payload = select_deep_insights(signals, history.insight_ids, seed, self.catalog)
        previous = self.db.latest_trait_snapshot(snapshot.user_id, snapshot.anchor_ts, session_id)
        payload.trait_deltas = compute_trait_deltas(signals.trait_snapshot, previous, seed)

        paragraphs: list[DeepParagraph] = []
        try:
            paragraphs = self.analyzer.paragraphs_for_session(snapshot, history.paragraph_ids)
        except Exception:
            logger.warning(
                "analyzer paragraphs failed",
                extra={"session_id": session_id},
                exc_info=True,
            )
        payload.meta.picked_paragraph_ids = [paragraph.id for paragraph in paragraphs]

        record = DeepInsightsRecord(
            session_id=session_id,
            user_id=snapshot.user_id,
            insights_v2=payload,
            analyzer_paragraphs=paragraphs,
        )
        self.db.upsert_document(DocumentKind.DEEP_INSIGHTS, session_id, snapshot.user_id, record)
        self.db.record_trait_history(session_id, snapshot.user_id, signals.trait_snapshot, snapshot.anchor_ts)
        logger.info(
            "deep insights stored",
            extra={"session_id": session_id, "picked": len(payload.meta.picked_ids)},
        )
        return record

    def get_insights(self, session_id: str, user_id: str) -> DeepInsightsRecord:
        ensure_owner(self.db, session_id, user_id)
        raw = self.db.get_document(DocumentKind.DEEP_INSIGHTS, session_id)
        return normalize_deep_insights(raw, session_id=session_id, user_id=user_id)

    def candidates_for_rotation(self, session_id: str) -> list[CandidateInsight]:
        record = normalize_deep_insights(self.db.get_document(DocumentKind.DEEP_INSIGHTS, session_id))
        candidates: list[CandidateInsight] = []
        for card in record.insights_v2.all_cards():
            candidate = _card_candidate(card)
            if candidate is not None:
                candidates.append(candidate)
        return candidates
