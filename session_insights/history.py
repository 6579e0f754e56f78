from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from core.models import InsightHistory
from core.normalize import normalize_deep_insights, normalize_mood_timeline, normalize_synergy
from session_insights.db import Database
from session_insights.snapshots import load_session_snapshot
from shared.enums import DocumentKind

DEFAULT_HISTORY_WINDOW = 5


def _unique(groups: Iterable[list[str]]) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for group in groups:
        for item in group:
            seen.setdefault(item, None)
    return tuple(seen)


def load_unified_history(
    db: Database,
    user_id: str,
    session_id: str,
    limit: int = DEFAULT_HISTORY_WINDOW,
) -> InsightHistory:
    """Ids picked by every producer across the user's last `limit` prior sessions."""
    anchor = load_session_snapshot(db, session_id, require_finalized=False).anchor_ts

    def prior(kind: DocumentKind) -> list[Any]:
        return db.list_prior_documents(kind, user_id, anchor, session_id, limit)

    deep = [normalize_deep_insights(doc) for doc in prior(DocumentKind.DEEP_INSIGHTS)]
    mood = [normalize_mood_timeline(doc) for doc in prior(DocumentKind.MOOD_TIMELINE)]
    synergy = [normalize_synergy(doc) for doc in prior(DocumentKind.SYNERGY)]

    return InsightHistory(
        insight_ids=_unique(record.insights_v2.meta.picked_ids for record in deep),
        paragraph_ids=_unique(record.insights_v2.meta.picked_paragraph_ids for record in deep),
        mood_ids=_unique(timeline.mood_insights.picked_ids for timeline in mood if timeline.mood_insights),
        synergy_ids=_unique(payload.synergy_insights.picked_ids for payload in synergy),
    )
