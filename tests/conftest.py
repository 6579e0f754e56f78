from __future__ import annotations

from collections.abc import Callable, Iterator, Sequence
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest

from core.models import SessionSnapshot
from session_insights.config import AppConfig
from session_insights.db import Database
from session_insights.pipeline import SessionInsightEngine
from session_insights.snapshots import save_session

BASE_TS = datetime(2026, 3, 1, 18, 0, tzinfo=UTC)
DEFAULT_TRAITS: dict[str, float] = {
    "confidence": 60,
    "clarity": 60,
    "humor": 50,
    "tension_control": 50,
    "emotional_warmth": 60,
    "dominance": 40,
}

SnapshotFactory = Callable[..., SessionSnapshot]


def make_snapshot(
    session_id: str = "s1",
    user_id: str = "u1",
    scores: Sequence[int] = (60, 70, 80),
    *,
    day: int = 0,
    status: str = "SUCCESS",
    traits: dict[str, float] | None = None,
    hooks: Sequence[Sequence[str]] | None = None,
    patterns: Sequence[Sequence[str]] | None = None,
    gate_outcomes: list[dict[str, Any]] | None = None,
    hook_triggers: list[dict[str, Any]] | None = None,
    enable_arc_detection: bool = True,
) -> SessionSnapshot:
    created = BASE_TS + timedelta(days=day)
    messages: list[dict[str, Any]] = []
    for index, score in enumerate(scores):
        messages.append(
            {
                "turn_index": index * 2,
                "role": "USER",
                "content": f"message {index}",
                "score": score,
                "traits": dict(traits or DEFAULT_TRAITS),
                "hooks": list(hooks[index]) if hooks else [],
                "patterns": list(patterns[index]) if patterns else [],
            }
        )
        messages.append({"turn_index": index * 2 + 1, "role": "AI", "content": f"reply {index}"})
    return SessionSnapshot.model_validate(
        {
            "session_id": session_id,
            "user_id": user_id,
            "template_id": "coffee_date",
            "status": status,
            "created_at": created,
            "ended_at": created + timedelta(minutes=20),
            "messages": messages,
            "gate_outcomes": gate_outcomes,
            "hook_triggers": hook_triggers,
            "enable_arc_detection": enable_arc_detection,
        }
    )


@pytest.fixture()
def snapshot_factory() -> SnapshotFactory:
    return make_snapshot


@pytest.fixture()
def db(tmp_path: Path) -> Iterator[Database]:
    database = Database(tmp_path / "insights.db")
    try:
        yield database
    finally:
        database.close()


@pytest.fixture()
def engine(db: Database) -> SessionInsightEngine:
    return SessionInsightEngine(AppConfig(), db)


@pytest.fixture()
def stored_session(db: Database) -> SessionSnapshot:
    return save_session(
        db,
        make_snapshot(
            hooks=[["HIGH_CONFIDENCE"], [], ["HIGH_WARMTH"]],
            patterns=[[], ["neediness"], []],
            gate_outcomes=[{"gate_key": "GATE_SUCCESS_THRESHOLD", "passed": True}],
        ),
    )
