from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from core.errors import InvalidSessionState, SessionAccessDenied, SessionNotFound
from core.models import SessionSnapshot
from session_insights.db import Database

logger = logging.getLogger("session_insights.snapshots")


def save_session(db: Database, payload: SessionSnapshot | dict[str, Any]) -> SessionSnapshot:
    snapshot = payload if isinstance(payload, SessionSnapshot) else SessionSnapshot.model_validate(payload)
    db.upsert_session(snapshot)
    logger.info(
        "stored session",
        extra={"session_id": snapshot.session_id, "messages": len(snapshot.messages)},
    )
    return snapshot


def read_snapshot_file(path: Path) -> SessionSnapshot:
    with path.expanduser().open("r", encoding="utf-8") as handle:
        raw = json.load(handle)
    return SessionSnapshot.model_validate(raw)


def session_owner(db: Database, session_id: str) -> str:
    row = db.get_session(session_id)
    if row is None:
        raise SessionNotFound(session_id)
    return str(row["user_id"])


def ensure_owner(db: Database, session_id: str, user_id: str) -> None:
    if session_owner(db, session_id) != user_id:
        raise SessionAccessDenied(session_id, user_id)


def load_session_snapshot(db: Database, session_id: str, require_finalized: bool = True) -> SessionSnapshot:
    row = db.get_session(session_id)
    if row is None:
        raise SessionNotFound(session_id)
    try:
        snapshot = SessionSnapshot.model_validate(row["snapshot"])
    except ValidationError as exc:
        raise InvalidSessionState(session_id, "stored snapshot is malformed") from exc
    if require_finalized and not snapshot.is_finalized:
        raise InvalidSessionState(session_id, f"status {snapshot.status.value} is not finalized")
    return snapshot
