from __future__ import annotations

import sqlite3
import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from core.models import SessionSnapshot
from session_insights.config import secure_path
from shared.enums import DocumentKind
from shared.serialization import decode_document, encode_document


def _iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat()


class Database:
    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path.expanduser().resolve(strict=False)
        if self.db_path.exists() and self.db_path.is_symlink():
            raise ValueError(f"refusing symlinked database file: {self.db_path}")
        if self.db_path.parent.exists() and self.db_path.parent.is_symlink():
            raise ValueError(f"refusing symlinked database directory: {self.db_path.parent}")
        self.db_path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        secure_path(self.db_path.parent, 0o700)

        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._init_schema()
        secure_path(self.db_path, 0o600)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def _init_schema(self) -> None:
        with self._lock, self._conn:
            self._conn.execute("PRAGMA journal_mode=WAL;")
            self._conn.execute("PRAGMA synchronous=NORMAL;")
            self._conn.execute("PRAGMA foreign_keys=ON;")
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS sessions(
                  session_id TEXT PRIMARY KEY,
                  user_id TEXT NOT NULL,
                  template_id TEXT,
                  status TEXT NOT NULL,
                  created_at TEXT NOT NULL,
                  ended_at TEXT,
                  snapshot_json TEXT NOT NULL
                )
                """
            )
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS documents(
                  kind TEXT NOT NULL,
                  session_id TEXT NOT NULL,
                  surface TEXT NOT NULL DEFAULT '',
                  user_id TEXT NOT NULL,
                  updated_at TEXT NOT NULL,
                  blob_json TEXT NOT NULL,
                  PRIMARY KEY(kind, session_id, surface)
                )
                """
            )
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS trait_history(
                  session_id TEXT PRIMARY KEY,
                  user_id TEXT NOT NULL,
                  recorded_at TEXT NOT NULL,
                  traits_json TEXT NOT NULL
                )
                """
            )
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS entitlements(
                  user_id TEXT PRIMARY KEY,
                  is_premium INTEGER NOT NULL,
                  updated_at TEXT NOT NULL
                )
                """
            )
            self._conn.execute("CREATE INDEX IF NOT EXISTS idx_sessions_user_created ON sessions(user_id, created_at)")
            self._conn.execute("CREATE INDEX IF NOT EXISTS idx_trait_history_user ON trait_history(user_id)")

    def upsert_session(self, snapshot: SessionSnapshot) -> None:
        with self._lock, self._conn:
            self._conn.execute(
                """
                INSERT INTO sessions(session_id, user_id, template_id, status, created_at, ended_at, snapshot_json)
                VALUES(?,?,?,?,?,?,?)
                ON CONFLICT(session_id)
                DO UPDATE SET user_id = excluded.user_id,
                              template_id = excluded.template_id,
                              status = excluded.status,
                              created_at = excluded.created_at,
                              ended_at = excluded.ended_at,
                              snapshot_json = excluded.snapshot_json
                """,
                (
                    snapshot.session_id,
                    snapshot.user_id,
                    snapshot.template_id,
                    snapshot.status.value,
                    _iso(snapshot.created_at),
                    _iso(snapshot.ended_at) if snapshot.ended_at else None,
                    encode_document(snapshot),
                ),
            )

    def get_session(self, session_id: str) -> dict[str, Any] | None:
        with self._lock:
            row = self._conn.execute(
                """
                SELECT session_id, user_id, template_id, status, created_at, ended_at, snapshot_json
                FROM sessions WHERE session_id = ?
                """,
                (session_id,),
            ).fetchone()
        if row is None:
            return None
        return {
            "session_id": row["session_id"],
            "user_id": row["user_id"],
            "template_id": row["template_id"],
            "status": row["status"],
            "created_at": row["created_at"],
            "ended_at": row["ended_at"],
            "snapshot": decode_document(row["snapshot_json"]),
        }

    def upsert_document(
        self,
        kind: DocumentKind,
        session_id: str,
        user_id: str,
        blob: Any,
        surface: str = "",
        now: datetime | None = None,
    ) -> None:
        at = _iso(now or datetime.now(UTC))
        with self._lock, self._conn:
            self._conn.execute(
                """
                INSERT INTO documents(kind, session_id, surface, user_id, updated_at, blob_json)
                VALUES(?,?,?,?,?,?)
                ON CONFLICT(kind, session_id, surface)
                DO UPDATE SET user_id = excluded.user_id,
                              updated_at = excluded.updated_at,
                              blob_json = excluded.blob_json
                """,
                (kind.value, session_id, surface, user_id, at, encode_document(blob)),
            )

    def get_document(self, kind: DocumentKind, session_id: str, surface: str = "") -> Any | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT blob_json FROM documents WHERE kind = ? AND session_id = ? AND surface = ?",
                (kind.value, session_id, surface),
            ).fetchone()
        return None if row is None else decode_document(row["blob_json"])

    def list_prior_documents(
        self,
        kind: DocumentKind,
        user_id: str,
        before_ts: datetime,
        exclude_session_id: str,
        limit: int,
    ) -> list[dict[str, Any]]:
        """Documents from the user's last `limit` sessions created before the anchor, newest first."""
        with self._lock:
            rows = self._conn.execute(
                """
                SELECT d.blob_json
                FROM (
                  SELECT session_id, created_at FROM sessions
                  WHERE user_id = ? AND created_at < ? AND session_id != ?
                  ORDER BY created_at DESC
                  LIMIT ?
                ) AS s
                JOIN documents AS d
                  ON d.session_id = s.session_id AND d.kind = ? AND d.surface = ''
                ORDER BY s.created_at DESC
                """,
                (user_id, _iso(before_ts), exclude_session_id, max(limit, 0), kind.value),
            ).fetchall()
        return [decode_document(row["blob_json"]) for row in rows]

    def record_trait_history(
        self,
        session_id: str,
        user_id: str,
        traits: dict[str, int],
        recorded_at: datetime | None = None,
    ) -> None:
        at = _iso(recorded_at or datetime.now(UTC))
        with self._lock, self._conn:
            self._conn.execute(
                """
                INSERT INTO trait_history(session_id, user_id, recorded_at, traits_json)
                VALUES(?,?,?,?)
                ON CONFLICT(session_id)
                DO UPDATE SET user_id = excluded.user_id,
                              recorded_at = excluded.recorded_at,
                              traits_json = excluded.traits_json
                """,
                (session_id, user_id, at, encode_document(traits)),
            )

    def list_trait_history(
        self,
        user_id: str,
        before_ts: datetime,
        exclude_session_id: str,
        limit: int,
    ) -> list[dict[str, Any]]:
        """Trait averages from the user's most recent prior sessions, newest first."""
        with self._lock:
            rows = self._conn.execute(
                """
                SELECT t.traits_json
                FROM trait_history AS t
                JOIN sessions AS s ON s.session_id = t.session_id
                WHERE t.user_id = ? AND s.created_at < ? AND t.session_id != ?
                ORDER BY s.created_at DESC
                LIMIT ?
                """,
                (user_id, _iso(before_ts), exclude_session_id, max(limit, 0)),
            ).fetchall()
        return [decode_document(row["traits_json"]) for row in rows]

    def latest_trait_snapshot(
        self,
        user_id: str,
        before_ts: datetime,
        exclude_session_id: str,
    ) -> dict[str, Any] | None:
        rows = self.list_trait_history(user_id, before_ts, exclude_session_id, 1)
        return rows[0] if rows else None

    def set_premium(self, user_id: str, is_premium: bool) -> None:
        with self._lock, self._conn:
            self._conn.execute(
                """
                INSERT INTO entitlements(user_id, is_premium, updated_at)
                VALUES(?,?,?)
                ON CONFLICT(user_id)
                DO UPDATE SET is_premium = excluded.is_premium, updated_at = excluded.updated_at
                """,
                (user_id, 1 if is_premium else 0, _iso(datetime.now(UTC))),
            )

    def is_premium(self, user_id: str) -> bool:
        with self._lock:
            row = self._conn.execute(
                "SELECT is_premium FROM entitlements WHERE user_id = ?", (user_id,)
            ).fetchone()
        return row is not None and bool(row["is_premium"])
