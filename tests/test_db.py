from __future__ import annotations

from datetime import timedelta
from pathlib import Path

from conftest import BASE_TS, make_snapshot

from session_insights.db import Database
from shared.enums import DocumentKind


def test_sql_parameterization_blocks_injection_strings(tmp_path: Path) -> None:
    db = Database(tmp_path / "db.sqlite3")
    try:
        hostile = "x'); DROP TABLE sessions; --"
        db.upsert_session(make_snapshot(session_id=hostile, user_id=hostile))

        row = db.get_session(hostile)
        assert row is not None
        assert row["user_id"] == hostile
        assert row["snapshot"]["session_id"] == hostile
        assert db.get_session("s1") is None
    finally:
        db.close()


def test_documents_upsert_last_write_wins(tmp_path: Path) -> None:
    db = Database(tmp_path / "db.sqlite3")
    try:
        db.upsert_document(DocumentKind.ROTATION_PACK, "s1", "u1", {"n": 1}, surface="MISSION_END")
        db.upsert_document(DocumentKind.ROTATION_PACK, "s1", "u1", {"n": 2}, surface="MISSION_END")
        db.upsert_document(DocumentKind.ROTATION_PACK, "s1", "u1", {"n": 3}, surface="ANALYZER")

        assert db.get_document(DocumentKind.ROTATION_PACK, "s1", surface="MISSION_END") == {"n": 2}
        assert db.get_document(DocumentKind.ROTATION_PACK, "s1", surface="ANALYZER") == {"n": 3}
        assert db.get_document(DocumentKind.ROTATION_PACK, "s1") is None
        assert db.get_document(DocumentKind.MOOD_TIMELINE, "s1") is None
    finally:
        db.close()


def test_prior_documents_are_strictly_older_and_limited(tmp_path: Path) -> None:
    db = Database(tmp_path / "db.sqlite3")
    try:
        for day in range(4):
            db.upsert_session(make_snapshot(session_id=f"s{day}", day=day))
            db.upsert_document(DocumentKind.SYNERGY, f"s{day}", "u1", {"day": day})
        db.upsert_session(make_snapshot(session_id="other", user_id="u2", day=1))
        db.upsert_document(DocumentKind.SYNERGY, "other", "u2", {"day": "other"})

        anchor = BASE_TS + timedelta(days=3)
        docs = db.list_prior_documents(DocumentKind.SYNERGY, "u1", anchor, "s3", limit=2)
        assert docs == [{"day": 2}, {"day": 1}]

        everything = db.list_prior_documents(DocumentKind.SYNERGY, "u1", anchor, "s3", limit=10)
        assert [doc["day"] for doc in everything] == [2, 1, 0]
    finally:
        db.close()


def test_trait_history_newest_first(tmp_path: Path) -> None:
    db = Database(tmp_path / "db.sqlite3")
    try:
        for day in range(3):
            db.upsert_session(make_snapshot(session_id=f"s{day}", day=day))
            db.record_trait_history(f"s{day}", "u1", {"confidence": 50 + day})

        anchor = BASE_TS + timedelta(days=5)
        rows = db.list_trait_history("u1", anchor, "s-current", 15)
        assert [row["confidence"] for row in rows] == [52, 51, 50]
        assert db.latest_trait_snapshot("u1", anchor, "s-current") == {"confidence": 52}
        assert db.latest_trait_snapshot("u1", BASE_TS, "s-current") is None
    finally:
        db.close()


def test_premium_flag_defaults_off(tmp_path: Path) -> None:
    db = Database(tmp_path / "db.sqlite3")
    try:
        assert db.is_premium("u1") is False
        db.set_premium("u1", True)
        assert db.is_premium("u1") is True
        db.set_premium("u1", False)
        assert db.is_premium("u1") is False
    finally:
        db.close()
