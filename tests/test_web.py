from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from conftest import make_snapshot

from session_insights.config import AppConfig
from session_insights.db import Database
from session_insights.web.app import create_app

OWNER = {"X-User-Id": "u1"}


def _payload(**overrides: object) -> dict:
    snapshot = make_snapshot(
        hooks=[["HIGH_CONFIDENCE"], [], ["HIGH_WARMTH"]],
        patterns=[[], ["neediness"], []],
        **overrides,
    )
    return snapshot.model_dump(mode="json")


@pytest.fixture()
def client(tmp_path: Path) -> Iterator[TestClient]:
    db = Database(tmp_path / "web.db")
    try:
        with TestClient(create_app(AppConfig(), db)) as tc:
            yield tc
    finally:
        db.close()


def test_docs_disabled_and_security_headers(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert client.get("/docs").status_code == 404
    assert client.get("/redoc").status_code == 404
    assert client.get("/openapi.json").status_code == 404

    headers = response.headers
    assert headers["x-content-type-options"] == "nosniff"
    assert headers["x-frame-options"] == "DENY"
    assert headers["referrer-policy"] == "no-referrer"
    assert headers["cache-control"] == "no-store"
    assert "content-security-policy" in headers


def test_docs_enabled_in_dev(tmp_path: Path) -> None:
    db = Database(tmp_path / "docs.db")
    try:
        client = TestClient(create_app(AppConfig(dev_enable_docs=True), db))
        assert client.get("/openapi.json").status_code == 200
    finally:
        db.close()


def test_ingest_process_and_read(client: TestClient) -> None:
    created = client.post("/api/sessions", json=_payload(), headers=OWNER)
    assert created.status_code == 201
    assert created.json() == {"session_id": "s1", "status": "SUCCESS", "messages": 6}

    processed = client.post("/api/sessions/s1/process", headers=OWNER)
    assert processed.status_code == 200
    body = processed.json()
    assert body["session_id"] == "s1"
    assert body["deep_insight_ids"][0] == "hook_warmth_genuine"

    insights = client.get("/api/sessions/s1/insights", headers=OWNER).json()
    assert insights["version"] == "v2"
    assert insights["insights_v2"]["meta"]["picked_ids"] == body["deep_insight_ids"]

    mood = client.get("/api/sessions/s1/mood", headers=OWNER).json()
    assert mood["version"] == 1
    assert len(mood["snapshots"]) == 3

    synergy = client.get("/api/sessions/s1/synergy", headers=OWNER).json()
    assert synergy["version"] == "v1"
    assert synergy["sessions_used"] == 0


def test_rotation_endpoints(client: TestClient) -> None:
    client.post("/api/sessions", json=_payload(), headers=OWNER)
    client.post("/api/sessions/s1/process", headers=OWNER)

    pack = client.get("/api/sessions/s1/rotation", headers=OWNER)
    assert pack.status_code == 200
    data = pack.json()
    assert data["surface"] == "MISSION_END"
    assert data["meta"]["is_premium_user"] is False
    assert data["meta"]["picked_ids"] == [card["id"] for card in data["selected_insights"]]

    analyzer = client.get("/api/sessions/s1/rotation", params={"surface": "ANALYZER"}, headers=OWNER).json()
    assert len(analyzer["selected_paragraphs"]) == 2

    debug = client.get("/api/sessions/s1/rotation/debug", headers=OWNER).json()
    assert debug["surface"] == "MISSION_END"
    assert "filtered_candidates" in debug


def test_message_analysis(client: TestClient) -> None:
    client.post("/api/sessions", json=_payload(), headers=OWNER)

    ok = client.get("/api/sessions/s1/messages/4/analysis", headers=OWNER)
    assert ok.status_code == 200
    assert ok.json()["breakdown"]["score"] == 80

    assert client.get("/api/sessions/s1/messages/3/analysis", headers=OWNER).status_code == 404


def test_error_mapping(client: TestClient) -> None:
    client.post("/api/sessions", json=_payload(), headers=OWNER)
    client.post("/api/sessions", json=_payload(session_id="live", status="IN_PROGRESS"), headers=OWNER)

    assert client.get("/api/sessions/missing/insights", headers=OWNER).status_code == 404
    assert client.get("/api/sessions/s1/insights", headers={"X-User-Id": "u2"}).status_code == 403
    assert client.post("/api/sessions/live/process", headers=OWNER).status_code == 409
    assert client.get("/api/sessions/s1/insights").status_code == 422


def test_ingest_rejects_foreign_and_malformed_payloads(client: TestClient) -> None:
    assert client.post("/api/sessions", json=_payload(), headers={"X-User-Id": "u2"}).status_code == 403

    broken = _payload()
    broken["messages"][0]["score"] = 250
    assert client.post("/api/sessions", json=broken, headers=OWNER).status_code == 422

    extra = _payload()
    extra["unexpected"] = True
    assert client.post("/api/sessions", json=extra, headers=OWNER).status_code == 422


def test_premium_toggle_disabled_by_default(client: TestClient) -> None:
    client.post("/api/sessions", json=_payload(), headers=OWNER)

    denied = client.put("/api/users/u1/premium", json={"is_premium": True}, headers=OWNER)
    assert denied.status_code == 403

    pack = client.get("/api/sessions/s1/rotation", headers=OWNER).json()
    assert pack["meta"]["is_premium_user"] is False


def test_premium_toggle_is_self_only(tmp_path: Path) -> None:
    db = Database(tmp_path / "toggle.db")
    try:
        client = TestClient(create_app(AppConfig(dev_enable_premium_toggle=True), db))
        client.post("/api/sessions", json=_payload(), headers=OWNER)

        foreign = client.put("/api/users/u1/premium", json={"is_premium": True}, headers={"X-User-Id": "u2"})
        assert foreign.status_code == 403
        updated = client.put("/api/users/u1/premium", json={"is_premium": True}, headers=OWNER)
        assert updated.json() == {"user_id": "u1", "is_premium": True}

        pack = client.get("/api/sessions/s1/rotation", headers=OWNER).json()
        assert pack["meta"]["is_premium_user"] is True
    finally:
        db.close()
