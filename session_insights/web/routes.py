from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Header, HTTPException, Path, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict

from core.errors import (
    InsightsError,
    InvalidSessionState,
    MessageNotFound,
    SessionAccessDenied,
    SessionNotFound,
)
from core.models import SessionSnapshot
from session_insights.config import AppConfig
from session_insights.db import Database
from session_insights.pipeline import SessionInsightEngine
from session_insights.snapshots import ensure_owner, save_session
from shared.enums import RotationSurface

router = APIRouter()


class PremiumUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    is_premium: bool


def _get_db(request: Request) -> Database:
    return request.app.state.db  # type: ignore[no-any-return]


def _get_config(request: Request) -> AppConfig:
    return request.app.state.config  # type: ignore[no-any-return]


def _get_engine(request: Request) -> SessionInsightEngine:
    return request.app.state.engine  # type: ignore[no-any-return]


def _http_error(exc: InsightsError) -> HTTPException:
    if isinstance(exc, (SessionNotFound, MessageNotFound)):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, SessionAccessDenied):
        return HTTPException(status_code=403, detail="session access denied")
    if isinstance(exc, InvalidSessionState):
        return HTTPException(status_code=409, detail=str(exc))
    return HTTPException(status_code=500, detail="insight engine error")


@router.get("/health")
def health() -> JSONResponse:
    return JSONResponse(content={"status": "ok"})


@router.post("/api/sessions", status_code=201)
def ingest_session(
    request: Request,
    payload: SessionSnapshot,
    x_user_id: str = Header(..., min_length=1, max_length=128),
) -> JSONResponse:
    if payload.user_id != x_user_id:
        raise HTTPException(status_code=403, detail="cannot ingest a session for another user")
    db = _get_db(request)
    existing = db.get_session(payload.session_id)
    if existing is not None and existing["user_id"] != x_user_id:
        raise HTTPException(status_code=403, detail="session access denied")
    snapshot = save_session(db, payload)
    return JSONResponse(
        status_code=201,
        content={
            "session_id": snapshot.session_id,
            "status": snapshot.status.value,
            "messages": len(snapshot.messages),
        },
    )


@router.post("/api/sessions/{session_id}/process")
def process_session(
    request: Request,
    session_id: str = Path(..., min_length=1, max_length=128),
    x_user_id: str = Header(..., min_length=1, max_length=128),
) -> JSONResponse:
    try:
        ensure_owner(_get_db(request), session_id, x_user_id)
        result = _get_engine(request).process_session(session_id)
    except InsightsError as exc:
        raise _http_error(exc) from exc
    return JSONResponse(content=asdict(result))


@router.get("/api/sessions/{session_id}/insights")
def session_insights(
    request: Request,
    session_id: str = Path(..., min_length=1, max_length=128),
    x_user_id: str = Header(..., min_length=1, max_length=128),
) -> JSONResponse:
    try:
        record = _get_engine(request).insights.get_insights(session_id, x_user_id)
    except InsightsError as exc:
        raise _http_error(exc) from exc
    return JSONResponse(content=record.model_dump(mode="json"))


@router.get("/api/sessions/{session_id}/mood")
def session_mood(
    request: Request,
    session_id: str = Path(..., min_length=1, max_length=128),
    x_user_id: str = Header(..., min_length=1, max_length=128),
) -> JSONResponse:
    try:
        timeline = _get_engine(request).mood.get_timeline(session_id, x_user_id)
    except InsightsError as exc:
        raise _http_error(exc) from exc
    return JSONResponse(content=timeline.model_dump(mode="json"))


@router.get("/api/sessions/{session_id}/synergy")
def session_synergy(
    request: Request,
    session_id: str = Path(..., min_length=1, max_length=128),
    x_user_id: str = Header(..., min_length=1, max_length=128),
) -> JSONResponse:
    try:
        payload = _get_engine(request).synergy.get_synergy(session_id, x_user_id)
    except InsightsError as exc:
        raise _http_error(exc) from exc
    return JSONResponse(content=payload.model_dump(mode="json"))


@router.get("/api/sessions/{session_id}/rotation")
def session_rotation(
    request: Request,
    session_id: str = Path(..., min_length=1, max_length=128),
    surface: str = Query(default=RotationSurface.MISSION_END.value, min_length=1, max_length=64),
    x_user_id: str = Header(..., min_length=1, max_length=128),
) -> JSONResponse:
    try:
        pack = _get_engine(request).rotation.get_rotation_pack(x_user_id, session_id, surface)
    except InsightsError as exc:
        raise _http_error(exc) from exc
    return JSONResponse(content=pack.model_dump(mode="json"))


@router.get("/api/sessions/{session_id}/rotation/debug")
def session_rotation_debug(
    request: Request,
    session_id: str = Path(..., min_length=1, max_length=128),
    surface: str = Query(default=RotationSurface.MISSION_END.value, min_length=1, max_length=64),
    x_user_id: str = Header(..., min_length=1, max_length=128),
) -> JSONResponse:
    try:
        report = _get_engine(request).rotation.debug_rotation(x_user_id, session_id, surface)
    except InsightsError as exc:
        raise _http_error(exc) from exc
    return JSONResponse(content=report)


@router.get("/api/sessions/{session_id}/messages/{turn_index}/analysis")
def message_analysis(
    request: Request,
    session_id: str = Path(..., min_length=1, max_length=128),
    turn_index: int = Path(..., ge=0, le=100000),
    x_user_id: str = Header(..., min_length=1, max_length=128),
) -> JSONResponse:
    try:
        analysis = _get_engine(request).analyzer.analyze_message(x_user_id, session_id, turn_index)
    except InsightsError as exc:
        raise _http_error(exc) from exc
    return JSONResponse(content=analysis.model_dump(mode="json"))


@router.put("/api/users/{user_id}/premium")
def set_premium(
    request: Request,
    payload: PremiumUpdate,
    user_id: str = Path(..., min_length=1, max_length=128),
    x_user_id: str = Header(..., min_length=1, max_length=128),
) -> JSONResponse:
    """Local development affordance; entitlements are otherwise managed with the CLI."""
    if not _get_config(request).dev_enable_premium_toggle:
        raise HTTPException(status_code=403, detail="premium toggle is disabled")
    if user_id != x_user_id:
        raise HTTPException(status_code=403, detail="cannot change another user's entitlement")
    _get_db(request).set_premium(user_id, payload.is_premium)
    return JSONResponse(content={"user_id": user_id, "is_premium": payload.is_premium})
