from __future__ import annotations

from fastapi import FastAPI

from session_insights.config import AppConfig
from session_insights.db import Database
from session_insights.pipeline import SessionInsightEngine
from session_insights.web.middleware import SecurityHeadersMiddleware
from session_insights.web.routes import router


def create_app(config: AppConfig, db: Database) -> FastAPI:
    docs_enabled = bool(config.dev_enable_docs)

    app = FastAPI(
        title="Session Insights",
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
    )

    app.state.config = config
    app.state.db = db
    app.state.engine = SessionInsightEngine(config, db)

    app.add_middleware(SecurityHeadersMiddleware)
    app.include_router(router)

    return app
