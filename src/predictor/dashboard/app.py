"""FastAPI factory for the session health API."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI

from predictor.dashboard.routes import api


def create_dashboard_app(lifespan: Any = None) -> FastAPI:
    """Build the health API app.

    ``app.state.orchestrator`` and ``app.state.result_store`` start as None;
    the lifespan passed in by main.py (or a test) fills them before any
    request is served.
    """
    app = FastAPI(
        title="Prediction Sessions Health",
        lifespan=lifespan,
        docs_url="/api/docs",
        openapi_url="/api/openapi.json",
    )
    app.state.orchestrator = None
    app.state.result_store = None
    app.include_router(api.router, prefix="/api", tags=["health"])
    return app
