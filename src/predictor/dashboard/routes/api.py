"""JSON API endpoints exposing per-session health and recent results."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

log = structlog.get_logger(__name__)

router = APIRouter()


def _decimal_to_str(obj: Any) -> Any:
    """Recursively convert Decimal values to strings for JSON serialization."""
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, dict):
        return {k: _decimal_to_str(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_decimal_to_str(item) for item in obj]
    return obj


@router.get("/health")
async def get_health(request: Request) -> JSONResponse:
    """Aggregate health: launch progress, phase counts, failures."""
    orchestrator = request.app.state.orchestrator
    return JSONResponse(content=_decimal_to_str(orchestrator.get_summary()))


@router.get("/sessions")
async def get_sessions(request: Request) -> JSONResponse:
    """Health snapshot of every launched session."""
    orchestrator = request.app.state.orchestrator
    return JSONResponse(content=[st.to_dict() for st in orchestrator.get_statuses()])


@router.get("/sessions/{session_id}")
async def get_session(request: Request, session_id: int) -> JSONResponse:
    """Health snapshot of one session."""
    orchestrator = request.app.state.orchestrator
    status = orchestrator.get_status(session_id)
    if status is None:
        return JSONResponse(
            status_code=404,
            content={"error": f"Session {session_id} not launched"},
        )
    return JSONResponse(content=status.to_dict())


@router.get("/sessions/{session_id}/records")
async def get_session_records(
    request: Request, session_id: int, limit: int = 50
) -> JSONResponse:
    """Most recent persisted bets for one session, newest first."""
    store = request.app.state.result_store
    try:
        records = await store.fetch_records(session_id, limit=min(max(limit, 1), 500))
    except Exception as e:
        log.error("records_query_failed", session=session_id, error=str(e))
        return JSONResponse(status_code=503, content={"error": "Result store unavailable"})

    return JSONResponse(
        content=[
            {
                "session_number": r.session_number,
                "start_time": r.start_time.isoformat(),
                "action": r.action.value,
                "bet_percentage": str(r.bet_percentage),
                "balance": str(r.balance),
                "prediction_correct": r.prediction_correct,
            }
            for r in records
        ]
    )
