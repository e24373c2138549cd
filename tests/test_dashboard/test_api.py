"""Tests for the health API routes using FastAPI's TestClient."""

from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from predictor.dashboard.app import create_dashboard_app
from predictor.data.store import ResultStore
from predictor.models import Action, LogRecord, SessionPhase, SessionStatus
from predictor.orchestrator import SessionOrchestrator


@pytest.fixture
def statuses() -> list[SessionStatus]:
    return [
        SessionStatus(
            session_id=1,
            balance=Decimal("1017.2"),
            phase=SessionPhase.WAITING,
            iterations=1,
            wins=1,
            training_set_size=100,
        ),
        SessionStatus(
            session_id=2,
            balance=Decimal("965.6"),
            phase=SessionPhase.FAILED,
            iterations=1,
            losses=1,
            last_error="TrainingError: single label class",
            last_persist_ok=False,
            persistence_failures=1,
        ),
    ]


@pytest.fixture
def mock_orchestrator(statuses: list[SessionStatus]) -> MagicMock:
    orchestrator = MagicMock(spec=SessionOrchestrator)
    orchestrator.get_statuses.return_value = statuses
    orchestrator.get_status.side_effect = lambda sid: next(
        (s for s in statuses if s.session_id == sid), None
    )
    orchestrator.get_summary.return_value = {
        "running": True,
        "sessions_launched": 2,
        "failed": 1,
        "persistence_degraded": 1,
    }
    return orchestrator


@pytest.fixture
def mock_store() -> AsyncMock:
    store = AsyncMock(spec=ResultStore)
    store.fetch_records.return_value = [
        LogRecord(
            session_number=1,
            start_time=datetime(2024, 1, 1, tzinfo=timezone.utc),
            action=Action.UP,
            bet_percentage=Decimal("0.086"),
            balance=Decimal("1017.2"),
            prediction_correct=True,
        )
    ]
    return store


@pytest.fixture
def client(mock_orchestrator: MagicMock, mock_store: AsyncMock) -> TestClient:
    app = create_dashboard_app()
    app.state.orchestrator = mock_orchestrator
    app.state.result_store = mock_store
    return TestClient(app)


class TestHealthRoutes:
    def test_health_summary(self, client: TestClient) -> None:
        resp = client.get("/api/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["failed"] == 1
        assert body["persistence_degraded"] == 1

    def test_sessions_list(self, client: TestClient) -> None:
        resp = client.get("/api/sessions")
        assert resp.status_code == 200
        body = resp.json()
        assert [s["session_id"] for s in body] == [1, 2]
        assert body[0]["balance"] == "1017.2"
        assert body[0]["phase"] == "waiting"
        assert body[1]["persistence_degraded"] is True
        assert body[1]["last_error"].startswith("TrainingError")

    def test_single_session(self, client: TestClient) -> None:
        resp = client.get("/api/sessions/2")
        assert resp.status_code == 200
        assert resp.json()["phase"] == "failed"

    def test_unknown_session_is_404(self, client: TestClient) -> None:
        resp = client.get("/api/sessions/99")
        assert resp.status_code == 404


class TestRecordsRoute:
    def test_records(self, client: TestClient, mock_store: AsyncMock) -> None:
        resp = client.get("/api/sessions/1/records?limit=10")
        assert resp.status_code == 200
        body = resp.json()
        assert body == [
            {
                "session_number": 1,
                "start_time": "2024-01-01T00:00:00+00:00",
                "action": "Up",
                "bet_percentage": "0.086",
                "balance": "1017.2",
                "prediction_correct": True,
            }
        ]
        mock_store.fetch_records.assert_awaited_once_with(1, limit=10)

    def test_limit_is_clamped(self, client: TestClient, mock_store: AsyncMock) -> None:
        client.get("/api/sessions/1/records?limit=100000")
        mock_store.fetch_records.assert_awaited_once_with(1, limit=500)

    def test_store_error_is_503(self, client: TestClient, mock_store: AsyncMock) -> None:
        mock_store.fetch_records.side_effect = RuntimeError("Database not connected")
        resp = client.get("/api/sessions/1/records")
        assert resp.status_code == 503
