"""Session orchestrator -- staggered launch and lifetime containment.

Starts N independent SessionEngines, one asyncio task each, with a fixed
delay between launches. Sessions share no mutable state; the market data
source, classifier factory and result store they share are safe for
concurrent use.

Each session task is supervised: when an engine raises (training or
prediction failure), the error is logged and, if restart_on_failure is
enabled, a fresh engine (new training set and model) resumes the same
SessionState after restart_delay_seconds. A failing session never takes
the process or its siblings down.

Shutdown: stop() sets one shared asyncio.Event. Every pause in every
session (retry, resolution wait) and the launch stagger itself wake on it.
"""

from __future__ import annotations

import asyncio
import time
from collections import Counter
from collections.abc import Callable
from decimal import Decimal
from typing import TYPE_CHECKING

from predictor.config import AppSettings
from predictor.logging import get_logger
from predictor.models import SessionPhase, SessionState, SessionStatus
from predictor.session.engine import SessionEngine, sleep_unless_stopped

if TYPE_CHECKING:
    from predictor.classifier.model import CandleClassifier
    from predictor.data.store import ResultStore
    from predictor.market_data.source import MarketDataSource

logger = get_logger(__name__)

EngineFactory = Callable[[SessionState, SessionStatus, asyncio.Event], SessionEngine]


class SessionOrchestrator:
    """Launches and supervises independent trading sessions.

    Args:
        settings: Application-wide settings.
        market_data: Shared candle/ticker provider.
        classifier: Shared model factory.
        store: Shared result store.
        engine_factory: Optional override for building engines (tests).
    """

    def __init__(
        self,
        settings: AppSettings,
        market_data: MarketDataSource,
        classifier: CandleClassifier,
        store: ResultStore,
        engine_factory: EngineFactory | None = None,
    ) -> None:
        self._settings = settings
        self._market_data = market_data
        self._classifier = classifier
        self._store = store
        self._engine_factory = engine_factory or self._default_engine_factory
        self._stop_event = asyncio.Event()
        self._statuses: dict[int, SessionStatus] = {}
        self._tasks: dict[int, asyncio.Task] = {}  # type: ignore[type-arg]
        self._running = False
        self._started_at: float | None = None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def stop_event(self) -> asyncio.Event:
        return self._stop_event

    def _default_engine_factory(
        self, state: SessionState, status: SessionStatus, stop_event: asyncio.Event
    ) -> SessionEngine:
        return SessionEngine(
            state=state,
            market_data=self._market_data,
            classifier=self._classifier,
            store=self._store,
            settings=self._settings,
            stop_event=stop_event,
            status=status,
        )

    async def launch_all(
        self,
        count: int | None = None,
        stagger: float | None = None,
        initial_balance: Decimal | None = None,
    ) -> None:
        """Launch ``count`` sessions ``stagger`` seconds apart and wait for all.

        Session k is created ``stagger * (k - 1)`` seconds after this call.
        Returns only once every session task has finished, which in normal
        operation means after stop().

        Args:
            count: Number of sessions (defaults to settings).
            stagger: Seconds between launches (defaults to settings).
            initial_balance: Starting balance per session (defaults to settings).
        """
        s = self._settings.session
        count = s.count if count is None else count
        stagger = s.stagger_seconds if stagger is None else stagger
        initial_balance = s.initial_balance if initial_balance is None else initial_balance

        self._running = True
        self._started_at = time.time()
        logger.info(
            "orchestrator_starting",
            sessions=count,
            stagger_seconds=stagger,
            initial_balance=str(initial_balance),
        )

        try:
            for session_id in range(1, count + 1):
                if self._stop_event.is_set():
                    break
                self._launch(session_id, initial_balance)
                if session_id < count and await sleep_unless_stopped(
                    self._stop_event, stagger
                ):
                    break

            logger.info("all_sessions_launched", launched=len(self._tasks))
            await asyncio.gather(*self._tasks.values())
        finally:
            self._running = False
            logger.info("orchestrator_stopped")

    def _launch(self, session_id: int, initial_balance: Decimal) -> None:
        state = SessionState(session_id=session_id, balance=initial_balance)
        status = SessionStatus(session_id=session_id, balance=initial_balance)
        self._statuses[session_id] = status
        self._tasks[session_id] = asyncio.create_task(
            self._supervise(state, status), name=f"session-{session_id}"
        )
        logger.debug("session_launched", session=session_id)

    async def _supervise(self, state: SessionState, status: SessionStatus) -> None:
        """Run one session, restarting it after failures when configured."""
        s = self._settings.session
        while True:
            engine = self._engine_factory(state, status, self._stop_event)
            try:
                await engine.run()
                return
            except Exception as e:
                logger.error(
                    "session_failed",
                    session=state.session_id,
                    error=str(e),
                    exc_info=True,
                )

            if not s.restart_on_failure or self._stop_event.is_set():
                return
            if await sleep_unless_stopped(self._stop_event, s.restart_delay_seconds):
                return

            status.restarts += 1
            status.phase = SessionPhase.STARTING
            logger.info(
                "session_restarting",
                session=state.session_id,
                restarts=status.restarts,
                balance=str(state.balance),
            )

    async def stop(self) -> None:
        """Signal every session and the launcher to wind down."""
        logger.info("orchestrator_stopping_gracefully")
        self._stop_event.set()

    # ──────────────────────────────────────────────
    # Health
    # ──────────────────────────────────────────────

    def get_statuses(self) -> list[SessionStatus]:
        """Return health snapshots for all launched sessions, by session id."""
        return [self._statuses[k] for k in sorted(self._statuses)]

    def get_status(self, session_id: int) -> SessionStatus | None:
        return self._statuses.get(session_id)

    def get_summary(self) -> dict:
        """Aggregate health across sessions."""
        statuses = self._statuses.values()
        phases = Counter(st.phase.value for st in statuses)
        return {
            "running": self._running,
            "started_at": self._started_at,
            "sessions_launched": len(self._statuses),
            "sessions_configured": self._settings.session.count,
            "phases": dict(phases),
            "failed": phases.get(SessionPhase.FAILED.value, 0),
            "persistence_degraded": sum(1 for st in statuses if st.persistence_degraded),
            "total_iterations": sum(st.iterations for st in statuses),
        }
