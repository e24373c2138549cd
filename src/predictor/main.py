"""Entry point for the prediction session runner.

Wires all components together, optionally embeds the FastAPI health API,
and launches the sessions. When the API is enabled (default), sessions
and API share a single asyncio event loop via uvicorn's programmatic API
and FastAPI's lifespan context manager.

SIGINT/SIGTERM stop the sessions gracefully: through uvicorn's shutdown
when the API is enabled, through our own handlers when headless.

Component wiring order (in _build_components):
1. AppSettings (configuration)
2. Logging setup
3. BinanceMarketData (shared ccxt client)
4. CandleClassifier (model factory)
5. ResultDatabase + ResultStore (shared SQLite connection)
6. SessionOrchestrator (staggered launch and supervision)
"""

import asyncio
import signal
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI

from predictor.classifier.model import CandleClassifier
from predictor.config import AppSettings
from predictor.data.database import ResultDatabase
from predictor.data.store import ResultStore
from predictor.logging import get_logger, setup_logging
from predictor.market_data.binance_source import BinanceMarketData
from predictor.orchestrator import SessionOrchestrator


def _build_components(settings: AppSettings) -> dict[str, Any]:
    """Build all components from settings.

    Note: Does NOT connect the market data client or the database -- that
    happens in the lifespan (API mode) or run() (headless mode).

    Args:
        settings: Application-wide settings.

    Returns:
        Dict mapping component names to instances.
    """
    market_data = BinanceMarketData(settings.market)
    classifier = CandleClassifier(settings.classifier)
    database = ResultDatabase(settings.store.db_path)
    store = ResultStore(database)
    orchestrator = SessionOrchestrator(
        settings=settings,
        market_data=market_data,
        classifier=classifier,
        store=store,
    )
    return {
        "market_data": market_data,
        "classifier": classifier,
        "database": database,
        "store": store,
        "orchestrator": orchestrator,
    }


def _setup_signal_handlers(orchestrator: SessionOrchestrator) -> None:
    """Register SIGINT/SIGTERM to stop all sessions gracefully.

    Must be called after the asyncio event loop is running.
    """
    logger = get_logger("predictor.main")
    loop = asyncio.get_running_loop()

    def _graceful_handler() -> None:
        logger.info("graceful_shutdown_signal")
        asyncio.create_task(orchestrator.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _graceful_handler)


async def _open_resources(components: dict[str, Any]) -> None:
    await components["market_data"].connect()
    await components["database"].connect()


async def _close_resources(components: dict[str, Any]) -> None:
    await components["market_data"].close()
    await components["database"].close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage component lifecycle within the FastAPI application.

    On startup: opens the shared client and database, launches sessions
    as a background task.

    On shutdown: stops sessions, waits for them, releases resources.

    Installs no signal handlers: uvicorn owns SIGINT/SIGTERM in this mode
    and its shutdown is what runs the code after ``yield``.
    """
    logger = get_logger("predictor.main")
    settings = app.state.settings
    components = app.state.components

    app.state.orchestrator = components["orchestrator"]
    app.state.result_store = components["store"]

    await _open_resources(components)

    sessions_task = asyncio.create_task(components["orchestrator"].launch_all())

    logger.info("lifespan_started", sessions=settings.session.count)

    yield

    await components["orchestrator"].stop()
    try:
        await sessions_task
    except asyncio.CancelledError:
        pass

    await _close_resources(components)

    logger.info("prediction_sessions_stopped")


async def run() -> None:
    """Run the prediction sessions.

    When the API is enabled (DASHBOARD_ENABLED=true, the default), sessions
    and API run under uvicorn with the lifespan above. Otherwise sessions
    run directly and this function owns signal handling and resources.
    """
    settings = AppSettings()

    setup_logging(settings.log_level, settings.log_format)
    logger = get_logger("predictor.main")

    components = _build_components(settings)

    if settings.dashboard.enabled:
        from predictor.dashboard.app import create_dashboard_app

        app = create_dashboard_app(lifespan=lifespan)
        app.state.settings = settings
        app.state.components = components

        logger.info(
            "starting_with_health_api",
            host=settings.dashboard.host,
            port=settings.dashboard.port,
            sessions=settings.session.count,
        )

        config = uvicorn.Config(
            app,
            host=settings.dashboard.host,
            port=settings.dashboard.port,
            log_level="warning",
        )
        server = uvicorn.Server(config)
        await server.serve()
    else:
        _setup_signal_handlers(components["orchestrator"])

        logger.info(
            "starting_headless",
            sessions=settings.session.count,
            stagger_seconds=settings.session.stagger_seconds,
            symbol=settings.market.symbol,
        )

        try:
            await _open_resources(components)
            await components["orchestrator"].launch_all()
        finally:
            await _close_resources(components)
            logger.info("prediction_sessions_stopped")


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
