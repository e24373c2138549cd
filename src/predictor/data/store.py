"""Typed SQLite write/read abstraction for resolved bets.

All SQL is isolated behind ResultStore. Rows are append-only: there are
no update or delete methods.

CRITICAL: bet percentage and balance are stored as TEXT in SQLite and
restored as Decimal on read.
"""

import asyncio
import time
from datetime import datetime
from decimal import Decimal

from predictor.data.database import ResultDatabase
from predictor.logging import get_logger
from predictor.models import Action, LogRecord

logger = get_logger(__name__)


class ResultStore:
    """Append-only store for LogRecords, safe for concurrent sessions.

    Writes are serialized with an asyncio.Lock so every commit covers
    exactly one row.

    Usage:
        async with ResultDatabase("data/sessions.db") as database:
            store = ResultStore(database)
            ok = await store.append(record)
    """

    def __init__(self, database: ResultDatabase) -> None:
        self._database = database
        self._write_lock = asyncio.Lock()
        self._inflight: set[asyncio.Task] = set()  # type: ignore[type-arg]

    async def append(self, record: LogRecord) -> bool:
        """Insert one resolved bet.

        Safe to wrap in asyncio.wait_for: if the caller gives up, the write
        already handed to the SQLite thread is rolled back instead of being
        committed alongside the next record.

        Returns:
            True if the row was committed, False if the write failed. Failures
            are logged here; the caller decides what to do with the result.
        """
        row = (
            record.session_number,
            record.start_time.isoformat(),
            record.action.value,
            str(record.bet_percentage),
            str(record.balance),
            1 if record.prediction_correct else 0,
            int(time.time() * 1000),
        )
        abandoned = asyncio.Event()
        write = asyncio.ensure_future(self._write_row(row, abandoned))
        self._inflight.add(write)
        write.add_done_callback(self._inflight.discard)
        try:
            return await asyncio.shield(write)
        except asyncio.CancelledError:
            abandoned.set()
            logger.warning(
                "result_write_abandoned",
                session_number=record.session_number,
            )
            raise

    async def _write_row(self, row: tuple, abandoned: asyncio.Event) -> bool:
        """Execute and commit one INSERT under the write lock.

        Rolls back on error, or when the caller stopped waiting before the
        commit was issued.
        """
        async with self._write_lock:
            if abandoned.is_set():
                return False
            try:
                db = self._database.db
                await db.execute(
                    "INSERT INTO session_logs "
                    "(session_number, start_time, action, bet_percentage, "
                    "balance, prediction_correct, logged_at) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?)",
                    row,
                )
                if abandoned.is_set():
                    await db.rollback()
                    logger.debug("abandoned_write_rolled_back", session_number=row[0])
                    return False
                await db.commit()
            except Exception as e:
                logger.warning(
                    "result_write_failed",
                    session_number=row[0],
                    error=str(e),
                )
                await self._rollback_quietly()
                return False
        return True

    async def _rollback_quietly(self) -> None:
        try:
            await self._database.db.rollback()
        except Exception as e:
            logger.debug("rollback_failed", error=str(e))

    async def fetch_records(
        self,
        session_number: int,
        limit: int = 50,
    ) -> list[LogRecord]:
        """Return the most recent records for a session, newest first."""
        cursor = await self._database.db.execute(
            "SELECT session_number, start_time, action, bet_percentage, "
            "balance, prediction_correct "
            "FROM session_logs WHERE session_number = ? "
            "ORDER BY id DESC LIMIT ?",
            (session_number, limit),
        )
        rows = await cursor.fetchall()
        return [
            LogRecord(
                session_number=row[0],
                start_time=datetime.fromisoformat(row[1]),
                action=Action(row[2]),
                bet_percentage=Decimal(row[3]),
                balance=Decimal(row[4]),
                prediction_correct=bool(row[5]),
            )
            for row in rows
        ]
