"""aiosqlite connection holder for the session result log.

The schema is built from an ordered list of migrations; ``schema_version``
records the highest one applied so reopening an existing file only runs
what is new.
"""

from pathlib import Path
from typing import Self

import aiosqlite

from predictor.logging import get_logger

logger = get_logger(__name__)

IN_MEMORY = ":memory:"

# (version, script). Append only; never edit a released entry.
_MIGRATIONS: list[tuple[int, str]] = [
    (
        1,
        """
        CREATE TABLE IF NOT EXISTS session_logs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            session_number INTEGER NOT NULL,
            start_time TEXT NOT NULL,
            action TEXT NOT NULL,
            bet_percentage TEXT NOT NULL,
            balance TEXT NOT NULL,
            prediction_correct INTEGER NOT NULL,
            logged_at INTEGER NOT NULL
        );
        CREATE INDEX IF NOT EXISTS idx_session_logs_session
            ON session_logs(session_number, id);
        """,
    ),
]

SCHEMA_VERSION = _MIGRATIONS[-1][0]


class ResultDatabase:
    """Owns the single SQLite connection every session writes through.

    Usage:
        async with ResultDatabase("data/sessions.db") as database:
            store = ResultStore(database)
    """

    def __init__(self, db_path: str = "data/sessions.db") -> None:
        self._db_path = db_path
        self._connection: aiosqlite.Connection | None = None

    @property
    def path(self) -> str:
        return self._db_path

    @property
    def db(self) -> aiosqlite.Connection:
        """The open connection.

        Raises:
            RuntimeError: connect() has not been called, or close() has.
        """
        if self._connection is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._connection

    async def connect(self) -> None:
        if self._db_path != IN_MEMORY:
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)

        conn = await aiosqlite.connect(self._db_path)
        # WAL lets the health API read while sessions are writing
        await conn.execute("PRAGMA journal_mode=WAL")
        await conn.execute("PRAGMA synchronous=NORMAL")
        await conn.execute("PRAGMA busy_timeout=5000")
        self._connection = conn

        applied = await self._migrate()
        logger.info(
            "result_db_connected",
            db_path=self._db_path,
            schema_version=SCHEMA_VERSION,
            migrations_applied=applied,
        )

    async def close(self) -> None:
        if self._connection is None:
            return
        await self._connection.close()
        self._connection = None
        logger.info("result_db_closed", db_path=self._db_path)

    async def _migrate(self) -> int:
        """Apply every migration newer than the recorded version."""
        conn = self.db
        await conn.execute(
            "CREATE TABLE IF NOT EXISTS schema_version (version INTEGER PRIMARY KEY)"
        )
        cursor = await conn.execute("SELECT MAX(version) FROM schema_version")
        (current,) = await cursor.fetchone()
        current = current or 0

        pending = [(v, sql) for v, sql in _MIGRATIONS if v > current]
        for version, script in pending:
            await conn.executescript(script)
            await conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (version,)
            )
            logger.debug("schema_migrated", version=version)
        await conn.commit()
        return len(pending)

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore[no-untyped-def]
        await self.close()
