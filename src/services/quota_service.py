"""Daily generation quota.

Each submitted run consumes one unit for the current day. Counters are keyed
by date, so a new day starts from zero without an explicit reset.
"""

import asyncio
import logging
from datetime import date
from pathlib import Path
from typing import Protocol

import aiosqlite

logger = logging.getLogger(__name__)

DEFAULT_DAILY_LIMIT = 3
DEFAULT_DB_PATH = ".forge/quota.db"


class QuotaService(Protocol):
    limit: int

    async def check_and_consume(self, day: date) -> bool: ...

    async def usage(self, day: date) -> int: ...


class InMemoryQuotaService:
    """Process-local quota (tests and one-off CLI runs)."""

    def __init__(self, limit: int = DEFAULT_DAILY_LIMIT):
        self.limit = limit
        self._counts: dict[str, int] = {}
        self._lock = asyncio.Lock()

    async def check_and_consume(self, day: date) -> bool:
        async with self._lock:
            key = day.isoformat()
            used = self._counts.get(key, 0)
            if used >= self.limit:
                return False
            self._counts[key] = used + 1
            return True

    async def usage(self, day: date) -> int:
        return self._counts.get(day.isoformat(), 0)


class SQLiteQuotaService:
    """Async SQLite quota storage.

    Survives server restarts. The check-and-increment happens inside one
    ``BEGIN IMMEDIATE`` transaction.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH, limit: int = DEFAULT_DAILY_LIMIT):
        """Initialize quota store with database path.

        Args:
            db_path: Path to SQLite database file. Parent directory
                     will be created if it doesn't exist.
            limit: Generations allowed per day
        """
        self.db_path = Path(db_path)
        self.limit = limit
        self.db: aiosqlite.Connection | None = None
        # One connection: transactions must not interleave
        self._lock = asyncio.Lock()

    async def connect(self) -> None:
        """Open the database and create the schema."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self.db = await aiosqlite.connect(str(self.db_path), isolation_level=None)
        await self.db.execute("PRAGMA journal_mode=WAL")
        await self.db.execute("""
            CREATE TABLE IF NOT EXISTS daily_usage (
                day TEXT PRIMARY KEY,
                used INTEGER NOT NULL DEFAULT 0
            )
        """)
        logger.info(f"Quota store connected: {self.db_path}")

    async def close(self) -> None:
        if self.db:
            await self.db.close()
            self.db = None
            logger.info("Quota store connection closed")

    def _require_db(self) -> aiosqlite.Connection:
        if self.db is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self.db

    async def check_and_consume(self, day: date) -> bool:
        """Consume one unit for ``day`` if the limit allows it.

        Returns:
            True if the generation may proceed
        """
        db = self._require_db()
        key = day.isoformat()

        async with self._lock:
            await db.execute("BEGIN IMMEDIATE")
            try:
                async with db.execute("SELECT used FROM daily_usage WHERE day = ?", (key,)) as cursor:
                    row = await cursor.fetchone()
                used = row[0] if row else 0

                if used >= self.limit:
                    await db.execute("ROLLBACK")
                    logger.info(f"Daily quota exhausted for {key} ({used}/{self.limit})")
                    return False

                await db.execute(
                    """
                    INSERT INTO daily_usage (day, used) VALUES (?, 1)
                    ON CONFLICT(day) DO UPDATE SET used = used + 1
                    """,
                    (key,),
                )
                await db.execute("COMMIT")
                return True
            except Exception:
                await db.execute("ROLLBACK")
                raise

    async def usage(self, day: date) -> int:
        db = self._require_db()
        async with db.execute(
            "SELECT used FROM daily_usage WHERE day = ?", (day.isoformat(),)
        ) as cursor:
            row = await cursor.fetchone()
        return row[0] if row else 0
