"""Crawler Notifier — SQLite Connection Manager.

Provides async SQLite database connection management using aiosqlite.
Handles database initialization, creation of the seen-links table, and
connection lifecycle.
"""

from __future__ import annotations

from pathlib import Path

import aiosqlite

from crawler_notifier.errors import StorageUnavailable
from crawler_notifier.utils.logger import get_logger

logger = get_logger(__name__)

# ── Schema Definitions ────────────────────────────────────
SCHEMA_SQL = """
-- ═══ Links Table ═══
-- Every listing URL ever seen. The UNIQUE constraint is what makes
-- insert_if_absent report duplicates.
CREATE TABLE IF NOT EXISTS links (url TEXT UNIQUE);
"""


class Database:
    """Async SQLite database connection manager.

    Manages the database lifecycle including initialization, schema creation,
    and a persistent connection with WAL mode enabled.

    Attributes:
        db_path: Resolved absolute path to the SQLite database file.
    """

    def __init__(self, db_path: str) -> None:
        """Initialize the database manager.

        Args:
            db_path: Relative or absolute path to the SQLite database file.
                     Parent directories will be created if they don't exist.
        """
        self.db_path = Path(db_path).resolve()
        self._connection: aiosqlite.Connection | None = None
        logger.debug("Database manager initialized with path: %s", self.db_path)

    async def initialize(self) -> None:
        """Open the connection and create the links table if needed.

        Raises:
            StorageUnavailable: If the directory, file or table cannot be
                created or opened.
        """
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageUnavailable(str(self.db_path), str(e)) from e

        logger.debug("Connecting to database: %s", self.db_path)
        connection: aiosqlite.Connection | None = None
        try:
            connection = await aiosqlite.connect(str(self.db_path))
            await connection.execute("PRAGMA journal_mode=WAL")
            connection.row_factory = aiosqlite.Row
            await connection.executescript(SCHEMA_SQL)
            await connection.commit()
        except aiosqlite.Error as e:
            if connection is not None:
                await connection.close()
            raise StorageUnavailable(str(self.db_path), str(e)) from e

        self._connection = connection
        logger.info("Connected to database %s", self.db_path.name)

    async def get_connection(self) -> aiosqlite.Connection:
        """Get the active database connection, initializing if necessary.

        Returns:
            The active aiosqlite connection.
        """
        if self._connection is None:
            await self.initialize()
        return self._connection

    @property
    def is_open(self) -> bool:
        """Whether a connection is currently held."""
        return self._connection is not None

    async def close(self) -> None:
        """Close the database connection.

        Safe to call even if the connection was never opened. Errors from
        the underlying close are propagated.
        """
        if self._connection is not None:
            connection, self._connection = self._connection, None
            await connection.close()
            logger.debug("Database connection closed")

    async def __aenter__(self) -> "Database":
        """Async context manager entry — initializes the database.

        Returns:
            The Database instance with an active connection.
        """
        await self.initialize()
        return self

    async def __aexit__(self, *args: object) -> None:
        """Async context manager exit — closes the database connection."""
        await self.close()
