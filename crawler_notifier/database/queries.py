"""Crawler Notifier — Database Query Operations.

All async reads and writes against the links table. Every function:
  - Uses parameterized queries (? placeholders, never f-strings for SQL)
  - Handles connection via the Database instance
  - Commits after writes
  - Logs operations at DEBUG level
"""

from __future__ import annotations

import aiosqlite

from crawler_notifier.database.db import Database
from crawler_notifier.database.models import InsertResult, SeenUrl
from crawler_notifier.errors import StorageUnavailable
from crawler_notifier.utils.logger import get_logger

logger = get_logger(__name__)


async def insert_if_absent(db: Database, url: str) -> InsertResult:
    """Insert a URL unless it is already stored.

    Any string is accepted as a key, including the empty string. A
    UNIQUE-constraint violation means the URL was seen before and is
    reported as ``inserted=False``; it is not an error.

    Args:
        db: Active database instance.
        url: The listing URL.

    Returns:
        InsertResult telling whether this call stored the URL.

    Raises:
        StorageUnavailable: If the write fails for any other reason.
    """
    conn = await db.get_connection()
    try:
        await conn.execute("INSERT INTO links (url) VALUES (?)", (url,))
        await conn.commit()
    except aiosqlite.IntegrityError:
        logger.debug("Url already in database: %s", url)
        return InsertResult(url=url, inserted=False)
    except aiosqlite.Error as e:
        raise StorageUnavailable(str(db.db_path), str(e)) from e

    logger.debug("Added url: %s", url)
    return InsertResult(url=url, inserted=True)


async def url_exists(db: Database, url: str) -> bool:
    """Check whether a URL is already stored."""
    conn = await db.get_connection()
    cursor = await conn.execute(
        "SELECT 1 FROM links WHERE url = ? LIMIT 1",
        (url,),
    )
    row = await cursor.fetchone()
    await cursor.close()
    logger.debug("url_exists(%s) = %s", url, row is not None)
    return row is not None


async def count_urls(db: Database) -> int:
    """Return the number of stored URLs."""
    conn = await db.get_connection()
    cursor = await conn.execute("SELECT COUNT(*) FROM links")
    row = await cursor.fetchone()
    await cursor.close()
    return int(row[0]) if row else 0


async def get_all_urls(db: Database) -> list[SeenUrl]:
    """Return every stored URL in insertion order."""
    conn = await db.get_connection()
    cursor = await conn.execute("SELECT url FROM links ORDER BY rowid")
    rows = await cursor.fetchall()
    await cursor.close()
    return [SeenUrl.from_db_row(row) for row in rows]
