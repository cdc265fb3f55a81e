"""
SQLite connection handling for the catalog store.

``get_connection()`` yields a connection with foreign keys enforced, an
optional WAL journal, a busy timeout, and ``sqlite3.Row`` rows. The
transaction commits when the block exits cleanly and rolls back when it
raises.

Usage::

    from catalog_engine.db.connection import get_connection

    with get_connection(config.database.db_path) as conn:
        ProductRepository(conn).upsert_product(product)
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

logger = logging.getLogger(__name__)

MEMORY_DB = ":memory:"


@contextmanager
def get_connection(
    db_path: str,
    wal_mode: bool = True,
    busy_timeout_ms: int = 5000,
) -> Generator[sqlite3.Connection, None, None]:
    """Yield a configured connection to ``db_path``.

    Parent directories of a file database are created on demand.

    Args:
        db_path: Database file, or ``":memory:"``.
        wal_mode: Switch the journal to WAL.
        busy_timeout_ms: How long to wait on a locked database.

    Raises:
        sqlite3.OperationalError: The database cannot be opened or stays locked.
    """
    if db_path != MEMORY_DB:
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path, timeout=busy_timeout_ms / 1000)
    conn.row_factory = sqlite3.Row
    logger.debug("Opened SQLite connection to %s", db_path)

    try:
        # Pragmas before any statement
        conn.execute("PRAGMA foreign_keys = ON;")
        conn.execute(f"PRAGMA busy_timeout = {int(busy_timeout_ms)};")
        if wal_mode and db_path != MEMORY_DB:
            conn.execute("PRAGMA journal_mode = WAL;")

        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()
