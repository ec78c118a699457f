"""
iFeedIt Database Connection Management
======================================

A small pool of SQLite connections shared between threads. The ingestion
worker writes items through one connection while the CLI or a caller reads
through another, so connections are opened with ``check_same_thread=False``
and WAL journaling.
"""

import sqlite3
import threading
import logging
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, Generator, Any, List, Dict
from queue import Queue, Empty, Full

from .schema import ITEMS_TABLE, PREFERENCES_TABLE

logger = logging.getLogger(__name__)

CONNECTION_PRAGMAS = (
    "PRAGMA journal_mode = WAL",
    "PRAGMA synchronous = NORMAL",
    "PRAGMA temp_store = MEMORY",
)

BUSY_TIMEOUT = 30.0
ACQUIRE_TIMEOUT = 10.0
SLOW_ACQUIRE_SECONDS = 1.0


class DatabaseConnection:
    """Pooled access to one SQLite database file."""

    def __init__(self, db_path: str = "data/ifeedit.db", pool_size: int = 2):
        self.db_path = Path(db_path)
        self.pool_size = pool_size
        self.pool: Queue = Queue(maxsize=pool_size)
        self.lock = threading.Lock()
        self._open_connections = 0

        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        for _ in range(pool_size):
            self.pool.put(self._open())

    def _open(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, check_same_thread=False, timeout=BUSY_TIMEOUT)
        for pragma in CONNECTION_PRAGMAS:
            conn.execute(pragma)
        conn.row_factory = sqlite3.Row

        with self.lock:
            self._open_connections += 1
            count = self._open_connections
        logger.debug(f"Opened connection #{count} to {self.db_path}")
        return conn

    def _acquire(self) -> sqlite3.Connection:
        started = time.monotonic()
        try:
            conn = self.pool.get(timeout=ACQUIRE_TIMEOUT)
        except Empty:
            logger.warning(f"All {self.pool_size} pooled connections busy, opening an extra one")
            conn = self._open()

        waited = time.monotonic() - started
        if waited > SLOW_ACQUIRE_SECONDS:
            logger.warning(f"Waited {waited:.2f}s for a database connection")
        return conn

    def _release(self, conn: sqlite3.Connection) -> None:
        try:
            self.pool.put_nowait(conn)
        except Full:
            # Extra connection opened while the pool was exhausted
            conn.close()
            with self.lock:
                self._open_connections -= 1

    @contextmanager
    def get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Borrow a connection for the duration of the block.

        Usage:
            with db_manager.get_connection() as conn:
                rows = conn.execute("SELECT * FROM items").fetchall()
        """
        conn = self._acquire()
        try:
            yield conn
        except sqlite3.Error as e:
            logger.error(f"SQLite error on {self.db_path.name}: {e}")
            try:
                conn.rollback()
            except sqlite3.Error as rollback_error:
                logger.debug(f"Rollback failed: {rollback_error}")
            raise
        finally:
            self._release(conn)

    @contextmanager
    def transaction(self) -> Generator[sqlite3.Connection, None, None]:
        """Run the block in one write transaction.

        Commits when the block completes and rolls back if it raises.
        """
        with self.get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except Exception as e:
                conn.rollback()
                logger.error(f"Transaction rolled back: {e}")
                raise
            conn.commit()

    def execute_query(self, query: str, params: tuple = ()) -> List[sqlite3.Row]:
        with self.get_connection() as conn:
            return conn.execute(query, params).fetchall()

    def execute_one(self, query: str, params: tuple = ()) -> Optional[sqlite3.Row]:
        with self.get_connection() as conn:
            return conn.execute(query, params).fetchone()

    def execute_update(self, query: str, params: tuple = ()) -> int:
        """Run an INSERT, UPDATE or DELETE and commit it.

        Returns:
            Number of affected rows
        """
        with self.get_connection() as conn:
            cursor = conn.execute(query, params)
            conn.commit()
            return cursor.rowcount

    def get_database_info(self) -> Dict[str, Any]:
        """File size, row counts and pool usage."""
        with self.get_connection() as conn:
            page_count = conn.execute("PRAGMA page_count").fetchone()[0]
            page_size = conn.execute("PRAGMA page_size").fetchone()[0]

            table_counts = {}
            for table in (ITEMS_TABLE, PREFERENCES_TABLE):
                try:
                    table_counts[table] = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
                except sqlite3.OperationalError:
                    # Schema not created yet
                    table_counts[table] = 0

        return {
            'database_size_mb': page_count * page_size / (1024 * 1024),
            'table_counts': table_counts,
            'idle_connections': self.pool.qsize(),
            'open_connections': self._open_connections,
        }

    def close_all_connections(self) -> None:
        """Close every idle pooled connection."""
        closed = 0
        while True:
            try:
                conn = self.pool.get_nowait()
            except Empty:
                break
            conn.close()
            closed += 1

        with self.lock:
            self._open_connections -= closed
        logger.debug(f"Closed {closed} connections to {self.db_path}")


_db_manager: Optional[DatabaseConnection] = None


def get_db_manager(db_path: str = "data/ifeedit.db", pool_size: int = 2) -> DatabaseConnection:
    """Process-wide connection manager.

    A different ``db_path`` than the current manager's replaces it.
    """
    global _db_manager

    if _db_manager is not None and _db_manager.db_path != Path(db_path):
        _db_manager.close_all_connections()
        _db_manager = None

    if _db_manager is None:
        _db_manager = DatabaseConnection(db_path, pool_size=pool_size)

    return _db_manager
