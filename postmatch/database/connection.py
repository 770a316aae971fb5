"""
SQLite connections and transactions for the post store.

Every store operation runs inside one ConnectionManager.connection() block;
use_connection() lets an operation join a block its caller already opened.
"""

from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from ..errors import StorageError


class ConnectionManager:
    """
    Opens one SQLite connection per transaction.

    Each connection() block gets:
    - Thread-safe write operations via lock
    - WAL mode for better read/write concurrency
    - Foreign keys enforced (signature rows cascade with their post)
    - Transaction management (BEGIN/COMMIT/ROLLBACK)
    - Operational failures surfaced as StorageError
    """

    def __init__(self, db_path: str):
        """
        Set up the manager; the database directory is created if missing.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        self._write_lock = threading.Lock()
        self._ensure_directory()

    def _ensure_directory(self):
        """Create the parent directory of the database file."""
        db_path = Path(self.db_path).resolve()
        db_dir = db_path.parent

        # A bare filename resolves into the working directory
        if db_dir and db_dir != db_path:
            db_dir.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def connection(self, exclusive: bool = False) -> Generator[sqlite3.Connection, None, None]:
        """
        Context manager for one transaction.

        Args:
            exclusive: If True, acquire write lock for thread safety

        Yields:
            sqlite3.Connection with row factory and WAL mode enabled

        Raises:
            StorageError: If SQLite reports an operational failure (locked,
                busy, I/O); the transaction is rolled back first

        Example:
            with conn_mgr.connection(exclusive=True) as conn:
                conn.execute("INSERT INTO ...")
        """
        if exclusive:
            self._write_lock.acquire()

        try:
            try:
                conn = sqlite3.connect(
                    self.db_path,
                    timeout=30.0,
                    # Transactions are managed explicitly below
                    isolation_level=None,
                )
            except sqlite3.OperationalError as e:
                raise StorageError(f"Cannot open database {self.db_path}: {e}") from e

            conn.row_factory = sqlite3.Row

            try:
                # Enable WAL mode for better read/write concurrency
                conn.execute("PRAGMA journal_mode=WAL")
                # Must be set outside a transaction
                conn.execute("PRAGMA foreign_keys=ON")

                # Begin transaction
                conn.execute("BEGIN IMMEDIATE" if exclusive else "BEGIN")

                try:
                    yield conn
                    conn.execute("COMMIT")
                except Exception:
                    if conn.in_transaction:
                        conn.execute("ROLLBACK")
                    raise
            except sqlite3.OperationalError as e:
                raise StorageError(f"Database operation failed: {e}") from e
            finally:
                conn.close()
        finally:
            if exclusive:
                self._write_lock.release()


@contextmanager
def use_connection(
    conn_mgr: ConnectionManager,
    conn: Optional[sqlite3.Connection] = None,
    exclusive: bool = False,
) -> Generator[sqlite3.Connection, None, None]:
    """
    Join the caller's transaction, or open a new one.

    Operations take an optional connection so several of them can commit
    together (a post row and its signature, both halves of a swap).

    Args:
        conn_mgr: Manager used when no connection is supplied
        conn: Open connection from an enclosing transaction, or None
        exclusive: Write lock for a newly opened transaction
    """
    if conn is not None:
        yield conn
    else:
        with conn_mgr.connection(exclusive=exclusive) as own:
            yield own


__all__ = ['ConnectionManager', 'use_connection']
