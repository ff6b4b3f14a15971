"""SQLite connection management with context manager."""

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path

from fieldstock.errors import StorageError

logger = logging.getLogger(__name__)

_TRANSIENT_MARKERS = ("locked", "busy")


def _to_storage_error(exc: sqlite3.Error) -> StorageError:
    """Wrap a sqlite3 failure, flagging lock contention as transient."""
    message = str(exc)
    transient = (
        isinstance(exc, sqlite3.OperationalError)
        and any(m in message.lower() for m in _TRANSIENT_MARKERS)
    )
    return StorageError(f"ledger store error: {message}", transient=transient)


def _rollback(conn):
    if conn.in_transaction:
        try:
            conn.rollback()
        except sqlite3.Error as e:
            logger.warning(f"Rollback failed: {e}")


class DatabaseConnection:
    """Manages SQLite connections with foreign key enforcement.

    Each ``get_connection`` block is one database transaction. Pass
    ``immediate=True`` for read-then-write sequences: the write lock is
    taken before the first read, so two writers on the same material
    are serialized instead of interleaved.
    """

    def __init__(self, db_path: str | Path, timeout: float = 5.0):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.timeout = timeout

    def _connect(self):
        try:
            conn = sqlite3.connect(
                str(self.db_path), timeout=self.timeout,
                isolation_level=None,
            )
        except sqlite3.Error as e:
            raise _to_storage_error(e) from e
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def get_connection(self, immediate: bool = False):
        """Yield a connection that auto-commits or rolls back."""
        conn = self._connect()
        try:
            conn.execute("PRAGMA foreign_keys = ON")
            conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
            yield conn
            conn.execute("COMMIT")
        except sqlite3.Error as e:
            _rollback(conn)
            raise _to_storage_error(e) from e
        except Exception:
            _rollback(conn)
            raise
        finally:
            conn.close()

    def execute(self, sql: str, params: tuple = ()):
        """Run a single statement and return the rows."""
        with self.get_connection() as conn:
            cursor = conn.execute(sql, params)
            return cursor.fetchall()

    def execute_script(self, sql_script: str):
        """Run a multi-statement SQL script."""
        conn = self._connect()
        try:
            conn.execute("PRAGMA foreign_keys = ON")
            conn.executescript(sql_script)
        except sqlite3.Error as e:
            _rollback(conn)
            raise _to_storage_error(e) from e
        finally:
            conn.close()
