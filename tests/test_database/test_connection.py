"""Tests for the DatabaseConnection class."""

import sqlite3
import threading

import pytest

from fieldstock.database.connection import DatabaseConnection
from fieldstock.errors import StorageError


class TestDatabaseConnectionInit:
    def test_creates_db_file_on_connect(self, tmp_path):
        db_path = tmp_path / "test.db"
        db = DatabaseConnection(str(db_path))
        db.execute("CREATE TABLE t (id INTEGER PRIMARY KEY)")
        assert db_path.exists()

    def test_creates_parent_dirs(self, tmp_path):
        db_path = tmp_path / "sub" / "deep" / "test.db"
        DatabaseConnection(str(db_path))
        assert db_path.parent.exists()

    def test_db_path_stored(self, tmp_path):
        db_path = tmp_path / "stored.db"
        db = DatabaseConnection(str(db_path))
        assert db.db_path == db_path

    def test_timeout_stored(self, tmp_path):
        db = DatabaseConnection(tmp_path / "t.db", timeout=0.25)
        assert db.timeout == 0.25


class TestGetConnection:
    def test_row_factory_is_row(self, tmp_path):
        db = DatabaseConnection(str(tmp_path / "row.db"))
        with db.get_connection() as conn:
            assert conn.row_factory == sqlite3.Row

    def test_foreign_keys_enabled(self, tmp_path):
        db = DatabaseConnection(str(tmp_path / "fk.db"))
        with db.get_connection() as conn:
            result = conn.execute("PRAGMA foreign_keys").fetchone()
            assert result[0] == 1

    def test_auto_commits(self, tmp_path):
        db = DatabaseConnection(str(tmp_path / "commit.db"))
        with db.get_connection() as conn:
            conn.execute("CREATE TABLE t (id INTEGER PRIMARY KEY, v TEXT)")
            conn.execute("INSERT INTO t (v) VALUES ('hello')")
        rows = db.execute("SELECT v FROM t")
        assert len(rows) == 1
        assert rows[0]["v"] == "hello"

    def test_rollback_on_exception(self, tmp_path):
        db = DatabaseConnection(str(tmp_path / "rollback.db"))
        db.execute("CREATE TABLE t (id INTEGER PRIMARY KEY, v TEXT)")
        db.execute("INSERT INTO t (v) VALUES ('keep')")
        with pytest.raises(RuntimeError):
            with db.get_connection(immediate=True) as conn:
                conn.execute("INSERT INTO t (v) VALUES ('discard')")
                raise RuntimeError("fail")
        rows = db.execute("SELECT v FROM t")
        assert [r["v"] for r in rows] == ["keep"]

    def test_sqlite_errors_become_storage_errors(self, tmp_path):
        db = DatabaseConnection(str(tmp_path / "wrap.db"))
        db.execute("CREATE TABLE t (id INTEGER PRIMARY KEY, v TEXT NOT NULL)")
        with pytest.raises(StorageError) as exc:
            with db.get_connection() as conn:
                conn.execute("INSERT INTO t (v) VALUES ('ok')")
                conn.execute("INSERT INTO t (v) VALUES (NULL)")
        assert exc.value.transient is False
        assert exc.value.status_code == 500
        assert db.execute("SELECT COUNT(*) AS c FROM t")[0]["c"] == 0

    def test_connection_closed_after_context(self, tmp_path):
        db = DatabaseConnection(str(tmp_path / "close.db"))
        with db.get_connection() as conn:
            conn.execute("CREATE TABLE t (id INTEGER)")
        with pytest.raises(sqlite3.ProgrammingError):
            conn.execute("SELECT 1")

    def test_lock_contention_is_transient(self, tmp_path):
        db_path = tmp_path / "busy.db"
        db = DatabaseConnection(db_path, timeout=0.05)
        db.execute("CREATE TABLE t (id INTEGER PRIMARY KEY)")

        holding = threading.Event()
        release = threading.Event()

        def hold_write_lock():
            with db.get_connection(immediate=True) as conn:
                conn.execute("INSERT INTO t DEFAULT VALUES")
                holding.set()
                release.wait(5)

        worker = threading.Thread(target=hold_write_lock)
        worker.start()
        try:
            assert holding.wait(5)
            with pytest.raises(StorageError) as exc:
                with db.get_connection(immediate=True) as conn:
                    conn.execute("INSERT INTO t DEFAULT VALUES")
            assert exc.value.transient is True
            assert exc.value.status_code == 503
        finally:
            release.set()
            worker.join()
        assert db.execute("SELECT COUNT(*) AS c FROM t")[0]["c"] == 1


class TestExecute:
    def test_returns_rows(self, tmp_path):
        db = DatabaseConnection(str(tmp_path / "exec.db"))
        db.execute("CREATE TABLE t (id INTEGER PRIMARY KEY, v TEXT)")
        db.execute("INSERT INTO t (v) VALUES ('a')")
        db.execute("INSERT INTO t (v) VALUES ('b')")
        rows = db.execute("SELECT v FROM t ORDER BY v")
        assert [r["v"] for r in rows] == ["a", "b"]

    def test_with_params(self, tmp_path):
        db = DatabaseConnection(str(tmp_path / "params.db"))
        db.execute("CREATE TABLE t (id INTEGER PRIMARY KEY, v TEXT)")
        db.execute("INSERT INTO t (v) VALUES (?)", ("test",))
        rows = db.execute("SELECT v FROM t WHERE v = ?", ("test",))
        assert len(rows) == 1

    def test_returns_empty_for_no_rows(self, tmp_path):
        db = DatabaseConnection(str(tmp_path / "empty.db"))
        db.execute("CREATE TABLE t (id INTEGER PRIMARY KEY)")
        assert db.execute("SELECT * FROM t") == []

    def test_raises_on_bad_sql(self, tmp_path):
        db = DatabaseConnection(str(tmp_path / "bad.db"))
        with pytest.raises(StorageError):
            db.execute("SELECT * FROM nonexistent_table")


class TestExecuteScript:
    def test_runs_multi_statement(self, tmp_path):
        db = DatabaseConnection(str(tmp_path / "script.db"))
        db.execute_script("""
            CREATE TABLE a (id INTEGER PRIMARY KEY);
            CREATE TABLE b (id INTEGER PRIMARY KEY);
            INSERT INTO a (id) VALUES (1);
            INSERT INTO b (id) VALUES (2);
        """)
        assert len(db.execute("SELECT * FROM a")) == 1
        assert len(db.execute("SELECT * FROM b")) == 1

    def test_raises_on_bad_script(self, tmp_path):
        db = DatabaseConnection(str(tmp_path / "badscript.db"))
        with pytest.raises(StorageError):
            db.execute_script("INVALID SQL STATEMENT;")
