"""Tests for schema creation and its constraints."""

import pytest

from fieldstock.database.schema import SCHEMA_VERSION, initialize_database
from fieldstock.errors import StorageError


def _columns(db, table):
    return {r["name"] for r in db.execute(f"PRAGMA table_info({table})")}


class TestFreshSchema:
    def test_all_tables_exist(self, db):
        rows = db.execute(
            "SELECT name FROM sqlite_master WHERE type = 'table'"
        )
        names = {r["name"] for r in rows}
        assert {
            "schema_version", "materials", "material_transactions",
            "job_materials", "tool_assignments", "tool_maintenance",
            "job_tools",
        } <= names

    def test_version_recorded(self, db):
        rows = db.execute("SELECT MAX(version) AS v FROM schema_version")
        assert rows[0]["v"] == SCHEMA_VERSION

    def test_initialize_is_idempotent(self, db):
        initialize_database(db)
        initialize_database(db)
        rows = db.execute("SELECT COUNT(*) AS c FROM schema_version")
        assert rows[0]["c"] == 1

    def test_negative_stock_rejected(self, db):
        with pytest.raises(StorageError):
            db.execute(
                "INSERT INTO materials (name, category, current_stock) "
                "VALUES ('Bad', 'X', -1)"
            )

    def test_ledger_row_must_balance(self, db):
        db.execute("INSERT INTO materials (name, category) VALUES ('A', 'X')")
        with pytest.raises(StorageError):
            db.execute("""
                INSERT INTO material_transactions
                    (material_id, transaction_type, quantity,
                     previous_stock, new_stock)
                VALUES (1, 'purchase', 5, 0, 4)
            """)

    def test_ledger_is_append_only(self, db):
        db.execute("INSERT INTO materials (name, category) VALUES ('A', 'X')")
        db.execute("""
            INSERT INTO material_transactions
                (material_id, transaction_type, quantity,
                 previous_stock, new_stock)
            VALUES (1, 'purchase', 5, 0, 5)
        """)
        with pytest.raises(StorageError, match="append-only"):
            db.execute("UPDATE material_transactions SET quantity = 6")
        with pytest.raises(StorageError, match="append-only"):
            db.execute("DELETE FROM material_transactions")

    def test_one_active_assignment_per_tool(self, db):
        db.execute(
            "INSERT INTO materials (name, category, is_tool, tool_status) "
            "VALUES ('Drill', 'Tools', 1, 'assigned')"
        )
        insert = """
            INSERT INTO tool_assignments
                (material_id, assigned_to_name, assigned_date, status)
            VALUES (1, ?, '2024-01-01 08:00:00', ?)
        """
        db.execute(insert, ("Ann", "returned"))
        db.execute(insert, ("Bob", "active"))
        with pytest.raises(StorageError):
            db.execute(insert, ("Cy", "active"))

    def test_job_material_unique_per_job(self, db):
        db.execute("INSERT INTO materials (name, category) VALUES ('A', 'X')")
        insert = ("INSERT INTO job_materials (job_id, material_id, "
                  "quantity_used) VALUES ('J1', 1, 1)")
        db.execute(insert)
        with pytest.raises(StorageError):
            db.execute(insert)

    def test_concurrency_columns_present(self, db):
        assert "version" in _columns(db, "materials")
        assert "created_by" in _columns(db, "material_transactions")


class TestSchemaVersion:
    def test_newer_database_is_refused(self, db):
        db.execute(
            "INSERT INTO schema_version (version) VALUES (?)",
            (SCHEMA_VERSION + 1,),
        )
        with pytest.raises(StorageError, match="newer than supported"):
            initialize_database(db)

    def test_existing_data_survives_reinitialize(self, db):
        db.execute(
            "INSERT INTO materials (name, category) VALUES ('Tape', 'Misc')"
        )
        initialize_database(db)
        rows = db.execute("SELECT name FROM materials")
        assert [r["name"] for r in rows] == ["Tape"]
