"""Shared test fixtures."""

import pytest

from fieldstock.database.connection import DatabaseConnection
from fieldstock.database.models import Material
from fieldstock.database.repository import Repository
from fieldstock.database.schema import initialize_database


@pytest.fixture
def db_path(tmp_path):
    """Provide a temporary database path."""
    return tmp_path / "test.db"


@pytest.fixture
def db(db_path):
    """Provide an initialized database connection."""
    conn = DatabaseConnection(db_path)
    initialize_database(conn)
    return conn


@pytest.fixture
def repo(db):
    """Provide a repository with an initialized database."""
    return Repository(db, restock_on_removal=True)


@pytest.fixture
def make_material(repo):
    """Factory for stocked materials. Keyword args override the defaults."""
    def _make(**kwargs):
        fields = {
            "name": "Wire Nuts",
            "category": "Consumables",
            "sku": "",
            "unit_cost": 2.50,
            "current_stock": 10,
            "min_stock": 2,
        }
        fields.update(kwargs)
        return repo.create_material(Material(**fields))
    return _make


@pytest.fixture
def make_tool(repo):
    """Factory for tools (stock 1, available)."""
    def _make(**kwargs):
        fields = {
            "name": "Drill",
            "category": "Tools",
            "unit_cost": 129.00,
            "current_stock": 1,
            "is_tool": 1,
            "tool_condition": "good",
        }
        fields.update(kwargs)
        return repo.create_material(Material(**fields))
    return _make
