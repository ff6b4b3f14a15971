"""E2E test fixtures: a file-backed repository with a small stocked shop."""

import pytest

from fieldstock.database.models import Material
from fieldstock.database.repository import Repository


@pytest.fixture
def repo(tmp_path):
    """Fresh database opened the way the scripts open it."""
    return Repository.open(tmp_path / "e2e.db", restock_on_removal=True)


@pytest.fixture
def stock(repo):
    """Four consumables with opening stock, keyed by SKU."""
    items = [
        ("W-1402", "12/2 Romex 250ft", "Wire & Cable", "roll", 20, 4, 98.50),
        ("D-REC15", "15A Duplex Receptacle", "Devices", "each", 300, 100, 0.89),
        ("B-4SQ", "4in Square Box", "Boxes & Covers", "each", 35, 40, 2.45),
        ("X-TAPE", "Electrical Tape Black", "Consumables", "roll", 12, 5, 2.20),
    ]
    result = {}
    for sku, name, cat, unit, qty, min_stock, cost in items:
        result[sku] = repo.create_material(Material(
            sku=sku, name=name, category=cat, unit_of_measure=unit,
            current_stock=qty, min_stock=min_stock, unit_cost=cost,
            supplier_name="Graybar Electric", location="Warehouse A",
        ), created_by="office")
    return result


@pytest.fixture
def drill(repo):
    """Serviceable tool on a 90 day maintenance interval."""
    return repo.create_material(Material(
        sku="T-DRILL-01", name="Cordless Hammer Drill", category="Tools",
        current_stock=1, unit_cost=189.00, is_tool=1,
        serial_number="DH-88213", tool_condition="good",
        maintenance_interval_days=90, location="Tool Crib",
    ))
