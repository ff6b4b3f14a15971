"""Tests for the Repository wiring."""

from fieldstock.database.models import Material
from fieldstock.database.repository import Repository
from fieldstock.inventory.analytics import InventoryAnalytics
from fieldstock.inventory.job_materials import JobMaterialAllocator
from fieldstock.inventory.stock_ledger import StockLedger
from fieldstock.inventory.tools import ToolLifecycleManager


class TestRepositoryWiring:
    def test_components(self, repo):
        assert isinstance(repo.stock, StockLedger)
        assert isinstance(repo.job_materials, JobMaterialAllocator)
        assert isinstance(repo.tools, ToolLifecycleManager)
        assert isinstance(repo.analytics, InventoryAnalytics)

    def test_components_share_one_ledger(self, repo):
        assert repo.job_materials.ledger is repo.stock
        assert repo.tools.ledger is repo.stock

    def test_components_share_the_connection(self, repo, db):
        assert repo.stock.db is db
        assert repo.tools.db is db
        assert repo.analytics.db is db

    def test_restock_override(self, db):
        assert Repository(db, restock_on_removal=False) \
            .job_materials.restock_on_removal is False


class TestRepositoryOpen:
    def test_open_initializes_schema(self, tmp_path):
        repo = Repository.open(tmp_path / "opened.db")
        assert repo.get_all_materials() == []
        rows = repo.db.execute("SELECT MAX(version) AS v FROM schema_version")
        assert rows[0]["v"] == 2

    def test_open_twice_keeps_data(self, tmp_path):
        path = tmp_path / "twice.db"
        Repository.open(path).create_material(
            Material(name="Tape", category="Consumables", current_stock=3)
        )
        again = Repository.open(path)
        assert [m.name for m in again.get_all_materials()] == ["Tape"]
