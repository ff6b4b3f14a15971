"""Repository layer: one entry point wiring the inventory components."""

from pathlib import Path
from typing import Optional

from fieldstock.database.connection import DatabaseConnection
from fieldstock.database.schema import initialize_database
from fieldstock.inventory.analytics import InventoryAnalytics, UtilizationSource
from fieldstock.inventory.job_materials import JobMaterialAllocator
from fieldstock.inventory.stock_ledger import StockLedger
from fieldstock.inventory.tools import ToolLifecycleManager


class Repository:
    """Provides all inventory operations around one database connection.

    The allocator and the tool manager share the repository's ledger, so
    every balance and status write goes through the same object.
    """

    def __init__(self, db: DatabaseConnection,
                 utilization_source: Optional[UtilizationSource] = None,
                 restock_on_removal: Optional[bool] = None):
        self.db = db
        self.stock = StockLedger(db)
        self.job_materials = JobMaterialAllocator(
            db, self.stock, restock_on_removal=restock_on_removal
        )
        self.tools = ToolLifecycleManager(db, self.stock)
        self.analytics = InventoryAnalytics(db, utilization_source)

    @classmethod
    def open(cls, db_path: Optional[str | Path] = None, **kwargs
             ) -> "Repository":
        """Connect to ``db_path`` (default from Config) and bring the schema
        up to date."""
        from fieldstock.config import Config
        db = DatabaseConnection(
            db_path or Config.DATABASE_PATH, timeout=Config.BUSY_TIMEOUT
        )
        initialize_database(db)
        return cls(db, **kwargs)

    # ── Shortcuts used by import/export ─────────────────────────

    def get_all_materials(self, include_inactive: bool = False):
        return self.stock.get_all_materials(include_inactive)

    def get_material_by_sku(self, sku: str):
        return self.stock.get_material_by_sku(sku)

    def create_material(self, material, created_by: Optional[str] = None):
        return self.stock.create_material(material, created_by=created_by)

    def update_material(self, material_id: int, **changes):
        return self.stock.update_material(material_id, **changes)

    def get_material_transactions(self, material_id: int,
                                  limit: Optional[int] = None):
        return self.stock.get_material_transactions(material_id, limit)

    def get_stock_alerts(self):
        return self.stock.get_stock_alerts()
