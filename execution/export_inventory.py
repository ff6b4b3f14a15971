"""Standalone export script: materials or a material's ledger from command line.

Bare file names are written into Config.EXPORT_DIRECTORY.
"""

import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from fieldstock.config import Config
from fieldstock.database.repository import Repository
from fieldstock.io.csv_handler import (
    export_materials_csv,
    export_transactions_csv,
)
from fieldstock.io.excel_handler import export_materials_excel
from fieldstock.utils.formatters import format_currency, format_quantity

USAGE = (
    "Usage: python export_inventory.py materials <output.csv|output.xlsx>\n"
    "       python export_inventory.py transactions <material_id> <output.csv>\n"
    "       python export_inventory.py alerts"
)


def _output_path(name: str) -> Path:
    path = Path(name)
    if path.parent == Path("."):
        return Path(Config.EXPORT_DIRECTORY) / path
    return path


def print_alerts(repo: Repository):
    """Print current stock alerts and the on-hand inventory value."""
    summary = repo.stock.get_inventory_summary()
    materials = {m.id: m for m in repo.get_all_materials()}
    alerts = repo.get_stock_alerts()

    print(f"Inventory value: {format_currency(summary.total_value)} "
          f"across {summary.total_materials} materials")
    if not alerts:
        print("No stock alerts.")
        return
    for a in alerts:
        unit = materials[a.material_id].unit_of_measure
        print(f"  [{a.severity}] {a.material_name}: "
              f"{format_quantity(a.current_stock, a.min_stock, unit)} "
              f"(reorder at {a.reorder_point})")


def main():
    logging.basicConfig(level=Config.LOG_LEVEL)
    if len(sys.argv) < 2:
        print(USAGE)
        sys.exit(1)

    data_type = sys.argv[1].lower()
    repo = Repository.open(Config.DATABASE_PATH)

    if data_type == "alerts":
        print_alerts(repo)
    elif data_type == "materials" and len(sys.argv) >= 3:
        filepath = _output_path(sys.argv[2])
        if filepath.suffix.lower() == ".xlsx":
            count = export_materials_excel(repo, filepath)
        else:
            count = export_materials_csv(repo, filepath)
        print(f"Exported {count} materials to {filepath}")
    elif data_type == "transactions" and len(sys.argv) >= 4:
        material_id = int(sys.argv[2])
        filepath = _output_path(sys.argv[3])
        count = export_transactions_csv(repo, material_id, filepath)
        print(f"Exported {count} transactions to {filepath}")
    else:
        print(USAGE)
        sys.exit(1)


if __name__ == "__main__":
    main()
