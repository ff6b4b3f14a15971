"""Standalone import script: load materials from CSV or XLSX."""

import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from fieldstock.config import Config
from fieldstock.database.repository import Repository
from fieldstock.io.csv_handler import import_materials_csv
from fieldstock.io.excel_handler import import_materials_excel


def main():
    logging.basicConfig(level=Config.LOG_LEVEL)
    if len(sys.argv) < 2:
        print("Usage: python import_inventory.py <file.csv|file.xlsx> [--update]")
        sys.exit(1)

    filepath = Path(sys.argv[1])
    update = "--update" in sys.argv

    repo = Repository.open(Config.DATABASE_PATH)

    print(f"Importing from: {filepath}")
    if update:
        print("Mode: Update existing materials (matched by SKU)")

    if filepath.suffix.lower() == ".xlsx":
        results = import_materials_excel(repo, filepath, update_existing=update)
    else:
        results = import_materials_csv(repo, filepath, update_existing=update)

    print("\nResults:")
    print(f"  Imported: {results['imported']}")
    print(f"  Updated:  {results['updated']}")
    print(f"  Skipped:  {results['skipped']}")

    if results["errors"]:
        print(f"\nErrors ({len(results['errors'])}):")
        for err in results["errors"]:
            print(f"  - {err}")


if __name__ == "__main__":
    main()
