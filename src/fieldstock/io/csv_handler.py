"""CSV import and export for materials and their transaction history."""

import csv
from pathlib import Path
from typing import Optional

from fieldstock.database.models import Material
from fieldstock.database.repository import Repository
from fieldstock.errors import InventoryError
from fieldstock.io.validators import validate_material_row

MATERIAL_CSV_COLUMNS = [
    "sku", "name", "description", "category", "unit_of_measure",
    "current_stock", "min_stock", "reorder_point", "unit_cost",
    "supplier_name", "supplier_contact", "location", "barcode",
    "is_tool", "serial_number",
]

TRANSACTION_CSV_COLUMNS = [
    "created_at", "material", "transaction_type", "quantity",
    "previous_stock", "new_stock", "unit_cost", "total_cost",
    "reference_type", "reference_id", "notes", "created_by",
]

# Descriptive columns an import may overwrite on an existing material
IMPORT_UPDATE_FIELDS = [
    "name", "description", "category", "unit_of_measure", "min_stock",
    "reorder_point", "unit_cost", "supplier_name", "supplier_contact",
    "location", "barcode", "serial_number",
]


def _int(value, default: Optional[int] = 0) -> Optional[int]:
    text = str(value if value is not None else "").strip()
    return int(float(text)) if text else default


def material_from_row(row: dict) -> Material:
    """Build a Material from an already validated import row."""
    from fieldstock.config import Config

    text = {k: str(v if v is not None else "").strip() for k, v in row.items()}
    return Material(
        sku=text.get("sku", ""),
        name=text.get("name", ""),
        description=text.get("description", ""),
        category=text.get("category", ""),
        unit_of_measure=(text.get("unit_of_measure")
                         or Config.DEFAULT_UNIT_OF_MEASURE),
        current_stock=_int(text.get("current_stock")),
        min_stock=_int(text.get("min_stock")),
        reorder_point=_int(text.get("reorder_point"), default=None),
        unit_cost=float(text.get("unit_cost") or 0),
        supplier_name=text.get("supplier_name", ""),
        supplier_contact=text.get("supplier_contact", ""),
        location=text.get("location", ""),
        barcode=text.get("barcode", ""),
        is_tool=1 if text.get("is_tool", "").lower() in (
            "1", "true", "yes", "y") else 0,
        serial_number=text.get("serial_number", ""),
    )


def import_material_rows(repo: Repository, rows, update_existing: bool,
                         results: dict, created_by: Optional[str] = None):
    """Apply ``(row_num, row)`` pairs to the inventory, tallying into results.

    Rows are matched to existing materials by SKU. New materials get their
    opening stock as a purchase; existing ones only have descriptive
    columns updated.
    """
    for row_num, row in rows:
        errors = validate_material_row(row, row_num)
        if errors:
            results["errors"].extend(errors)
            results["skipped"] += 1
            continue

        material = material_from_row(row)
        existing = (repo.get_material_by_sku(material.sku)
                    if material.sku else None)

        try:
            if existing and update_existing:
                changes = {
                    name: getattr(material, name)
                    for name in IMPORT_UPDATE_FIELDS
                    if str(row.get(name) or "").strip()
                }
                repo.update_material(existing.id, **changes)
                results["updated"] += 1
            elif existing:
                results["skipped"] += 1
            else:
                repo.create_material(material, created_by=created_by)
                results["imported"] += 1
        except InventoryError as e:
            results["errors"].append(f"Row {row_num}: {e}")
            results["skipped"] += 1


def export_materials_csv(repo: Repository, filepath: str | Path) -> int:
    """Export all active materials to CSV. Returns the number of rows written."""
    materials = repo.get_all_materials()
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    with open(filepath, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=MATERIAL_CSV_COLUMNS)
        writer.writeheader()
        for m in materials:
            writer.writerow({
                "sku": m.sku,
                "name": m.name,
                "description": m.description,
                "category": m.category,
                "unit_of_measure": m.unit_of_measure,
                "current_stock": m.current_stock,
                "min_stock": m.min_stock,
                "reorder_point": m.reorder_point,
                "unit_cost": m.unit_cost,
                "supplier_name": m.supplier_name,
                "supplier_contact": m.supplier_contact,
                "location": m.location,
                "barcode": m.barcode,
                "is_tool": m.is_tool,
                "serial_number": m.serial_number,
            })
    return len(materials)


def export_transactions_csv(repo: Repository, material_id: int,
                            filepath: str | Path,
                            limit: Optional[int] = None) -> int:
    """Export one material's ledger, newest first. Returns row count."""
    transactions = repo.get_material_transactions(material_id, limit)
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    with open(filepath, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=TRANSACTION_CSV_COLUMNS)
        writer.writeheader()
        for t in transactions:
            writer.writerow({
                "created_at": t.created_at,
                "material": t.material_name,
                "transaction_type": t.transaction_type,
                "quantity": t.quantity,
                "previous_stock": t.previous_stock,
                "new_stock": t.new_stock,
                "unit_cost": "" if t.unit_cost is None else t.unit_cost,
                "total_cost": "" if t.total_cost is None else t.total_cost,
                "reference_type": t.reference_type or "",
                "reference_id": t.reference_id or "",
                "notes": t.notes,
                "created_by": t.created_by or "",
            })
    return len(transactions)


def import_materials_csv(
    repo: Repository,
    filepath: str | Path,
    update_existing: bool = False,
    created_by: Optional[str] = None,
) -> dict:
    """Import materials from CSV. Returns results dict with counts and errors."""
    filepath = Path(filepath)
    results = {"imported": 0, "updated": 0, "skipped": 0, "errors": []}

    try:
        with open(filepath, "r", encoding="utf-8") as f:
            reader = csv.DictReader(f)
            import_material_rows(
                repo, enumerate(reader, start=2), update_existing,
                results, created_by,
            )
    except (OSError, csv.Error, UnicodeDecodeError) as e:
        results["errors"].append(f"File error: {e}")

    return results
