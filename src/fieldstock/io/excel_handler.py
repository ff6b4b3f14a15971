"""Excel (XLSX) import and export for materials."""

from pathlib import Path
from typing import Optional

from openpyxl import Workbook, load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from fieldstock.database.repository import Repository
from fieldstock.io.csv_handler import import_material_rows

MATERIAL_HEADERS = [
    "SKU", "Name", "Description", "Category", "Unit Of Measure",
    "Current Stock", "Min Stock", "Reorder Point", "Unit Cost",
    "Supplier Name", "Supplier Contact", "Location", "Barcode",
    "Is Tool", "Serial Number",
]

ALERT_HEADERS = [
    "Material ID", "Name", "Current Stock", "Min Stock", "Reorder Point",
    "Alert", "Severity",
]

# Map common header variations onto column names
_HEADER_MAP = {
    "qty": "current_stock",
    "quantity": "current_stock",
    "stock": "current_stock",
    "min_qty": "min_stock",
    "unit": "unit_of_measure",
    "uom": "unit_of_measure",
    "supplier": "supplier_name",
    "serial_number": "serial_number",
    "serial": "serial_number",
}


def _autofit(ws):
    for col in ws.columns:
        max_len = max(len(str(cell.value or "")) for cell in col)
        ws.column_dimensions[col[0].column_letter].width = min(max_len + 2, 40)


def export_materials_excel(repo: Repository, filepath: str | Path) -> int:
    """Export materials plus a sheet of current stock alerts. Returns row count."""
    materials = repo.get_all_materials()
    alerts = repo.get_stock_alerts()
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    wb = Workbook()
    ws = wb.active
    ws.title = "Materials"
    ws.append(MATERIAL_HEADERS)

    for m in materials:
        ws.append([
            m.sku,
            m.name,
            m.description,
            m.category,
            m.unit_of_measure,
            m.current_stock,
            m.min_stock,
            m.reorder_point,
            m.unit_cost,
            m.supplier_name,
            m.supplier_contact,
            m.location,
            m.barcode,
            m.is_tool,
            m.serial_number,
        ])
    _autofit(ws)

    alert_ws = wb.create_sheet("Alerts")
    alert_ws.append(ALERT_HEADERS)
    for a in alerts:
        alert_ws.append([
            a.material_id,
            a.material_name,
            a.current_stock,
            a.min_stock,
            a.reorder_point,
            a.alert_type,
            a.severity,
        ])
    _autofit(alert_ws)

    wb.save(filepath)
    return len(materials)


def import_materials_excel(
    repo: Repository,
    filepath: str | Path,
    update_existing: bool = False,
    created_by: Optional[str] = None,
) -> dict:
    """Import materials from the first sheet of a workbook. Returns results dict."""
    filepath = Path(filepath)
    results = {"imported": 0, "updated": 0, "skipped": 0, "errors": []}

    try:
        wb = load_workbook(filepath, read_only=True)
    except (OSError, InvalidFileException, KeyError) as e:
        results["errors"].append(f"File error: {e}")
        return results

    try:
        ws = wb.worksheets[0]
        rows = list(ws.iter_rows(values_only=True))
        if not rows:
            results["errors"].append("Empty workbook")
            return results

        # Use first row as header
        header = [str(h or "").strip().lower().replace(" ", "_")
                  for h in rows[0]]
        header = [_HEADER_MAP.get(h, h) for h in header]

        parsed = (
            (row_num, dict(zip(
                header,
                ["" if v is None else str(v) for v in row_data],
            )))
            for row_num, row_data in enumerate(rows[1:], start=2)
            if any(v is not None for v in row_data)
        )
        import_material_rows(repo, parsed, update_existing, results,
                             created_by)
    finally:
        wb.close()

    return results
