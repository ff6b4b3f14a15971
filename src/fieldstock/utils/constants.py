"""Application-wide constants."""

APP_NAME = "FieldStock"
APP_VERSION = "1.0.0"

# ── Stock ledger ────────────────────────────────────────────────
TRANSACTION_TYPES = ["purchase", "usage", "return", "adjustment"]

# Sign each transaction type must carry: +1 positive, -1 negative, 0 either
TRANSACTION_SIGNS = {
    "purchase": 1,
    "return": 1,
    "usage": -1,
    "adjustment": 0,
}

REFERENCE_TYPES = ["job", "purchase_order", "manual_adjustment"]

# Editable through StockLedger.update_material
MATERIAL_EDITABLE_FIELDS = [
    "name", "description", "category", "sku", "barcode", "unit_cost",
    "min_stock", "reorder_point", "unit_of_measure", "supplier_name",
    "supplier_contact", "location", "serial_number", "tool_condition",
    "purchase_date", "warranty_expires", "maintenance_interval_days",
    "next_maintenance_date",
]

MATERIAL_SORT_FIELDS = [
    "name", "category", "current_stock", "unit_cost", "updated_at",
]

# Validation limits
MAX_NAME_LENGTH = 100
MAX_CATEGORY_LENGTH = 50
MAX_UNIT_LENGTH = 20
MAX_REASON_LENGTH = 200
MAX_AMOUNT = 999999.99
MAX_MAINTENANCE_INTERVAL = 9999
MAX_PAGE_SIZE = 100

# ── Alerts ──────────────────────────────────────────────────────
ALERT_OUT_OF_STOCK = "out_of_stock"
ALERT_LOW_STOCK = "low_stock"
ALERT_REORDER_NEEDED = "reorder_needed"

ALERT_SEVERITY = {
    ALERT_OUT_OF_STOCK: "critical",
    ALERT_LOW_STOCK: "warning",
    ALERT_REORDER_NEEDED: "warning",
}

# ── Tools ───────────────────────────────────────────────────────
TOOL_STATUSES = ["available", "assigned", "maintenance", "lost", "retired"]

TOOL_CONDITIONS = [
    "excellent", "good", "fair", "poor", "needs_repair", "retired",
]

CHECKOUT_CONDITIONS = ["excellent", "good", "fair", "poor"]

RETURN_CONDITIONS = [
    "excellent", "good", "fair", "poor", "needs_repair", "damaged",
]

# A tool coming back in one of these goes to maintenance, not the shelf
REPAIR_CONDITIONS = ["needs_repair", "damaged"]

ASSIGNMENT_STATUSES = ["active", "returned"]
JOB_TOOL_STATUSES = ["assigned", "returned"]

MAINTENANCE_TYPES = ["scheduled", "repair", "inspection", "calibration"]
MAINTENANCE_STATUSES = ["scheduled", "in_progress", "completed", "cancelled"]

MAINTENANCE_EDITABLE_FIELDS = [
    "maintenance_type", "scheduled_date", "technician_name", "cost",
    "notes", "parts_used",
]
