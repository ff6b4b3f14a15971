"""Database schema definition and initialization."""

import sqlite3

from fieldstock.errors import StorageError

SCHEMA_VERSION = 1

# Each statement is a separate string to avoid executescript issues
_SCHEMA_STATEMENTS = [
    """CREATE TABLE IF NOT EXISTS schema_version (
        version INTEGER PRIMARY KEY,
        applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )""",

    # Materials table (stock items and tools)
    """CREATE TABLE IF NOT EXISTS materials (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        description TEXT,
        category TEXT NOT NULL,
        sku TEXT,
        barcode TEXT,
        unit_cost REAL NOT NULL DEFAULT 0.00 CHECK (unit_cost >= 0),
        current_stock INTEGER NOT NULL DEFAULT 0 CHECK (current_stock >= 0),
        min_stock INTEGER NOT NULL DEFAULT 0 CHECK (min_stock >= 0),
        reorder_point INTEGER NOT NULL DEFAULT 0 CHECK (reorder_point >= 0),
        unit_of_measure TEXT NOT NULL DEFAULT 'each',
        supplier_name TEXT,
        supplier_contact TEXT,
        location TEXT,
        is_active INTEGER NOT NULL DEFAULT 1,
        is_tool INTEGER NOT NULL DEFAULT 0,
        serial_number TEXT,
        tool_condition TEXT CHECK (tool_condition IS NULL OR tool_condition IN
            ('excellent', 'good', 'fair', 'poor', 'needs_repair', 'retired')),
        tool_status TEXT CHECK (tool_status IS NULL OR tool_status IN
            ('available', 'assigned', 'maintenance', 'lost', 'retired')),
        assigned_to_name TEXT,
        assigned_date TIMESTAMP,
        expected_return_date TIMESTAMP,
        purchase_date TIMESTAMP,
        warranty_expires TIMESTAMP,
        maintenance_interval_days INTEGER
            CHECK (maintenance_interval_days IS NULL
                   OR maintenance_interval_days >= 1),
        last_maintenance_date TIMESTAMP,
        next_maintenance_date TIMESTAMP,
        version INTEGER NOT NULL DEFAULT 0,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )""",

    # Append-only stock ledger
    """CREATE TABLE IF NOT EXISTS material_transactions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        material_id INTEGER NOT NULL,
        transaction_type TEXT NOT NULL
            CHECK (transaction_type IN
                   ('purchase', 'usage', 'return', 'adjustment')),
        quantity INTEGER NOT NULL,
        unit_cost REAL,
        total_cost REAL,
        previous_stock INTEGER NOT NULL,
        new_stock INTEGER NOT NULL CHECK (new_stock >= 0),
        reference_type TEXT CHECK (reference_type IS NULL OR reference_type IN
            ('job', 'purchase_order', 'manual_adjustment')),
        reference_id TEXT,
        notes TEXT,
        created_by TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        CHECK (new_stock = previous_stock + quantity),
        FOREIGN KEY (material_id) REFERENCES materials(id) ON DELETE RESTRICT
    )""",

    # Materials allocated to jobs (jobs live outside this store)
    """CREATE TABLE IF NOT EXISTS job_materials (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        job_id TEXT NOT NULL,
        material_id INTEGER NOT NULL,
        quantity_used INTEGER NOT NULL CHECK (quantity_used > 0),
        unit_cost REAL NOT NULL DEFAULT 0.00,
        total_cost REAL NOT NULL DEFAULT 0.00,
        notes TEXT,
        used_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (material_id) REFERENCES materials(id) ON DELETE RESTRICT,
        UNIQUE(job_id, material_id)
    )""",

    # Tool checkouts to personnel
    """CREATE TABLE IF NOT EXISTS tool_assignments (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        material_id INTEGER NOT NULL,
        assigned_to_name TEXT NOT NULL,
        assigned_by_name TEXT,
        assigned_date TIMESTAMP NOT NULL,
        expected_return_date TIMESTAMP,
        actual_return_date TIMESTAMP,
        job_id TEXT,
        status TEXT NOT NULL DEFAULT 'active'
            CHECK (status IN ('active', 'returned')),
        condition_at_assignment TEXT CHECK (condition_at_assignment IS NULL
            OR condition_at_assignment IN ('excellent', 'good', 'fair', 'poor')),
        condition_at_return TEXT CHECK (condition_at_return IS NULL
            OR condition_at_return IN ('excellent', 'good', 'fair', 'poor',
                                       'needs_repair', 'damaged')),
        notes TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (material_id) REFERENCES materials(id) ON DELETE RESTRICT
    )""",

    # Tool maintenance events
    """CREATE TABLE IF NOT EXISTS tool_maintenance (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        material_id INTEGER NOT NULL,
        maintenance_type TEXT NOT NULL DEFAULT 'scheduled'
            CHECK (maintenance_type IN
                   ('scheduled', 'repair', 'inspection', 'calibration')),
        scheduled_date TIMESTAMP NOT NULL,
        completed_date TIMESTAMP,
        technician_name TEXT,
        cost REAL CHECK (cost IS NULL OR cost >= 0),
        notes TEXT,
        parts_used TEXT,
        status TEXT NOT NULL DEFAULT 'scheduled'
            CHECK (status IN
                   ('scheduled', 'in_progress', 'completed', 'cancelled')),
        next_maintenance_date TIMESTAMP,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (material_id) REFERENCES materials(id) ON DELETE RESTRICT
    )""",

    # Tools on a job site (independent of personnel checkout)
    """CREATE TABLE IF NOT EXISTS job_tools (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        job_id TEXT NOT NULL,
        material_id INTEGER NOT NULL,
        assigned_by_name TEXT,
        assigned_date TIMESTAMP NOT NULL,
        returned_date TIMESTAMP,
        status TEXT NOT NULL DEFAULT 'assigned'
            CHECK (status IN ('assigned', 'returned')),
        notes TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (material_id) REFERENCES materials(id) ON DELETE RESTRICT
    )""",

    # Indexes
    "CREATE INDEX IF NOT EXISTS idx_materials_category ON materials(category)",
    "CREATE INDEX IF NOT EXISTS idx_materials_active ON materials(is_active)",
    "CREATE INDEX IF NOT EXISTS idx_materials_sku ON materials(sku)",
    """CREATE INDEX IF NOT EXISTS idx_material_transactions_material
        ON material_transactions(material_id, created_at)""",
    "CREATE INDEX IF NOT EXISTS idx_job_materials_job ON job_materials(job_id)",
    """CREATE INDEX IF NOT EXISTS idx_tool_assignments_status
        ON tool_assignments(status, expected_return_date)""",
    """CREATE INDEX IF NOT EXISTS idx_tool_maintenance_material
        ON tool_maintenance(material_id, scheduled_date)""",
    "CREATE INDEX IF NOT EXISTS idx_job_tools_job ON job_tools(job_id)",

    # Triggers
    """CREATE TRIGGER IF NOT EXISTS update_materials_timestamp
    AFTER UPDATE ON materials
    WHEN NEW.updated_at = OLD.updated_at BEGIN
        UPDATE materials SET updated_at = CURRENT_TIMESTAMP WHERE id = NEW.id;
    END""",

    """CREATE TRIGGER IF NOT EXISTS update_tool_assignments_timestamp
    AFTER UPDATE ON tool_assignments
    WHEN NEW.updated_at = OLD.updated_at BEGIN
        UPDATE tool_assignments SET updated_at = CURRENT_TIMESTAMP
        WHERE id = NEW.id;
    END""",

    """CREATE TRIGGER IF NOT EXISTS update_tool_maintenance_timestamp
    AFTER UPDATE ON tool_maintenance
    WHEN NEW.updated_at = OLD.updated_at BEGIN
        UPDATE tool_maintenance SET updated_at = CURRENT_TIMESTAMP
        WHERE id = NEW.id;
    END""",

    # Concurrency guards
    """CREATE UNIQUE INDEX IF NOT EXISTS idx_tool_assignments_one_active
        ON tool_assignments(material_id) WHERE status = 'active'""",

    """CREATE UNIQUE INDEX IF NOT EXISTS idx_job_tools_one_assigned
        ON job_tools(job_id, material_id) WHERE status = 'assigned'""",

    # The ledger is append-only
    """CREATE TRIGGER IF NOT EXISTS material_transactions_no_update
    BEFORE UPDATE ON material_transactions BEGIN
        SELECT RAISE(ABORT, 'material transactions are append-only');
    END""",

    """CREATE TRIGGER IF NOT EXISTS material_transactions_no_delete
    BEFORE DELETE ON material_transactions BEGIN
        SELECT RAISE(ABORT, 'material transactions are append-only');
    END""",

    # Record schema version
    f"INSERT OR IGNORE INTO schema_version (version) VALUES ({SCHEMA_VERSION})",
]


def _get_schema_version(conn) -> int:
    """Get the current schema version, or 0 if no schema exists."""
    try:
        row = conn.execute(
            "SELECT MAX(version) as v FROM schema_version"
        ).fetchone()
        return row["v"] if row and row["v"] else 0
    except sqlite3.OperationalError:
        return 0


def initialize_database(db_connection):
    """Create all tables, indexes, and triggers on a fresh database.

    An up-to-date database is left alone. A database written by a newer
    release is refused rather than opened with the wrong layout.
    """
    with db_connection.get_connection(immediate=True) as conn:
        version = _get_schema_version(conn)
        if version > SCHEMA_VERSION:
            raise StorageError(
                f"database schema version {version} is newer than "
                f"supported version {SCHEMA_VERSION}"
            )
        if version == 0:
            for stmt in _SCHEMA_STATEMENTS:
                conn.execute(stmt)
