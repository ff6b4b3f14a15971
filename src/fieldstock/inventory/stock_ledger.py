"""Stock ledger: material balances and their append-only audit trail.

Every change to ``materials.current_stock`` goes through
:meth:`StockLedger.mutate_stock`, and every change to ``tool_status``
through :meth:`StockLedger.transition_tool_status`. Other components call
these with their own connection so the whole operation commits or rolls
back as one unit.
"""

import dataclasses
import logging
import math
from typing import Callable, Optional

from fieldstock.database.connection import DatabaseConnection
from fieldstock.database.models import (
    CategorySummary,
    InventorySummary,
    Material,
    MaterialTransaction,
    StockAlert,
)
from fieldstock.errors import (
    ConcurrentModificationError,
    InsufficientStockError,
    NegativeStockError,
    NotFoundError,
    ValidationError,
)
from fieldstock.io.validators import MATERIAL_DATE_FIELDS, validate_material
from fieldstock.utils.constants import (
    ALERT_LOW_STOCK,
    ALERT_OUT_OF_STOCK,
    ALERT_REORDER_NEEDED,
    ALERT_SEVERITY,
    MATERIAL_EDITABLE_FIELDS,
    MATERIAL_SORT_FIELDS,
    MAX_AMOUNT,
    MAX_PAGE_SIZE,
    MAX_REASON_LENGTH,
    REFERENCE_TYPES,
    TOOL_STATUSES,
    TRANSACTION_SIGNS,
    TRANSACTION_TYPES,
)
from fieldstock.utils.formatters import to_db_timestamp

logger = logging.getLogger(__name__)

# Material columns that may ride along with a tool status change
_TOOL_STATUS_FIELDS = {
    "assigned_to_name", "assigned_date", "expected_return_date",
    "tool_condition", "last_maintenance_date", "next_maintenance_date",
}


def _check_amount(errors: list, name: str, value, allow_none: bool = True):
    if value is None:
        if not allow_none:
            errors.append(f"{name} is required")
        return
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        errors.append(f"{name} must be a number")
    elif not math.isfinite(value):
        errors.append(f"{name} must be a finite number")
    elif value < 0:
        errors.append(f"{name} cannot be negative")
    elif value > MAX_AMOUNT:
        errors.append(f"{name} is too high")


class StockLedger:
    """Single authority for material balances and their audit trail."""

    _TRANSACTIONS_SELECT = """
        SELECT mt.*, COALESCE(m.name, '') AS material_name
        FROM material_transactions mt
        JOIN materials m ON mt.material_id = m.id
    """

    def __init__(self, db: DatabaseConnection):
        self.db = db

    # ── Materials ───────────────────────────────────────────────

    @staticmethod
    def _fetch_material(conn, material_id: int) -> Optional[Material]:
        row = conn.execute(
            "SELECT * FROM materials WHERE id = ?", (material_id,)
        ).fetchone()
        return Material(**dict(row)) if row else None

    def require_material(self, conn, material_id: int) -> Material:
        """Load a material inside an open connection or raise NotFoundError."""
        material = self._fetch_material(conn, material_id)
        if material is None:
            raise NotFoundError("Material", material_id)
        return material

    def get_material(self, material_id: int) -> Optional[Material]:
        rows = self.db.execute(
            "SELECT * FROM materials WHERE id = ?", (material_id,)
        )
        return Material(**dict(rows[0])) if rows else None

    def get_material_by_sku(self, sku: str) -> Optional[Material]:
        rows = self.db.execute(
            "SELECT * FROM materials WHERE sku = ? AND is_active = 1 "
            "ORDER BY id LIMIT 1",
            (sku,),
        )
        return Material(**dict(rows[0])) if rows else None

    def get_all_materials(self, include_inactive: bool = False
                          ) -> list[Material]:
        if include_inactive:
            rows = self.db.execute("SELECT * FROM materials ORDER BY name")
        else:
            rows = self.db.execute(
                "SELECT * FROM materials WHERE is_active = 1 ORDER BY name"
            )
        return [Material(**dict(r)) for r in rows]

    def get_materials(
        self,
        search: str = "",
        category: Optional[str] = None,
        low_stock_only: bool = False,
        out_of_stock_only: bool = False,
        include_inactive: bool = False,
        page: int = 1,
        limit: int = 20,
        sort_by: str = "name",
        sort_order: str = "asc",
    ) -> tuple[list[Material], int]:
        """Filtered, sorted, paginated material list plus the total match count."""
        errors = []
        if sort_by not in MATERIAL_SORT_FIELDS:
            errors.append(f"cannot sort by {sort_by!r}")
        if sort_order not in ("asc", "desc"):
            errors.append("sort_order must be 'asc' or 'desc'")
        if page < 1:
            errors.append("page must be at least 1")
        if not 1 <= limit <= MAX_PAGE_SIZE:
            errors.append(f"limit must be between 1 and {MAX_PAGE_SIZE}")
        if errors:
            raise ValidationError(errors)

        where = []
        params: list = []
        if not include_inactive:
            where.append("is_active = 1")
        if search and search.strip():
            pattern = f"%{search.strip()}%"
            where.append("(name LIKE ? OR description LIKE ? OR sku LIKE ?)")
            params.extend([pattern] * 3)
        if category:
            where.append("category = ?")
            params.append(category)
        if low_stock_only:
            where.append("current_stock <= min_stock")
        if out_of_stock_only:
            where.append("current_stock = 0")
        clause = f" WHERE {' AND '.join(where)}" if where else ""

        total_rows = self.db.execute(
            f"SELECT COUNT(*) AS cnt FROM materials{clause}", tuple(params)
        )
        total = total_rows[0]["cnt"] if total_rows else 0

        rows = self.db.execute(
            f"SELECT * FROM materials{clause} "
            f"ORDER BY {sort_by} {sort_order.upper()}, id "
            f"LIMIT ? OFFSET ?",
            tuple(params) + (limit, (page - 1) * limit),
        )
        return [Material(**dict(r)) for r in rows], total

    def create_material(self, material: Material,
                        created_by: Optional[str] = None) -> Material:
        """Store a new material, seeding its opening stock as a purchase."""
        if material.reorder_point is None:
            material = dataclasses.replace(
                material, reorder_point=material.min_stock
            )
        errors = validate_material(material)
        if errors:
            raise ValidationError(errors)

        opening_stock = material.current_stock
        tool_status = None
        if material.is_tool:
            tool_status = material.tool_status or "available"
            if tool_status not in TOOL_STATUSES:
                raise ValidationError(f"unknown tool_status {tool_status!r}")

        with self.db.get_connection(immediate=True) as conn:
            cursor = conn.execute("""
                INSERT INTO materials
                    (name, description, category, sku, barcode, unit_cost,
                     current_stock, min_stock, reorder_point,
                     unit_of_measure, supplier_name, supplier_contact,
                     location, is_active, is_tool, serial_number,
                     tool_condition, tool_status, purchase_date,
                     warranty_expires, maintenance_interval_days,
                     next_maintenance_date)
                VALUES (?, ?, ?, ?, ?, ?, 0, ?, ?, ?, ?, ?, ?, 1, ?, ?,
                        ?, ?, ?, ?, ?, ?)
            """, (
                material.name.strip(), material.description,
                material.category.strip(), material.sku, material.barcode,
                material.unit_cost, material.min_stock,
                material.reorder_point, material.unit_of_measure.strip(),
                material.supplier_name, material.supplier_contact,
                material.location, 1 if material.is_tool else 0,
                material.serial_number, material.tool_condition,
                tool_status,
                to_db_timestamp(material.purchase_date),
                to_db_timestamp(material.warranty_expires),
                material.maintenance_interval_days,
                to_db_timestamp(material.next_maintenance_date),
            ))
            material_id = cursor.lastrowid

            if opening_stock > 0:
                self.mutate_stock(
                    material_id, lambda m: opening_stock, "purchase",
                    unit_cost=material.unit_cost,
                    notes="Initial stock entry",
                    created_by=created_by, conn=conn,
                )
            created = self.require_material(conn, material_id)

        logger.info(
            f"Created material {material_id} ({created.name}) "
            f"with {opening_stock} on hand"
        )
        return created

    def update_material(self, material_id: int, **changes) -> Material:
        """Patch descriptive fields. Stock and tool status are not editable here."""
        locked = sorted(set(changes) - set(MATERIAL_EDITABLE_FIELDS))
        if locked:
            raise ValidationError([
                f"{name} cannot be changed through update_material"
                for name in locked
            ])

        with self.db.get_connection(immediate=True) as conn:
            current = self.require_material(conn, material_id)
            if not changes:
                return current

            merged = dataclasses.replace(current, **changes)
            if merged.reorder_point is None:
                merged.reorder_point = merged.min_stock
                changes["reorder_point"] = merged.min_stock
            errors = validate_material(merged)
            if errors:
                raise ValidationError(errors)

            values = dict(changes)
            for name in MATERIAL_DATE_FIELDS:
                if name in values:
                    values[name] = to_db_timestamp(values[name])
            for name in ("name", "category", "unit_of_measure"):
                if name in values:
                    values[name] = values[name].strip()

            assignments = ", ".join(f"{name} = ?" for name in values)
            conn.execute(
                f"UPDATE materials SET {assignments} WHERE id = ?",
                tuple(values.values()) + (material_id,),
            )
            return self.require_material(conn, material_id)

    def delete_material(self, material_id: int):
        """Soft delete. Deleting an already inactive material is a no-op."""
        with self.db.get_connection(immediate=True) as conn:
            material = self.require_material(conn, material_id)
            if material.is_active:
                conn.execute(
                    "UPDATE materials SET is_active = 0 WHERE id = ?",
                    (material_id,),
                )
                logger.info(f"Deactivated material {material_id}")

    # ── Stock transactions ──────────────────────────────────────

    def mutate_stock(
        self,
        material_id: int,
        compute: Callable[[Material], int],
        transaction_type: str,
        unit_cost: Optional[float] = None,
        notes: str = "",
        reference_type: Optional[str] = None,
        reference_id=None,
        created_by: Optional[str] = None,
        conn=None,
    ) -> MaterialTransaction:
        """Atomically apply a signed stock change and append its ledger row.

        ``compute`` receives the freshly read material and returns the
        signed quantity. The balance write is a compare-and-swap on the
        material's version; the ledger row is written in the same database
        transaction. Pass ``conn`` to join a caller's transaction.
        """
        if conn is None:
            with self.db.get_connection(immediate=True) as own_conn:
                return self._apply_stock_change(
                    own_conn, material_id, compute, transaction_type,
                    unit_cost, notes, reference_type, reference_id,
                    created_by,
                )
        return self._apply_stock_change(
            conn, material_id, compute, transaction_type, unit_cost,
            notes, reference_type, reference_id, created_by,
        )

    def _apply_stock_change(self, conn, material_id, compute,
                            transaction_type, unit_cost, notes,
                            reference_type, reference_id, created_by):
        if transaction_type not in TRANSACTION_TYPES:
            raise ValidationError(
                f"unknown transaction_type {transaction_type!r}"
            )
        material = self.require_material(conn, material_id)
        quantity = compute(material)
        if not isinstance(quantity, int) or isinstance(quantity, bool):
            raise ValidationError("quantity must be an integer")

        sign = TRANSACTION_SIGNS[transaction_type]
        if quantity == 0:
            raise ValidationError(f"{transaction_type} quantity cannot be zero")
        if sign and (quantity > 0) != (sign > 0):
            direction = "positive" if sign > 0 else "negative"
            raise ValidationError(
                f"{transaction_type} quantity must be {direction}"
            )

        previous_stock = material.current_stock
        new_stock = previous_stock + quantity
        if new_stock < 0:
            logger.warning(
                f"Rejected {transaction_type} of {quantity} on material "
                f"{material_id}: only {previous_stock} on hand"
            )
            if transaction_type == "usage":
                raise InsufficientStockError(previous_stock, -quantity)
            raise NegativeStockError(previous_stock, quantity)
        if material.is_tool and new_stock > 1:
            raise ValidationError("tools can only have stock of 0 or 1")

        cursor = conn.execute("""
            UPDATE materials
            SET current_stock = ?, version = version + 1
            WHERE id = ? AND version = ?
        """, (new_stock, material_id, material.version))
        if cursor.rowcount != 1:
            raise ConcurrentModificationError("Material", material_id)

        total_cost = quantity * unit_cost if unit_cost is not None else None
        cursor = conn.execute("""
            INSERT INTO material_transactions
                (material_id, transaction_type, quantity, unit_cost,
                 total_cost, previous_stock, new_stock, reference_type,
                 reference_id, notes, created_by)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            material_id, transaction_type, quantity, unit_cost, total_cost,
            previous_stock, new_stock, reference_type,
            None if reference_id is None else str(reference_id),
            notes, created_by,
        ))
        row = conn.execute(
            self._TRANSACTIONS_SELECT + " WHERE mt.id = ?",
            (cursor.lastrowid,),
        ).fetchone()
        logger.info(
            f"{transaction_type} {quantity:+d} on material {material_id}: "
            f"{previous_stock} -> {new_stock}"
        )
        return MaterialTransaction(**dict(row))

    def record_transaction(
        self,
        material_id: int,
        transaction_type: str,
        quantity: int,
        unit_cost: Optional[float] = None,
        notes: str = "",
        reference_type: Optional[str] = None,
        reference_id=None,
        created_by: Optional[str] = None,
        conn=None,
    ) -> MaterialTransaction:
        """Record a stock movement; every type moves the balance here.

        ``quantity`` is signed: purchases and returns are positive, usage
        is negative, adjustments go either way.
        """
        errors = []
        if not isinstance(quantity, int) or isinstance(quantity, bool):
            errors.append("quantity must be an integer")
        elif abs(quantity) > MAX_AMOUNT:
            errors.append("quantity is too large")
        _check_amount(errors, "unit_cost", unit_cost)
        if reference_type is not None and reference_type not in REFERENCE_TYPES:
            errors.append(f"unknown reference_type {reference_type!r}")
        if errors:
            raise ValidationError(errors)

        return self.mutate_stock(
            material_id, lambda m: quantity, transaction_type,
            unit_cost=unit_cost, notes=notes,
            reference_type=reference_type, reference_id=reference_id,
            created_by=created_by, conn=conn,
        )

    def adjust_stock(self, material_id: int, delta: int, reason: str,
                     unit_cost: Optional[float] = None,
                     created_by: Optional[str] = None) -> Material:
        """Apply a manual correction and return the updated material."""
        errors = []
        if not reason or not reason.strip():
            errors.append("reason is required")
        elif len(reason) > MAX_REASON_LENGTH:
            errors.append(
                f"reason must be less than {MAX_REASON_LENGTH} characters"
            )
        if errors:
            raise ValidationError(errors)

        with self.db.get_connection(immediate=True) as conn:
            self.record_transaction(
                material_id, "adjustment", delta, unit_cost=unit_cost,
                notes=reason.strip(), reference_type="manual_adjustment",
                created_by=created_by, conn=conn,
            )
            return self.require_material(conn, material_id)

    def get_material_transactions(self, material_id: int,
                                  limit: Optional[int] = None
                                  ) -> list[MaterialTransaction]:
        """Ledger rows for one material, newest first."""
        if limit is None:
            from fieldstock.config import Config
            limit = Config.TRANSACTION_HISTORY_LIMIT
        rows = self.db.execute(
            self._TRANSACTIONS_SELECT + """
            WHERE mt.material_id = ?
            ORDER BY mt.created_at DESC, mt.id DESC
            LIMIT ?
        """, (material_id, limit))
        return [MaterialTransaction(**dict(r)) for r in rows]

    # ── Tool status ─────────────────────────────────────────────

    def transition_tool_status(self, material_id: int,
                               from_statuses: list[str], to_status: str,
                               conn=None, **fields) -> bool:
        """Compare-and-swap a tool's status.

        The write applies only if the tool currently holds one of
        ``from_statuses``; returns whether it did. Extra keyword fields
        (assignment and maintenance columns) are written in the same
        statement.
        """
        if to_status not in TOOL_STATUSES:
            raise ValidationError(f"unknown tool_status {to_status!r}")
        unknown = sorted(set(fields) - _TOOL_STATUS_FIELDS)
        if unknown:
            raise ValidationError(
                f"cannot set {', '.join(unknown)} with a status change"
            )

        assignments = ", ".join(
            ["tool_status = ?"] + [f"{name} = ?" for name in fields]
        )
        placeholders = ", ".join("?" for _ in from_statuses)
        sql = (
            f"UPDATE materials SET {assignments}, version = version + 1 "
            f"WHERE id = ? AND is_tool = 1 "
            f"AND tool_status IN ({placeholders})"
        )
        params = ((to_status,) + tuple(fields.values())
                  + (material_id,) + tuple(from_statuses))

        if conn is None:
            with self.db.get_connection(immediate=True) as own_conn:
                applied = own_conn.execute(sql, params).rowcount == 1
        else:
            applied = conn.execute(sql, params).rowcount == 1

        if applied:
            logger.info(f"Tool {material_id} status -> {to_status}")
        return applied

    # ── Summaries ───────────────────────────────────────────────

    def get_inventory_summary(self) -> InventorySummary:
        rows = self.db.execute("""
            SELECT category, current_stock, unit_cost, min_stock
            FROM materials WHERE is_active = 1
        """)
        summary = InventorySummary(total_materials=len(rows))
        categories: dict[str, CategorySummary] = {}

        for r in rows:
            value = r["current_stock"] * r["unit_cost"]
            summary.total_value += value
            if r["current_stock"] == 0:
                summary.out_of_stock_count += 1
            elif r["current_stock"] <= r["min_stock"]:
                summary.low_stock_count += 1

            cat = categories.setdefault(
                r["category"], CategorySummary(category=r["category"])
            )
            cat.count += 1
            cat.total_value += value

        summary.categories = [categories[k] for k in sorted(categories)]
        return summary

    def get_stock_alerts(self) -> list[StockAlert]:
        """Classify each active material: out of stock, low, or reorder.

        The checks run in that order and the first match wins, so a
        material under both thresholds reports once as low stock.
        """
        rows = self.db.execute("""
            SELECT id, name, current_stock, min_stock, reorder_point
            FROM materials
            WHERE is_active = 1
              AND (current_stock = 0
                   OR current_stock <= min_stock
                   OR current_stock <= reorder_point)
            ORDER BY current_stock, name
        """)
        alerts = []
        for r in rows:
            if r["current_stock"] == 0:
                alert_type = ALERT_OUT_OF_STOCK
            elif r["current_stock"] <= r["min_stock"]:
                alert_type = ALERT_LOW_STOCK
            elif r["current_stock"] <= r["reorder_point"]:
                alert_type = ALERT_REORDER_NEEDED
            else:
                continue
            alerts.append(StockAlert(
                material_id=r["id"],
                material_name=r["name"],
                current_stock=r["current_stock"],
                min_stock=r["min_stock"],
                reorder_point=r["reorder_point"],
                alert_type=alert_type,
                severity=ALERT_SEVERITY[alert_type],
            ))
        return alerts
