"""Job material allocations: binds stock to jobs at a fixed unit cost."""

import logging
import sqlite3
from typing import Optional

from fieldstock.database.connection import DatabaseConnection
from fieldstock.database.models import JobMaterial, Material
from fieldstock.errors import (
    DuplicateAllocationError,
    InsufficientStockError,
    InvalidOperationError,
    NotFoundError,
    ValidationError,
)
from fieldstock.inventory.stock_ledger import StockLedger
from fieldstock.utils.constants import MAX_AMOUNT

logger = logging.getLogger(__name__)


def job_key(job_id) -> str:
    """Jobs live outside this store; their ids are kept as text."""
    key = "" if job_id is None else str(job_id).strip()
    if not key:
        raise ValidationError("job_id is required")
    return key


def _check_quantity(quantity) -> int:
    if not isinstance(quantity, int) or isinstance(quantity, bool):
        raise ValidationError("quantity_used must be an integer")
    if quantity <= 0:
        raise ValidationError("quantity_used must be greater than 0")
    if quantity > MAX_AMOUNT:
        raise ValidationError("quantity_used is too high")
    return quantity


class JobMaterialAllocator:
    """Attaches materials to jobs, consuming stock through the ledger.

    Allocating writes a ``usage`` transaction immediately. Removing an
    allocation writes a ``return`` transaction when restocking is on.
    """

    _SELECT = """
        SELECT jm.*, m.name AS material_name
        FROM job_materials jm
        JOIN materials m ON jm.material_id = m.id
    """

    def __init__(self, db: DatabaseConnection,
                 ledger: Optional[StockLedger] = None,
                 restock_on_removal: Optional[bool] = None):
        self.db = db
        self.ledger = ledger or StockLedger(db)
        self._restock_on_removal = restock_on_removal

    @property
    def restock_on_removal(self) -> bool:
        if self._restock_on_removal is None:
            from fieldstock.config import Config
            return Config.RESTOCK_ON_REMOVAL
        return self._restock_on_removal

    def _fetch(self, conn, job_material_id: int) -> Optional[JobMaterial]:
        row = conn.execute(
            self._SELECT + " WHERE jm.id = ?", (job_material_id,)
        ).fetchone()
        if not row:
            return None
        job_material = JobMaterial(**dict(row))
        job_material.material = self.ledger.require_material(
            conn, job_material.material_id
        )
        return job_material

    def _require(self, conn, job_material_id: int) -> JobMaterial:
        job_material = self._fetch(conn, job_material_id)
        if job_material is None:
            raise NotFoundError("Job material", job_material_id)
        return job_material

    # ── Queries ─────────────────────────────────────────────────

    def get_job_material(self, job_material_id: int) -> Optional[JobMaterial]:
        with self.db.get_connection() as conn:
            return self._fetch(conn, job_material_id)

    def get_job_materials(self, job_id) -> list[JobMaterial]:
        """All allocations for a job, newest first, with the material embedded."""
        with self.db.get_connection() as conn:
            rows = conn.execute(self._SELECT + """
                WHERE jm.job_id = ?
                ORDER BY jm.created_at DESC, jm.id DESC
            """, (job_key(job_id),)).fetchall()
            allocations = [JobMaterial(**dict(r)) for r in rows]
            if not allocations:
                return []
            ids = sorted({a.material_id for a in allocations})
            placeholders = ", ".join("?" for _ in ids)
            materials = {
                r["id"]: Material(**dict(r))
                for r in conn.execute(
                    f"SELECT * FROM materials WHERE id IN ({placeholders})",
                    tuple(ids),
                ).fetchall()
            }
        for allocation in allocations:
            allocation.material = materials.get(allocation.material_id)
        return allocations

    def get_job_material_cost(self, job_id) -> float:
        rows = self.db.execute("""
            SELECT COALESCE(SUM(total_cost), 0) AS total
            FROM job_materials WHERE job_id = ?
        """, (job_key(job_id),))
        return rows[0]["total"] if rows else 0.0

    # ── Allocation ──────────────────────────────────────────────

    def add_material_to_job(self, job_id, material_id: int,
                            quantity_used: int, notes: str = "",
                            created_by: Optional[str] = None) -> JobMaterial:
        """Allocate stock to a job, snapshotting the current unit cost."""
        job_id = job_key(job_id)
        _check_quantity(quantity_used)

        with self.db.get_connection(immediate=True) as conn:
            material = self.ledger.require_material(conn, material_id)
            if not material.is_active:
                raise InvalidOperationError(
                    f"material {material_id} is inactive"
                )
            if material.is_tool:
                raise InvalidOperationError(
                    f"material {material_id} is a tool; assign it to the "
                    f"job instead of consuming it"
                )

            existing = conn.execute(
                "SELECT id FROM job_materials "
                "WHERE job_id = ? AND material_id = ?",
                (job_id, material_id),
            ).fetchone()
            if existing:
                raise DuplicateAllocationError(job_id, material_id)

            if material.current_stock < quantity_used:
                raise InsufficientStockError(
                    material.current_stock, quantity_used
                )

            unit_cost = material.unit_cost
            try:
                cursor = conn.execute("""
                    INSERT INTO job_materials
                        (job_id, material_id, quantity_used, unit_cost,
                         total_cost, notes)
                    VALUES (?, ?, ?, ?, ?, ?)
                """, (
                    job_id, material_id, quantity_used, unit_cost,
                    quantity_used * unit_cost, notes,
                ))
            except sqlite3.IntegrityError:
                raise DuplicateAllocationError(job_id, material_id) from None

            self.ledger.mutate_stock(
                material_id, lambda m: -quantity_used, "usage",
                unit_cost=unit_cost, notes=f"Allocated to job {job_id}",
                reference_type="job", reference_id=job_id,
                created_by=created_by, conn=conn,
            )
            allocation = self._require(conn, cursor.lastrowid)

        logger.info(
            f"Allocated {quantity_used} of material {material_id} "
            f"to job {job_id}"
        )
        return allocation

    def update_job_material(self, job_material_id: int,
                            quantity_used: Optional[int] = None,
                            notes: Optional[str] = None,
                            created_by: Optional[str] = None) -> JobMaterial:
        """Change quantity or notes; cost stays on the original snapshot."""
        if quantity_used is not None:
            _check_quantity(quantity_used)

        with self.db.get_connection(immediate=True) as conn:
            current = self._require(conn, job_material_id)
            new_quantity = (current.quantity_used if quantity_used is None
                            else quantity_used)
            delta = new_quantity - current.quantity_used

            if delta > 0:
                self.ledger.mutate_stock(
                    current.material_id, lambda m: -delta, "usage",
                    unit_cost=current.unit_cost,
                    notes=f"Allocation increased on job {current.job_id}",
                    reference_type="job", reference_id=current.job_id,
                    created_by=created_by, conn=conn,
                )
            elif delta < 0:
                self.ledger.mutate_stock(
                    current.material_id, lambda m: -delta, "return",
                    unit_cost=current.unit_cost,
                    notes=f"Allocation reduced on job {current.job_id}",
                    reference_type="job", reference_id=current.job_id,
                    created_by=created_by, conn=conn,
                )

            conn.execute("""
                UPDATE job_materials
                SET quantity_used = ?, total_cost = ?, notes = ?
                WHERE id = ?
            """, (
                new_quantity, new_quantity * current.unit_cost,
                current.notes if notes is None else notes,
                job_material_id,
            ))
            return self._require(conn, job_material_id)

    def remove_material_from_job(self, job_material_id: int,
                                 created_by: Optional[str] = None):
        """Detach an allocation, returning its quantity to stock if enabled."""
        restock = self.restock_on_removal
        with self.db.get_connection(immediate=True) as conn:
            current = self._require(conn, job_material_id)
            conn.execute(
                "DELETE FROM job_materials WHERE id = ?", (job_material_id,)
            )
            if restock:
                self.ledger.mutate_stock(
                    current.material_id,
                    lambda m: current.quantity_used, "return",
                    unit_cost=current.unit_cost,
                    notes=f"Removed from job {current.job_id}",
                    reference_type="job", reference_id=current.job_id,
                    created_by=created_by, conn=conn,
                )
        logger.info(
            f"Removed material {current.material_id} from job "
            f"{current.job_id} (restocked: {restock})"
        )
