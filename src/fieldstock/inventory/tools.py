"""Tool lifecycle: checkout/checkin, job assignment, and maintenance.

A tool is a material with ``is_tool = 1``. Its ``tool_status`` follows::

    available -> assigned -> available        (checkout / checkin)
    assigned  -> maintenance                  (checked in needing repair)
    available -> maintenance -> available     (maintenance started / done)
    any       -> lost -> available            (reported lost / checked in)
    any       -> retired                      (terminal)

Status writes go through ``StockLedger.transition_tool_status`` as
compare-and-swap updates; the partial unique index on active assignments
backs up the checkout path.
"""

import logging
import math
import sqlite3
from datetime import datetime, timedelta
from typing import Optional

from fieldstock.database.connection import DatabaseConnection
from fieldstock.database.models import (
    JobTool,
    MaintenanceDue,
    Material,
    ToolAssignment,
    ToolAvailability,
    ToolMaintenance,
)
from fieldstock.errors import (
    ConcurrentModificationError,
    DuplicateAssignmentError,
    InvalidOperationError,
    NotFoundError,
    ToolUnavailableError,
    ValidationError,
)
from fieldstock.inventory.job_materials import job_key
from fieldstock.inventory.stock_ledger import StockLedger
from fieldstock.utils.constants import (
    CHECKOUT_CONDITIONS,
    MAINTENANCE_EDITABLE_FIELDS,
    MAINTENANCE_TYPES,
    MAX_AMOUNT,
    MAX_NAME_LENGTH,
    REPAIR_CONDITIONS,
    RETURN_CONDITIONS,
)
from fieldstock.utils.formatters import (
    add_days,
    days_until,
    now_timestamp,
    parse_db_timestamp,
    to_db_timestamp,
)

logger = logging.getLogger(__name__)


def _timestamp(name: str, value, required: bool = False) -> Optional[str]:
    try:
        stamp = to_db_timestamp(value)
    except ValueError:
        raise ValidationError(f"{name} is not a valid date") from None
    if required and stamp is None:
        raise ValidationError(f"{name} is required")
    return stamp


def _check_person(name: str, value, required: bool = True) -> Optional[str]:
    text = (value or "").strip()
    if not text:
        if required:
            raise ValidationError(f"{name} is required")
        return None
    if len(text) > MAX_NAME_LENGTH:
        raise ValidationError(f"{name} is too long")
    return text


def _check_cost(cost):
    if cost is None:
        return
    if not isinstance(cost, (int, float)) or isinstance(cost, bool):
        raise ValidationError("cost must be a number")
    if not math.isfinite(cost):
        raise ValidationError("cost must be a finite number")
    if cost < 0:
        raise ValidationError("cost cannot be negative")
    if cost > MAX_AMOUNT:
        raise ValidationError("cost is too high")


class ToolLifecycleManager:
    """Manages the per-tool state machine and its history tables."""

    _ASSIGNMENTS_SELECT = """
        SELECT ta.*, m.name AS material_name
        FROM tool_assignments ta
        JOIN materials m ON ta.material_id = m.id
    """

    _MAINTENANCE_SELECT = """
        SELECT tm.*, m.name AS material_name
        FROM tool_maintenance tm
        JOIN materials m ON tm.material_id = m.id
    """

    _JOB_TOOLS_SELECT = """
        SELECT jt.*, m.name AS material_name
        FROM job_tools jt
        JOIN materials m ON jt.material_id = m.id
    """

    def __init__(self, db: DatabaseConnection,
                 ledger: Optional[StockLedger] = None):
        self.db = db
        self.ledger = ledger or StockLedger(db)

    def _require_tool(self, conn, material_id: int) -> Material:
        material = self.ledger.require_material(conn, material_id)
        if not material.is_tool:
            raise InvalidOperationError(f"material {material_id} is not a tool")
        if not material.is_active:
            raise InvalidOperationError(f"tool {material_id} is inactive")
        return material

    def _fetch_assignment(self, conn, assignment_id: int
                          ) -> Optional[ToolAssignment]:
        row = conn.execute(
            self._ASSIGNMENTS_SELECT + " WHERE ta.id = ?", (assignment_id,)
        ).fetchone()
        return ToolAssignment(**dict(row)) if row else None

    def _require_maintenance(self, conn, maintenance_id: int
                             ) -> ToolMaintenance:
        row = conn.execute(
            self._MAINTENANCE_SELECT + " WHERE tm.id = ?", (maintenance_id,)
        ).fetchone()
        if not row:
            raise NotFoundError("Tool maintenance", maintenance_id)
        return ToolMaintenance(**dict(row))

    def _require_job_tool(self, conn, job_tool_id: int) -> JobTool:
        row = conn.execute(
            self._JOB_TOOLS_SELECT + " WHERE jt.id = ?", (job_tool_id,)
        ).fetchone()
        if not row:
            raise NotFoundError("Job tool", job_tool_id)
        return JobTool(**dict(row))

    # ── Checkout / Checkin ──────────────────────────────────────

    def checkout_tool(
        self,
        material_id: int,
        assigned_to_name: str,
        expected_return_date=None,
        job_id=None,
        notes: str = "",
        condition_at_assignment: Optional[str] = None,
        assigned_by_name: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ToolAssignment:
        """Check an available tool out to a person."""
        assigned_to_name = _check_person("assigned_to_name", assigned_to_name)
        assigned_by_name = _check_person(
            "assigned_by_name", assigned_by_name, required=False
        )
        if condition_at_assignment is not None \
                and condition_at_assignment not in CHECKOUT_CONDITIONS:
            raise ValidationError(
                f"unknown condition_at_assignment {condition_at_assignment!r}"
            )
        expected = _timestamp("expected_return_date", expected_return_date)
        assigned_date = now_timestamp(now)
        job_id = None if job_id is None else job_key(job_id)

        with self.db.get_connection(immediate=True) as conn:
            material = self._require_tool(conn, material_id)
            swapped = self.ledger.transition_tool_status(
                material_id, ["available"], "assigned", conn=conn,
                assigned_to_name=assigned_to_name,
                assigned_date=assigned_date,
                expected_return_date=expected,
            )
            if not swapped:
                logger.warning(
                    f"Checkout of tool {material_id} refused: "
                    f"status is {material.tool_status}"
                )
                raise ToolUnavailableError(material_id, material.tool_status)

            try:
                cursor = conn.execute("""
                    INSERT INTO tool_assignments
                        (material_id, assigned_to_name, assigned_by_name,
                         assigned_date, expected_return_date, job_id,
                         status, condition_at_assignment, notes)
                    VALUES (?, ?, ?, ?, ?, ?, 'active', ?, ?)
                """, (
                    material_id, assigned_to_name, assigned_by_name,
                    assigned_date, expected, job_id,
                    condition_at_assignment, notes,
                ))
            except sqlite3.IntegrityError:
                raise ToolUnavailableError(material_id, "assigned") from None
            assignment = self._fetch_assignment(conn, cursor.lastrowid)

        logger.info(f"Tool {material_id} checked out to {assigned_to_name}")
        return assignment

    def checkin_tool(self, assignment_id: int,
                     condition_at_return: Optional[str] = None,
                     notes: Optional[str] = None,
                     now: Optional[datetime] = None) -> ToolAssignment:
        """Close an active checkout and put the tool back in service.

        The tool goes back to ``available``, or to ``maintenance`` when it
        comes back needing repair.
        """
        if condition_at_return is not None \
                and condition_at_return not in RETURN_CONDITIONS:
            raise ValidationError(
                f"unknown condition_at_return {condition_at_return!r}"
            )
        returned_at = now_timestamp(now)

        with self.db.get_connection(immediate=True) as conn:
            assignment = self._fetch_assignment(conn, assignment_id)
            if assignment is None:
                raise NotFoundError("Tool assignment", assignment_id)
            if not assignment.is_active:
                raise InvalidOperationError(
                    f"assignment {assignment_id} is already returned"
                )

            cursor = conn.execute("""
                UPDATE tool_assignments
                SET status = 'returned', actual_return_date = ?,
                    condition_at_return = ?, notes = COALESCE(?, notes)
                WHERE id = ? AND status = 'active'
            """, (returned_at, condition_at_return, notes, assignment_id))
            if cursor.rowcount != 1:
                raise ConcurrentModificationError(
                    "Tool assignment", assignment_id
                )

            needs_repair = condition_at_return in REPAIR_CONDITIONS
            fields = {
                "assigned_to_name": None,
                "assigned_date": None,
                "expected_return_date": None,
            }
            if condition_at_return:
                fields["tool_condition"] = (
                    "needs_repair" if needs_repair else condition_at_return
                )
            target = "maintenance" if needs_repair else "available"
            swapped = self.ledger.transition_tool_status(
                assignment.material_id, ["assigned", "lost"], target,
                conn=conn, **fields,
            )
            if not swapped:
                logger.warning(
                    f"Tool {assignment.material_id} was not marked assigned "
                    f"at checkin of assignment {assignment_id}"
                )
            returned = self._fetch_assignment(conn, assignment_id)

        logger.info(
            f"Tool {assignment.material_id} checked in "
            f"(assignment {assignment_id})"
        )
        return returned

    def get_tool_assignment(self, assignment_id: int
                            ) -> Optional[ToolAssignment]:
        with self.db.get_connection() as conn:
            return self._fetch_assignment(conn, assignment_id)

    def get_tool_assignments(self, status: Optional[str] = None,
                             assigned_to: Optional[str] = None
                             ) -> list[ToolAssignment]:
        where = []
        params: list = []
        if status:
            where.append("ta.status = ?")
            params.append(status)
        if assigned_to:
            where.append("ta.assigned_to_name LIKE ?")
            params.append(f"%{assigned_to}%")
        clause = f" WHERE {' AND '.join(where)}" if where else ""
        rows = self.db.execute(
            self._ASSIGNMENTS_SELECT + clause
            + " ORDER BY ta.assigned_date DESC, ta.id DESC",
            tuple(params),
        )
        return [ToolAssignment(**dict(r)) for r in rows]

    def get_overdue_tool_returns(self, now: Optional[datetime] = None
                                 ) -> list[ToolAssignment]:
        """Active checkouts past their expected return, soonest due first."""
        rows = self.db.execute(self._ASSIGNMENTS_SELECT + """
            WHERE ta.status = 'active'
              AND ta.expected_return_date IS NOT NULL
              AND ta.expected_return_date < ?
            ORDER BY ta.expected_return_date ASC, ta.id
        """, (now_timestamp(now),))
        return [ToolAssignment(**dict(r)) for r in rows]

    # ── Job tools ───────────────────────────────────────────────

    def assign_tool_to_job(self, job_id, material_id: int,
                           assigned_by_name: Optional[str] = None,
                           notes: str = "",
                           now: Optional[datetime] = None) -> JobTool:
        """Put a tool on a job. Independent of personnel checkout."""
        job_id = job_key(job_id)
        assigned_by_name = _check_person(
            "assigned_by_name", assigned_by_name, required=False
        )

        with self.db.get_connection(immediate=True) as conn:
            material = self._require_tool(conn, material_id)
            if material.tool_status == "retired":
                raise ToolUnavailableError(material_id, material.tool_status)

            existing = conn.execute(
                "SELECT id FROM job_tools WHERE job_id = ? "
                "AND material_id = ? AND status = 'assigned'",
                (job_id, material_id),
            ).fetchone()
            if existing:
                raise DuplicateAssignmentError(job_id, material_id)

            try:
                cursor = conn.execute("""
                    INSERT INTO job_tools
                        (job_id, material_id, assigned_by_name,
                         assigned_date, status, notes)
                    VALUES (?, ?, ?, ?, 'assigned', ?)
                """, (
                    job_id, material_id, assigned_by_name,
                    now_timestamp(now), notes,
                ))
            except sqlite3.IntegrityError:
                raise DuplicateAssignmentError(job_id, material_id) from None
            job_tool = self._require_job_tool(conn, cursor.lastrowid)

        logger.info(f"Tool {material_id} assigned to job {job_id}")
        return job_tool

    def return_job_tool(self, job_tool_id: int,
                        now: Optional[datetime] = None) -> JobTool:
        with self.db.get_connection(immediate=True) as conn:
            job_tool = self._require_job_tool(conn, job_tool_id)
            if job_tool.status != "assigned":
                raise InvalidOperationError(
                    f"job tool {job_tool_id} is already returned"
                )
            conn.execute("""
                UPDATE job_tools SET returned_date = ?, status = 'returned'
                WHERE id = ?
            """, (now_timestamp(now), job_tool_id))
            return self._require_job_tool(conn, job_tool_id)

    def get_job_tools(self, job_id) -> list[JobTool]:
        rows = self.db.execute(self._JOB_TOOLS_SELECT + """
            WHERE jt.job_id = ?
            ORDER BY jt.assigned_date DESC, jt.id DESC
        """, (job_key(job_id),))
        return [JobTool(**dict(r)) for r in rows]

    # ── Maintenance ─────────────────────────────────────────────

    def schedule_tool_maintenance(
        self,
        material_id: int,
        scheduled_date,
        notes: str = "",
        maintenance_type: str = "scheduled",
        technician_name: Optional[str] = None,
        cost: Optional[float] = None,
    ) -> ToolMaintenance:
        """Book a maintenance event. The tool stays in its current status."""
        scheduled = _timestamp("scheduled_date", scheduled_date, required=True)
        if maintenance_type not in MAINTENANCE_TYPES:
            raise ValidationError(
                f"unknown maintenance_type {maintenance_type!r}"
            )
        _check_cost(cost)
        technician_name = _check_person(
            "technician_name", technician_name, required=False
        )

        with self.db.get_connection(immediate=True) as conn:
            material = self._require_tool(conn, material_id)
            if material.tool_status == "retired":
                raise InvalidOperationError(f"tool {material_id} is retired")
            cursor = conn.execute("""
                INSERT INTO tool_maintenance
                    (material_id, maintenance_type, scheduled_date,
                     technician_name, cost, notes, status)
                VALUES (?, ?, ?, ?, ?, ?, 'scheduled')
            """, (
                material_id, maintenance_type, scheduled, technician_name,
                cost, notes,
            ))
            return self._require_maintenance(conn, cursor.lastrowid)

    def start_tool_maintenance(self, maintenance_id: int) -> ToolMaintenance:
        """Begin scheduled work; the tool leaves service."""
        with self.db.get_connection(immediate=True) as conn:
            event = self._require_maintenance(conn, maintenance_id)
            if event.status != "scheduled":
                raise InvalidOperationError(
                    f"maintenance {maintenance_id} is {event.status}"
                )
            material = self._require_tool(conn, event.material_id)
            swapped = self.ledger.transition_tool_status(
                event.material_id, ["available", "maintenance"],
                "maintenance", conn=conn,
            )
            if not swapped:
                raise ToolUnavailableError(
                    event.material_id, material.tool_status
                )
            conn.execute(
                "UPDATE tool_maintenance SET status = 'in_progress' "
                "WHERE id = ?",
                (maintenance_id,),
            )
            return self._require_maintenance(conn, maintenance_id)

    def complete_tool_maintenance(
        self,
        maintenance_id: int,
        cost: Optional[float] = None,
        notes: Optional[str] = None,
        parts_used: Optional[str] = None,
        technician_name: Optional[str] = None,
        completed_date=None,
        now: Optional[datetime] = None,
    ) -> ToolMaintenance:
        """Finish maintenance, roll the tool's schedule forward, and
        return it to service if the work had taken it out."""
        _check_cost(cost)
        technician_name = _check_person(
            "technician_name", technician_name, required=False
        )
        completed = (_timestamp("completed_date", completed_date)
                     or now_timestamp(now))

        with self.db.get_connection(immediate=True) as conn:
            event = self._require_maintenance(conn, maintenance_id)
            if event.status not in ("scheduled", "in_progress"):
                raise InvalidOperationError(
                    f"maintenance {maintenance_id} is {event.status}"
                )
            material = self._require_tool(conn, event.material_id)

            next_due = None
            if material.maintenance_interval_days:
                next_due = add_days(
                    completed, material.maintenance_interval_days
                )

            conn.execute("""
                UPDATE tool_maintenance
                SET status = 'completed', completed_date = ?,
                    cost = COALESCE(?, cost),
                    notes = COALESCE(?, notes),
                    parts_used = COALESCE(?, parts_used),
                    technician_name = COALESCE(?, technician_name),
                    next_maintenance_date = ?
                WHERE id = ?
            """, (
                completed, cost, notes, parts_used, technician_name,
                next_due, maintenance_id,
            ))

            fields = {"last_maintenance_date": completed}
            if next_due:
                fields["next_maintenance_date"] = next_due
            target = ("available" if material.tool_status == "maintenance"
                      else material.tool_status)
            swapped = self.ledger.transition_tool_status(
                event.material_id, [material.tool_status], target,
                conn=conn, **fields,
            )
            if not swapped:
                raise ConcurrentModificationError("Material", event.material_id)
            completed_event = self._require_maintenance(conn, maintenance_id)

        logger.info(
            f"Maintenance {maintenance_id} completed on tool "
            f"{event.material_id}; next due {next_due}"
        )
        return completed_event

    def cancel_tool_maintenance(self, maintenance_id: int) -> ToolMaintenance:
        with self.db.get_connection(immediate=True) as conn:
            event = self._require_maintenance(conn, maintenance_id)
            if event.status not in ("scheduled", "in_progress"):
                raise InvalidOperationError(
                    f"maintenance {maintenance_id} is {event.status}"
                )
            if event.status == "in_progress":
                self.ledger.transition_tool_status(
                    event.material_id, ["maintenance"], "available",
                    conn=conn,
                )
            conn.execute(
                "UPDATE tool_maintenance SET status = 'cancelled' "
                "WHERE id = ?",
                (maintenance_id,),
            )
            return self._require_maintenance(conn, maintenance_id)

    def update_tool_maintenance(self, maintenance_id: int,
                                **changes) -> ToolMaintenance:
        """Edit descriptive fields; status moves through start/complete/cancel."""
        locked = sorted(set(changes) - set(MAINTENANCE_EDITABLE_FIELDS))
        if locked:
            raise ValidationError([
                f"{name} cannot be changed through update_tool_maintenance"
                for name in locked
            ])
        values = dict(changes)
        if "maintenance_type" in values \
                and values["maintenance_type"] not in MAINTENANCE_TYPES:
            raise ValidationError(
                f"unknown maintenance_type {values['maintenance_type']!r}"
            )
        if "scheduled_date" in values:
            values["scheduled_date"] = _timestamp(
                "scheduled_date", values["scheduled_date"], required=True
            )
        if "cost" in values:
            _check_cost(values["cost"])

        with self.db.get_connection(immediate=True) as conn:
            self._require_maintenance(conn, maintenance_id)
            if values:
                assignments = ", ".join(f"{name} = ?" for name in values)
                conn.execute(
                    f"UPDATE tool_maintenance SET {assignments} WHERE id = ?",
                    tuple(values.values()) + (maintenance_id,),
                )
            return self._require_maintenance(conn, maintenance_id)

    def get_tool_maintenance(self, material_id: Optional[int] = None
                             ) -> list[ToolMaintenance]:
        if material_id is not None:
            rows = self.db.execute(self._MAINTENANCE_SELECT + """
                WHERE tm.material_id = ?
                ORDER BY tm.scheduled_date DESC, tm.id DESC
            """, (material_id,))
        else:
            rows = self.db.execute(
                self._MAINTENANCE_SELECT
                + " ORDER BY tm.scheduled_date DESC, tm.id DESC"
            )
        return [ToolMaintenance(**dict(r)) for r in rows]

    def get_tools_due_for_maintenance(self,
                                      horizon_days: Optional[int] = None,
                                      now: Optional[datetime] = None
                                      ) -> list[MaintenanceDue]:
        """Tools whose next maintenance falls in [now, now + horizon]."""
        if horizon_days is None:
            from fieldstock.config import Config
            horizon_days = Config.MAINTENANCE_HORIZON_DAYS
        if not isinstance(horizon_days, int) or isinstance(horizon_days, bool) \
                or horizon_days < 0:
            raise ValidationError("horizon_days must be a non-negative integer")

        now = now or datetime.now()
        start = to_db_timestamp(now)
        end = to_db_timestamp(now + timedelta(days=horizon_days))
        rows = self.db.execute("""
            SELECT id, name, next_maintenance_date FROM materials
            WHERE is_tool = 1 AND is_active = 1
              AND COALESCE(tool_status, '') != 'retired'
              AND next_maintenance_date IS NOT NULL
              AND next_maintenance_date BETWEEN ? AND ?
            ORDER BY next_maintenance_date ASC, id
        """, (start, end))
        return [
            MaintenanceDue(
                material_id=r["id"],
                material_name=r["name"],
                next_maintenance_date=r["next_maintenance_date"],
                days_until_maintenance=days_until(
                    parse_db_timestamp(r["next_maintenance_date"]), now
                ),
            )
            for r in rows
        ]

    # ── Retirement & availability ───────────────────────────────

    def report_tool_lost(self, material_id: int) -> Material:
        """Flag a tool as lost. An open checkout stays open so the tool can
        be checked in if it turns up."""
        with self.db.get_connection(immediate=True) as conn:
            material = self._require_tool(conn, material_id)
            if material.tool_status == "lost":
                return material
            if material.tool_status == "retired":
                raise InvalidOperationError(f"tool {material_id} is retired")
            swapped = self.ledger.transition_tool_status(
                material_id, [material.tool_status], "lost", conn=conn,
            )
            if not swapped:
                raise ConcurrentModificationError("Material", material_id)
            logger.warning(f"Tool {material_id} reported lost")
            return self.ledger.require_material(conn, material_id)

    def retire_tool(self, material_id: int) -> Material:
        """Take a tool out of service for good. Retiring twice is a no-op."""
        with self.db.get_connection(immediate=True) as conn:
            material = self._require_tool(conn, material_id)
            if material.tool_status == "retired":
                return material
            # A lost tool can still have an open checkout
            open_checkout = conn.execute(
                "SELECT id FROM tool_assignments "
                "WHERE material_id = ? AND status = 'active'",
                (material_id,),
            ).fetchone()
            if material.tool_status == "assigned" or open_checkout:
                raise InvalidOperationError(
                    f"tool {material_id} is checked out; check it in first"
                )
            swapped = self.ledger.transition_tool_status(
                material_id, [material.tool_status], "retired",
                conn=conn, tool_condition="retired",
            )
            if not swapped:
                raise ConcurrentModificationError("Material", material_id)
            return self.ledger.require_material(conn, material_id)

    def get_tool_availability(self, now: Optional[datetime] = None
                              ) -> list[ToolAvailability]:
        now = now or datetime.now()
        rows = self.db.execute("""
            SELECT * FROM materials
            WHERE is_tool = 1 AND is_active = 1
            ORDER BY name
        """)
        tools = []
        for r in rows:
            material = Material(**dict(r))
            next_due = parse_db_timestamp(material.next_maintenance_date)
            tools.append(ToolAvailability(
                id=material.id,
                name=material.name,
                category=material.category,
                serial_number=material.serial_number or "",
                tool_condition=material.tool_condition,
                tool_status=material.tool_status,
                assigned_to_name=material.assigned_to_name,
                assigned_date=material.assigned_date,
                expected_return_date=material.expected_return_date,
                is_available=material.is_available,
                days_until_maintenance=(
                    days_until(next_due, now) if next_due else None
                ),
            ))
        return tools
