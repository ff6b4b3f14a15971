"""Read-only rollups over materials, tool history and job allocations."""

import logging
from datetime import datetime
from typing import Callable, Optional

from fieldstock.database.connection import DatabaseConnection
from fieldstock.database.models import MaintenanceStats, ToolUtilization
from fieldstock.errors import AnalyticsUnavailableError
from fieldstock.inventory.job_materials import job_key
from fieldstock.utils.formatters import now_timestamp

logger = logging.getLogger(__name__)

# Returns {material_id: utilization_rate} from some external history store
UtilizationSource = Callable[[], dict]


class InventoryAnalytics:
    """Aggregates computed on demand. Nothing is cached."""

    def __init__(self, db: DatabaseConnection,
                 utilization_source: Optional[UtilizationSource] = None):
        self.db = db
        self.utilization_source = utilization_source

    def get_material_categories(self) -> list[str]:
        rows = self.db.execute("""
            SELECT DISTINCT category FROM materials
            WHERE is_active = 1 AND category != ''
            ORDER BY category
        """)
        return [r["category"] for r in rows]

    def get_tool_utilization(self) -> list[ToolUtilization]:
        """Assignment counts per active tool with their utilization rate.

        The rate is active / total assignments, or 0.0 for a tool that has
        never been checked out. When an external source is configured its
        rates replace the computed ones.
        """
        rows = self.db.execute("""
            SELECT m.id, m.name,
                   COUNT(ta.id) AS total_assignments,
                   COALESCE(SUM(CASE WHEN ta.status = 'active'
                                     THEN 1 ELSE 0 END), 0)
                       AS active_assignments
            FROM materials m
            LEFT JOIN tool_assignments ta ON ta.material_id = m.id
            WHERE m.is_tool = 1 AND m.is_active = 1
            GROUP BY m.id
            ORDER BY m.name, m.id
        """)

        external = None
        if self.utilization_source is not None:
            try:
                external = self.utilization_source()
            except Exception as e:
                logger.warning(f"Tool utilization source failed: {e}")
                raise AnalyticsUnavailableError(
                    f"tool utilization is unavailable: {e}"
                ) from e

        results = []
        for r in rows:
            total = r["total_assignments"]
            active = r["active_assignments"]
            rate = active / total if total else 0.0
            if external is not None and r["id"] in external:
                rate = float(external[r["id"]])
            results.append(ToolUtilization(
                material_id=r["id"],
                material_name=r["name"],
                total_assignments=total,
                active_assignments=active,
                utilization_rate=rate,
            ))
        return results

    def get_maintenance_stats(self, now: Optional[datetime] = None
                              ) -> MaintenanceStats:
        """Counts by status. Scheduled work past its date counts as overdue."""
        rows = self.db.execute("""
            SELECT
                COALESCE(SUM(CASE WHEN status = 'scheduled'
                                   AND scheduled_date >= ? THEN 1 END), 0)
                    AS scheduled,
                COALESCE(SUM(CASE WHEN status = 'scheduled'
                                   AND scheduled_date < ? THEN 1 END), 0)
                    AS overdue,
                COALESCE(SUM(CASE WHEN status = 'in_progress'
                                  THEN 1 END), 0) AS in_progress,
                COALESCE(SUM(CASE WHEN status = 'completed'
                                  THEN 1 END), 0) AS completed,
                COALESCE(SUM(CASE WHEN status = 'cancelled'
                                  THEN 1 END), 0) AS cancelled,
                AVG(CASE WHEN status = 'completed' THEN cost END)
                    AS average_cost
            FROM tool_maintenance
        """, (now_timestamp(now), now_timestamp(now)))
        r = rows[0]
        return MaintenanceStats(
            scheduled=r["scheduled"],
            in_progress=r["in_progress"],
            completed=r["completed"],
            cancelled=r["cancelled"],
            overdue=r["overdue"],
            average_cost=r["average_cost"] or 0.0,
        )

    def get_job_cost_report(self, job_id) -> dict:
        """Material cost rollup for one job."""
        key = job_key(job_id)
        rows = self.db.execute("""
            SELECT COUNT(*) AS line_count,
                   COALESCE(SUM(quantity_used), 0) AS total_quantity,
                   COALESCE(SUM(total_cost), 0) AS material_cost
            FROM job_materials WHERE job_id = ?
        """, (key,))
        tool_rows = self.db.execute("""
            SELECT COUNT(*) AS cnt FROM job_tools
            WHERE job_id = ? AND status = 'assigned'
        """, (key,))
        return {
            "job_id": key,
            "line_count": rows[0]["line_count"],
            "total_quantity": rows[0]["total_quantity"],
            "material_cost": float(rows[0]["material_cost"]),
            "tools_assigned": tool_rows[0]["cnt"],
        }
