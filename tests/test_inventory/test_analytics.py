"""Tests for inventory analytics rollups."""

import logging
from datetime import datetime, timedelta

import pytest

from fieldstock.errors import AnalyticsUnavailableError, StorageError
from fieldstock.inventory.analytics import InventoryAnalytics

NOW = datetime(2025, 6, 2, 9, 30, 0)


class TestMaterialCategories:
    def test_distinct_sorted_active(self, repo, make_material):
        make_material(name="A", category="Wire")
        make_material(name="B", category="Boxes")
        make_material(name="C", category="Wire")
        gone = make_material(name="D", category="Lighting")
        repo.stock.delete_material(gone.id)
        assert repo.analytics.get_material_categories() == ["Boxes", "Wire"]

    def test_empty(self, repo):
        assert repo.analytics.get_material_categories() == []


class TestToolUtilization:
    def test_rates_from_history(self, repo, make_tool):
        busy = make_tool(name="Busy")
        idle = make_tool(name="Idle")
        first = repo.tools.checkout_tool(busy.id, "Ann")
        repo.tools.checkin_tool(first.id)
        repo.tools.checkout_tool(busy.id, "Bob")

        stats = {u.material_name: u for u in
                 repo.analytics.get_tool_utilization()}
        assert stats["Busy"].total_assignments == 2
        assert stats["Busy"].active_assignments == 1
        assert stats["Busy"].utilization_rate == 0.5
        assert stats["Idle"].total_assignments == 0
        assert stats["Idle"].utilization_rate == 0.0
        assert idle.id == stats["Idle"].material_id

    def test_materials_excluded(self, repo, make_material):
        make_material()
        assert repo.analytics.get_tool_utilization() == []

    def test_external_source_overrides_rate(self, db, make_tool):
        tool = make_tool()
        analytics = InventoryAnalytics(
            db, utilization_source=lambda: {tool.id: 0.75}
        )
        [u] = analytics.get_tool_utilization()
        assert u.utilization_rate == 0.75

    def test_failing_source_is_reported(self, db, make_tool, caplog):
        make_tool()

        def broken():
            raise ConnectionError("history service down")

        analytics = InventoryAnalytics(db, utilization_source=broken)
        with caplog.at_level(logging.WARNING):
            with pytest.raises(AnalyticsUnavailableError) as exc:
                analytics.get_tool_utilization()
        assert isinstance(exc.value, StorageError)
        assert exc.value.transient is True
        assert "history service down" in str(exc.value)
        assert "utilization source failed" in caplog.text


class TestMaintenanceStats:
    def test_counts(self, repo, make_tool):
        a, b, c, d, e = (make_tool(name=f"T{i}") for i in range(5))
        tools = repo.tools
        tools.schedule_tool_maintenance(a.id, NOW + timedelta(days=3))
        tools.schedule_tool_maintenance(b.id, NOW - timedelta(days=3))
        started = tools.schedule_tool_maintenance(c.id, NOW)
        tools.start_tool_maintenance(started.id)
        done1 = tools.schedule_tool_maintenance(d.id, NOW - timedelta(days=9))
        tools.complete_tool_maintenance(done1.id, cost=40.0, now=NOW)
        done2 = tools.schedule_tool_maintenance(e.id, NOW - timedelta(days=9))
        tools.complete_tool_maintenance(done2.id, cost=20.0, now=NOW)
        dropped = tools.schedule_tool_maintenance(a.id, NOW)
        tools.cancel_tool_maintenance(dropped.id)

        stats = repo.analytics.get_maintenance_stats(now=NOW)
        assert stats.scheduled == 1
        assert stats.overdue == 1
        assert stats.in_progress == 1
        assert stats.completed == 2
        assert stats.cancelled == 1
        assert stats.average_cost == 30.0
        assert stats.completion_rate == 50.0

    def test_empty(self, repo):
        stats = repo.analytics.get_maintenance_stats(now=NOW)
        assert stats.completed == 0
        assert stats.average_cost == 0.0
        assert stats.completion_rate == 0.0


class TestJobCostReport:
    def test_report(self, repo, make_material, make_tool):
        a = make_material(name="A", current_stock=10, unit_cost=1.25)
        b = make_material(name="B", current_stock=10, unit_cost=4.0)
        drill = make_tool()
        repo.job_materials.add_material_to_job("J-5", a.id, 4)
        repo.job_materials.add_material_to_job("J-5", b.id, 2)
        repo.tools.assign_tool_to_job("J-5", drill.id)

        report = repo.analytics.get_job_cost_report("J-5")
        assert report == {
            "job_id": "J-5",
            "line_count": 2,
            "total_quantity": 6,
            "material_cost": 13.0,
            "tools_assigned": 1,
        }

    def test_unknown_job(self, repo):
        report = repo.analytics.get_job_cost_report(77)
        assert report["job_id"] == "77"
        assert report["line_count"] == 0
        assert report["material_cost"] == 0.0
