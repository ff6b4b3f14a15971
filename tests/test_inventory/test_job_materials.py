"""Tests for job material allocations."""

import pytest

from fieldstock.config import Config
from fieldstock.database.repository import Repository
from fieldstock.errors import (
    DuplicateAllocationError,
    InsufficientStockError,
    InvalidOperationError,
    NotFoundError,
    ValidationError,
)
from fieldstock.inventory.job_materials import JobMaterialAllocator, job_key


class TestJobKey:
    def test_int_becomes_text(self):
        assert job_key(1001) == "1001"

    def test_strips(self):
        assert job_key("  JOB-7 ") == "JOB-7"

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_empty_rejected(self, value):
        with pytest.raises(ValidationError, match="job_id"):
            job_key(value)


class TestAddMaterialToJob:
    def test_allocation_consumes_stock(self, repo, make_material):
        m = make_material(current_stock=10, unit_cost=2.50)
        jm = repo.job_materials.add_material_to_job("JOB-1", m.id, 4,
                                                    notes="kitchen")
        assert jm.job_id == "JOB-1"
        assert jm.quantity_used == 4
        assert jm.unit_cost == 2.50
        assert jm.total_cost == 10.0
        assert jm.material.current_stock == 6
        assert jm.material_name == "Wire Nuts"
        assert repo.stock.get_material(m.id).current_stock == 6

    def test_allocation_writes_usage_transaction(self, repo, make_material):
        m = make_material(current_stock=10)
        repo.job_materials.add_material_to_job(1001, m.id, 3,
                                               created_by="jose")
        t = repo.stock.get_material_transactions(m.id)[0]
        assert t.transaction_type == "usage"
        assert t.quantity == -3
        assert t.reference_type == "job"
        assert t.reference_id == "1001"
        assert t.created_by == "jose"

    def test_insufficient_stock_leaves_everything(self, repo, make_material):
        drill = make_material(name="Drill", current_stock=5, unit_cost=20)
        with pytest.raises(InsufficientStockError) as exc:
            repo.job_materials.add_material_to_job("job1", drill.id, 6)
        assert str(exc.value) == "insufficient stock: available 5, requested 6"
        assert exc.value.status_code == 409
        assert repo.stock.get_material(drill.id).current_stock == 5
        assert repo.job_materials.get_job_materials("job1") == []
        assert len(repo.stock.get_material_transactions(drill.id)) == 1

    def test_exact_stock_allowed(self, repo, make_material):
        m = make_material(current_stock=5)
        repo.job_materials.add_material_to_job("J", m.id, 5)
        assert repo.stock.get_material(m.id).current_stock == 0

    def test_duplicate_rejected(self, repo, make_material):
        m = make_material(current_stock=10)
        repo.job_materials.add_material_to_job("J", m.id, 2)
        with pytest.raises(DuplicateAllocationError):
            repo.job_materials.add_material_to_job("J", m.id, 1)
        assert repo.stock.get_material(m.id).current_stock == 8

    def test_same_material_on_two_jobs(self, repo, make_material):
        m = make_material(current_stock=10)
        repo.job_materials.add_material_to_job("J1", m.id, 2)
        repo.job_materials.add_material_to_job("J2", m.id, 2)
        assert repo.stock.get_material(m.id).current_stock == 6

    @pytest.mark.parametrize("qty", [0, -2, 1.5, True])
    def test_bad_quantity(self, repo, make_material, qty):
        m = make_material()
        with pytest.raises(ValidationError, match="quantity_used"):
            repo.job_materials.add_material_to_job("J", m.id, qty)

    def test_missing_material(self, repo):
        with pytest.raises(NotFoundError):
            repo.job_materials.add_material_to_job("J", 999, 1)

    def test_inactive_material(self, repo, make_material):
        m = make_material()
        repo.stock.delete_material(m.id)
        with pytest.raises(InvalidOperationError, match="inactive"):
            repo.job_materials.add_material_to_job("J", m.id, 1)

    def test_tool_cannot_be_consumed(self, repo, make_tool):
        tool = make_tool()
        with pytest.raises(InvalidOperationError, match="tool"):
            repo.job_materials.add_material_to_job("J", tool.id, 1)


class TestUpdateJobMaterial:
    def test_increase_uses_more(self, repo, make_material):
        m = make_material(current_stock=10, unit_cost=2.0)
        jm = repo.job_materials.add_material_to_job("J", m.id, 2)
        updated = repo.job_materials.update_job_material(jm.id, 5)
        assert updated.quantity_used == 5
        assert updated.total_cost == 10.0
        assert repo.stock.get_material(m.id).current_stock == 5
        t = repo.stock.get_material_transactions(m.id)[0]
        assert (t.transaction_type, t.quantity) == ("usage", -3)

    def test_decrease_returns_stock(self, repo, make_material):
        m = make_material(current_stock=10)
        jm = repo.job_materials.add_material_to_job("J", m.id, 6)
        repo.job_materials.update_job_material(jm.id, 2)
        assert repo.stock.get_material(m.id).current_stock == 8
        t = repo.stock.get_material_transactions(m.id)[0]
        assert (t.transaction_type, t.quantity) == ("return", 4)

    def test_cost_stays_on_snapshot(self, repo, make_material):
        m = make_material(current_stock=10, unit_cost=2.0)
        jm = repo.job_materials.add_material_to_job("J", m.id, 2)
        repo.stock.update_material(m.id, unit_cost=9.0)
        updated = repo.job_materials.update_job_material(jm.id, 3)
        assert updated.unit_cost == 2.0
        assert updated.total_cost == 6.0

    def test_increase_beyond_stock(self, repo, make_material):
        m = make_material(current_stock=4)
        jm = repo.job_materials.add_material_to_job("J", m.id, 3)
        with pytest.raises(InsufficientStockError):
            repo.job_materials.update_job_material(jm.id, 10)
        assert repo.job_materials.get_job_material(jm.id).quantity_used == 3
        assert repo.stock.get_material(m.id).current_stock == 1

    def test_notes_only(self, repo, make_material):
        m = make_material(current_stock=4)
        jm = repo.job_materials.add_material_to_job("J", m.id, 1)
        before = len(repo.stock.get_material_transactions(m.id))
        updated = repo.job_materials.update_job_material(jm.id, notes="attic")
        assert updated.notes == "attic"
        assert len(repo.stock.get_material_transactions(m.id)) == before

    def test_missing(self, repo):
        with pytest.raises(NotFoundError):
            repo.job_materials.update_job_material(77, 1)


class TestRemoveMaterialFromJob:
    def test_remove_restocks(self, repo, make_material):
        m = make_material(current_stock=10)
        jm = repo.job_materials.add_material_to_job("J", m.id, 4)
        repo.job_materials.remove_material_from_job(jm.id)
        assert repo.job_materials.get_job_material(jm.id) is None
        assert repo.stock.get_material(m.id).current_stock == 10
        t = repo.stock.get_material_transactions(m.id)[0]
        assert (t.transaction_type, t.quantity) == ("return", 4)

    def test_remove_without_restock(self, db, make_material):
        repo = Repository(db, restock_on_removal=False)
        m = make_material(current_stock=10)
        jm = repo.job_materials.add_material_to_job("J", m.id, 4)
        repo.job_materials.remove_material_from_job(jm.id)
        assert repo.stock.get_material(m.id).current_stock == 6

    def test_restock_follows_config(self, db, monkeypatch):
        monkeypatch.setattr(Config, "RESTOCK_ON_REMOVAL", False)
        assert JobMaterialAllocator(db).restock_on_removal is False

    def test_allows_reallocation(self, repo, make_material):
        m = make_material(current_stock=10)
        jm = repo.job_materials.add_material_to_job("J", m.id, 4)
        repo.job_materials.remove_material_from_job(jm.id)
        again = repo.job_materials.add_material_to_job("J", m.id, 1)
        assert again.quantity_used == 1

    def test_missing(self, repo):
        with pytest.raises(NotFoundError):
            repo.job_materials.remove_material_from_job(55)


class TestJobQueries:
    def test_newest_first_with_material(self, repo, make_material):
        a = make_material(name="A", current_stock=5)
        b = make_material(name="B", current_stock=5)
        repo.job_materials.add_material_to_job("J", a.id, 1)
        repo.job_materials.add_material_to_job("J", b.id, 2)
        rows = repo.job_materials.get_job_materials("J")
        assert [r.material_name for r in rows] == ["B", "A"]
        assert rows[0].material.id == b.id
        assert rows[0].material.current_stock == 3

    def test_other_jobs_excluded(self, repo, make_material):
        m = make_material(current_stock=5)
        repo.job_materials.add_material_to_job("J1", m.id, 1)
        assert repo.job_materials.get_job_materials("J2") == []

    def test_job_cost(self, repo, make_material):
        a = make_material(name="A", current_stock=5, unit_cost=3.0)
        b = make_material(name="B", current_stock=5, unit_cost=0.5)
        repo.job_materials.add_material_to_job("J", a.id, 2)
        repo.job_materials.add_material_to_job("J", b.id, 4)
        assert repo.job_materials.get_job_material_cost("J") == 8.0
        assert repo.job_materials.get_job_material_cost("none") == 0
