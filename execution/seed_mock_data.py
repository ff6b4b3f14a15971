"""Seed the database with realistic mock data for development and demos.

Creates:
  - 20 consumable materials across 5 categories (wire, boxes, devices,
    conduit, consumables), a few of them low or out of stock
  - 6 tools (drills, meters, benders), two checked out, one overdue
  - 3 jobs with material allocations and assigned tools
  - 2 maintenance events (one scheduled, one completed)

Run:
    python -m execution.seed_mock_data          (from project root)
    python execution/seed_mock_data.py          (direct)

WARNING: This script INSERTS data; run against a fresh DB to avoid
duplicates. Delete data/fieldstock.db first for a clean start.
"""

import logging
import os
import sys
from datetime import datetime, timedelta

# Ensure project src is on the path
_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, os.path.join(_ROOT, "src"))

from fieldstock.database.models import Material
from fieldstock.database.repository import Repository

SEEDED_BY = "seed"


def seed(repo: Repository):
    """Populate the database with mock data."""
    now = datetime.now()

    # ── 1. Materials ──────────────────────────────────────────────
    print("Creating materials...")
    materials_data = [
        # (sku, name, category, unit, stock, min, reorder, cost)
        ("W-1402", "12/2 Romex 250ft", "Wire & Cable", "roll", 14, 4, 6, 98.50),
        ("W-1403", "14/2 Romex 250ft", "Wire & Cable", "roll", 9, 4, 6, 72.00),
        ("W-THHN12", "THHN 12 AWG Black 500ft", "Wire & Cable", "spool", 3, 2, 4, 84.25),
        ("W-MC122", "MC Cable 12/2 250ft", "Wire & Cable", "roll", 0, 2, 3, 165.00),
        ("B-1G-NM", "1-Gang New Work Box", "Boxes & Covers", "each", 240, 50, 80, 0.62),
        ("B-2G-NM", "2-Gang New Work Box", "Boxes & Covers", "each", 110, 40, 60, 1.18),
        ("B-4SQ", "4in Square Box 2-1/8 Deep", "Boxes & Covers", "each", 35, 40, 60, 2.45),
        ("B-PLATE1", "1-Gang Decora Plate White", "Boxes & Covers", "each", 180, 50, 75, 0.48),
        ("D-REC15", "15A Duplex Receptacle", "Devices", "each", 300, 100, 150, 0.89),
        ("D-GFCI20", "20A GFCI Receptacle", "Devices", "each", 22, 10, 20, 17.40),
        ("D-SW1P", "Single Pole Switch", "Devices", "each", 150, 50, 80, 1.05),
        ("D-DIM", "LED Dimmer Switch", "Devices", "each", 6, 8, 12, 24.90),
        ("C-EMT34", "3/4in EMT 10ft", "Conduit & Fittings", "stick", 80, 20, 30, 7.35),
        ("C-EMT12", "1/2in EMT 10ft", "Conduit & Fittings", "stick", 120, 30, 45, 5.10),
        ("C-CONN34", "3/4in EMT Set Screw Connector", "Conduit & Fittings", "each", 0, 25, 40, 0.55),
        ("C-COUP34", "3/4in EMT Coupling", "Conduit & Fittings", "each", 95, 25, 40, 0.49),
        ("X-WN-YEL", "Yellow Wire Nuts (100)", "Consumables", "box", 18, 5, 8, 9.75),
        ("X-TAPE", "Electrical Tape Black", "Consumables", "roll", 40, 12, 20, 2.20),
        ("X-STRAP", "NM Cable Staples (250)", "Consumables", "box", 4, 5, 8, 6.80),
        ("X-ZIP", "Zip Ties 8in (100)", "Consumables", "bag", 25, 6, 10, 4.15),
    ]
    material_ids = {}
    for sku, name, cat, unit, stock, min_s, reorder, cost in materials_data:
        m = repo.create_material(Material(
            sku=sku, name=name, category=cat, unit_of_measure=unit,
            current_stock=stock, min_stock=min_s, reorder_point=reorder,
            unit_cost=cost, supplier_name="Graybar Electric",
            location="Warehouse A",
        ), created_by=SEEDED_BY)
        material_ids[sku] = m.id
    print(f"  → {len(materials_data)} materials created")

    # ── 2. Tools ──────────────────────────────────────────────────
    print("Creating tools...")
    tools_data = [
        # (sku, name, serial, interval, next maintenance in days)
        ("T-DRILL-01", "Cordless Hammer Drill", "DH-88213", 90, 12),
        ("T-DRILL-02", "Cordless Hammer Drill", "DH-88214", 90, 75),
        ("T-METER-01", "Clamp Meter", "CM-11002", 180, 3),
        ("T-BEND-34", "3/4in EMT Bender", "", None, None),
        ("T-FISH-01", "Fish Tape 100ft", "", None, None),
        ("T-PRESS-01", "Knockout Punch Kit", "KP-5520", 365, 40),
    ]
    tool_ids = {}
    for sku, name, serial, interval, next_days in tools_data:
        t = repo.create_material(Material(
            sku=sku, name=name, category="Tools", current_stock=1,
            unit_cost=0.0, is_tool=1, serial_number=serial,
            tool_condition="good", maintenance_interval_days=interval,
            next_maintenance_date=(
                now + timedelta(days=next_days) if next_days else None
            ),
            location="Tool Crib",
        ), created_by=SEEDED_BY)
        tool_ids[sku] = t.id
    print(f"  → {len(tools_data)} tools created")

    # ── 3. Jobs ───────────────────────────────────────────────────
    print("Allocating materials to jobs...")
    jobs = {
        "JOB-2024-101": [("W-1402", 3), ("B-1G-NM", 40), ("D-REC15", 36),
                         ("D-SW1P", 12), ("X-WN-YEL", 2)],
        "JOB-2024-102": [("C-EMT34", 24), ("C-COUP34", 24), ("B-4SQ", 10),
                         ("W-THHN12", 1)],
        "JOB-2024-103": [("D-GFCI20", 6), ("B-PLATE1", 20), ("X-TAPE", 4)],
    }
    allocations = 0
    for job_id, lines in jobs.items():
        for sku, qty in lines:
            repo.job_materials.add_material_to_job(
                job_id, material_ids[sku], qty, created_by=SEEDED_BY
            )
            allocations += 1
    repo.tools.assign_tool_to_job("JOB-2024-102", tool_ids["T-BEND-34"],
                                  assigned_by_name="Derek Martinez")
    repo.tools.assign_tool_to_job("JOB-2024-101", tool_ids["T-FISH-01"],
                                  assigned_by_name="Derek Martinez")
    print(f"  → {allocations} allocations across {len(jobs)} jobs")

    # ── 4. Checkouts ──────────────────────────────────────────────
    print("Checking out tools...")
    repo.tools.checkout_tool(
        tool_ids["T-DRILL-01"], "José Ramirez",
        expected_return_date=now + timedelta(days=5),
        job_id="JOB-2024-101", condition_at_assignment="good",
        assigned_by_name="Derek Martinez",
    )
    repo.tools.checkout_tool(
        tool_ids["T-METER-01"], "Kevin O'Brien",
        expected_return_date=now - timedelta(days=2),
        job_id="JOB-2024-103", condition_at_assignment="excellent",
        assigned_by_name="Derek Martinez",
        now=now - timedelta(days=9),
    )
    print("  → 2 tools checked out (1 overdue)")

    # ── 5. Maintenance ────────────────────────────────────────────
    print("Scheduling maintenance...")
    done = repo.tools.schedule_tool_maintenance(
        tool_ids["T-PRESS-01"], now - timedelta(days=20),
        maintenance_type="inspection", technician_name="Carlos Vega",
    )
    repo.tools.complete_tool_maintenance(
        done.id, cost=45.00, notes="Dies sharpened",
        completed_date=now - timedelta(days=19),
    )
    repo.tools.schedule_tool_maintenance(
        tool_ids["T-DRILL-02"], now + timedelta(days=14),
        notes="Replace chuck", maintenance_type="repair",
    )
    print("  → 2 maintenance events")

    # ── Done ──────────────────────────────────────────────────────
    alerts = repo.get_stock_alerts()
    print("\n✓ Mock data seeded successfully!")
    print(f"  Materials: {len(materials_data)}")
    print(f"  Tools: {len(tools_data)}")
    print(f"  Jobs: {len(jobs)}")
    print(f"  Stock alerts: {len(alerts)}")


def main():
    from fieldstock.config import Config
    logging.basicConfig(level=Config.LOG_LEVEL)
    db_path = Config.DATABASE_PATH
    print(f"Database: {db_path}")

    # Confirm if DB exists
    if os.path.exists(db_path):
        resp = input("Database already exists. Seed anyway? (y/N): ").strip().lower()
        if resp != "y":
            print("Aborted.")
            return

    repo = Repository.open(db_path)
    seed(repo)


if __name__ == "__main__":
    main()
