"""Validation rules for materials and import data."""

import math

from fieldstock.database.models import Material
from fieldstock.utils.constants import (
    MAX_AMOUNT,
    MAX_CATEGORY_LENGTH,
    MAX_MAINTENANCE_INTERVAL,
    MAX_NAME_LENGTH,
    MAX_UNIT_LENGTH,
    TOOL_CONDITIONS,
)
from fieldstock.utils.formatters import to_db_timestamp

MATERIAL_DATE_FIELDS = [
    "purchase_date", "warranty_expires", "next_maintenance_date",
]


def validate_material(material: Material) -> list[str]:
    """Validate a material before it is stored. Returns list of error strings."""
    errors = []

    name = (material.name or "").strip()
    if not name:
        errors.append("name is required")
    elif len(name) > MAX_NAME_LENGTH:
        errors.append(f"name must be less than {MAX_NAME_LENGTH} characters")

    category = (material.category or "").strip()
    if not category:
        errors.append("category is required")
    elif len(category) > MAX_CATEGORY_LENGTH:
        errors.append(
            f"category must be less than {MAX_CATEGORY_LENGTH} characters"
        )

    unit = (material.unit_of_measure or "").strip()
    if not unit:
        errors.append("unit_of_measure is required")
    elif len(unit) > MAX_UNIT_LENGTH:
        errors.append(
            f"unit_of_measure must be less than {MAX_UNIT_LENGTH} characters"
        )

    if not isinstance(material.unit_cost, (int, float)) \
            or isinstance(material.unit_cost, bool):
        errors.append("unit_cost must be a number")
    elif not math.isfinite(material.unit_cost):
        errors.append("unit_cost must be a finite number")
    elif material.unit_cost < 0:
        errors.append("unit_cost cannot be negative")
    elif material.unit_cost > MAX_AMOUNT:
        errors.append("unit_cost is too high")

    counts_ok = True
    for attr in ("current_stock", "min_stock", "reorder_point"):
        value = getattr(material, attr)
        if attr == "reorder_point" and value is None:
            continue
        if not isinstance(value, int) or isinstance(value, bool):
            errors.append(f"{attr} must be an integer")
            counts_ok = False
        elif value < 0:
            errors.append(f"{attr} cannot be negative")
            counts_ok = False
        elif value > MAX_AMOUNT:
            errors.append(f"{attr} is too high")
            counts_ok = False

    if counts_ok and material.reorder_point is not None \
            and material.reorder_point < material.min_stock:
        errors.append(
            "reorder_point must be greater than or equal to min_stock"
        )

    if material.is_tool:
        if counts_ok and material.current_stock > 1:
            errors.append("tools can only have stock of 0 or 1")
        if material.tool_condition and \
                material.tool_condition not in TOOL_CONDITIONS:
            errors.append(f"unknown tool_condition {material.tool_condition!r}")

    interval = material.maintenance_interval_days
    if interval is not None:
        if not isinstance(interval, int) or isinstance(interval, bool):
            errors.append("maintenance_interval_days must be an integer")
        elif not 1 <= interval <= MAX_MAINTENANCE_INTERVAL:
            errors.append(
                "maintenance_interval_days must be between 1 and "
                f"{MAX_MAINTENANCE_INTERVAL}"
            )

    for attr in MATERIAL_DATE_FIELDS:
        try:
            to_db_timestamp(getattr(material, attr))
        except ValueError:
            errors.append(f"{attr} is not a valid date")

    return errors


def validate_material_row(row: dict, row_num: int) -> list[str]:
    """Validate a single row of material import data. Returns list of error strings."""
    errors = []

    name = (row.get("name") or "").strip()
    if not name:
        errors.append(f"Row {row_num}: name is required")
    elif len(name) > MAX_NAME_LENGTH:
        errors.append(f"Row {row_num}: name exceeds {MAX_NAME_LENGTH} chars")

    category = (row.get("category") or "").strip()
    if not category:
        errors.append(f"Row {row_num}: category is required")
    elif len(category) > MAX_CATEGORY_LENGTH:
        errors.append(
            f"Row {row_num}: category exceeds {MAX_CATEGORY_LENGTH} chars"
        )

    for key in ("current_stock", "min_stock", "reorder_point"):
        value = row.get(key) or ""
        if value != "":
            try:
                number = float(value)
                if not math.isfinite(number):
                    errors.append(f"Row {row_num}: {key} must be an integer")
                    continue
                q = int(number)
                if q < 0:
                    errors.append(f"Row {row_num}: {key} cannot be negative")
                elif q != number:
                    errors.append(f"Row {row_num}: {key} must be an integer")
            except (ValueError, TypeError):
                errors.append(f"Row {row_num}: {key} must be an integer")

    cost = row.get("unit_cost") or ""
    if cost != "":
        try:
            c = float(cost)
            if not math.isfinite(c):
                errors.append(f"Row {row_num}: unit_cost must be a number")
            elif c < 0:
                errors.append(f"Row {row_num}: unit_cost cannot be negative")
        except (ValueError, TypeError):
            errors.append(f"Row {row_num}: unit_cost must be a number")

    return errors
