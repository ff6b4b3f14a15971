"""Data models for the database layer.

Timestamps are kept as the text SQLite stores (``YYYY-MM-DD HH:MM:SS``).
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class Material:
    id: Optional[int] = None
    name: str = ""
    description: str = ""
    category: str = ""
    sku: str = ""
    barcode: str = ""
    unit_cost: float = 0.0
    current_stock: int = 0
    min_stock: int = 0
    reorder_point: Optional[int] = None   # None: same as min_stock
    unit_of_measure: str = "each"
    supplier_name: str = ""
    supplier_contact: str = ""
    location: str = ""
    is_active: int = 1
    # Tool fields (only meaningful when is_tool = 1)
    is_tool: int = 0
    serial_number: str = ""
    tool_condition: Optional[str] = None
    tool_status: Optional[str] = None
    assigned_to_name: Optional[str] = None
    assigned_date: Optional[str] = None
    expected_return_date: Optional[str] = None
    purchase_date: Optional[str] = None
    warranty_expires: Optional[str] = None
    maintenance_interval_days: Optional[int] = None
    last_maintenance_date: Optional[str] = None
    next_maintenance_date: Optional[str] = None
    version: int = 0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def total_value(self) -> float:
        return self.current_stock * self.unit_cost

    @property
    def is_out_of_stock(self) -> bool:
        return self.current_stock == 0

    @property
    def is_low_stock(self) -> bool:
        return 0 < self.current_stock <= self.min_stock

    @property
    def needs_reorder(self) -> bool:
        threshold = (self.reorder_point if self.reorder_point is not None
                     else self.min_stock)
        return self.current_stock <= threshold

    @property
    def is_available(self) -> bool:
        """True for an active tool that can be checked out right now."""
        return (bool(self.is_tool) and bool(self.is_active)
                and self.tool_status == "available")


@dataclass
class MaterialTransaction:
    id: Optional[int] = None
    material_id: int = 0
    transaction_type: str = "adjustment"
    quantity: int = 0
    unit_cost: Optional[float] = None
    total_cost: Optional[float] = None
    previous_stock: int = 0
    new_stock: int = 0
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
    notes: str = ""
    created_by: Optional[str] = None
    created_at: Optional[str] = None
    # Joined fields
    material_name: str = field(default="", repr=False)


@dataclass
class JobMaterial:
    id: Optional[int] = None
    job_id: str = ""
    material_id: int = 0
    quantity_used: int = 0
    unit_cost: float = 0.0        # snapshot at allocation time
    total_cost: float = 0.0
    notes: str = ""
    used_at: Optional[str] = None
    created_at: Optional[str] = None
    # Joined fields
    material_name: str = field(default="", repr=False)
    material: Optional[Material] = field(default=None, repr=False)


@dataclass
class ToolAssignment:
    id: Optional[int] = None
    material_id: int = 0
    assigned_to_name: str = ""
    assigned_by_name: Optional[str] = None
    assigned_date: Optional[str] = None
    expected_return_date: Optional[str] = None
    actual_return_date: Optional[str] = None
    job_id: Optional[str] = None
    status: str = "active"
    condition_at_assignment: Optional[str] = None
    condition_at_return: Optional[str] = None
    notes: str = ""
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    # Joined fields
    material_name: str = field(default="", repr=False)

    @property
    def is_active(self) -> bool:
        return self.status == "active"


@dataclass
class ToolMaintenance:
    id: Optional[int] = None
    material_id: int = 0
    maintenance_type: str = "scheduled"
    scheduled_date: Optional[str] = None
    completed_date: Optional[str] = None
    technician_name: Optional[str] = None
    cost: Optional[float] = None
    notes: str = ""
    parts_used: Optional[str] = None
    status: str = "scheduled"
    next_maintenance_date: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    # Joined fields
    material_name: str = field(default="", repr=False)


@dataclass
class JobTool:
    id: Optional[int] = None
    job_id: str = ""
    material_id: int = 0
    assigned_by_name: Optional[str] = None
    assigned_date: Optional[str] = None
    returned_date: Optional[str] = None
    status: str = "assigned"
    notes: str = ""
    created_at: Optional[str] = None
    # Joined fields
    material_name: str = field(default="", repr=False)


# ── Report shapes ───────────────────────────────────────────────


@dataclass
class CategorySummary:
    category: str = ""
    count: int = 0
    total_value: float = 0.0


@dataclass
class InventorySummary:
    total_materials: int = 0
    total_value: float = 0.0
    low_stock_count: int = 0
    out_of_stock_count: int = 0
    categories: list[CategorySummary] = field(default_factory=list)


@dataclass
class StockAlert:
    material_id: int = 0
    material_name: str = ""
    current_stock: int = 0
    min_stock: int = 0
    reorder_point: int = 0
    alert_type: str = ""      # out_of_stock | low_stock | reorder_needed
    severity: str = ""        # critical | warning


@dataclass
class MaintenanceDue:
    material_id: int = 0
    material_name: str = ""
    next_maintenance_date: str = ""
    days_until_maintenance: int = 0


@dataclass
class ToolUtilization:
    material_id: int = 0
    material_name: str = ""
    total_assignments: int = 0
    active_assignments: int = 0
    utilization_rate: float = 0.0


@dataclass
class ToolAvailability:
    id: int = 0
    name: str = ""
    category: str = ""
    serial_number: str = ""
    tool_condition: Optional[str] = None
    tool_status: Optional[str] = None
    assigned_to_name: Optional[str] = None
    assigned_date: Optional[str] = None
    expected_return_date: Optional[str] = None
    is_available: bool = False
    days_until_maintenance: Optional[int] = None


@dataclass
class MaintenanceStats:
    scheduled: int = 0
    in_progress: int = 0
    completed: int = 0
    cancelled: int = 0
    overdue: int = 0
    average_cost: float = 0.0

    @property
    def completion_rate(self) -> float:
        """Completed share of scheduled + overdue + completed, in percent."""
        total = self.scheduled + self.completed + self.overdue
        return (self.completed / total) * 100 if total else 0.0
