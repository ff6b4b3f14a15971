"""Exception types raised by the inventory ledger.

Rule violations derive from ``ValueError`` so callers that already catch
``ValueError`` around inventory operations keep working. Each class carries
the HTTP status a route handler should answer with.
"""

from typing import Optional


class InventoryError(ValueError):
    """Base class for every ledger error."""

    status_code = 400

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message

    @property
    def kind(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": self.message}


class ValidationError(InventoryError):
    """Bad input shape or range. ``errors`` lists every problem found."""

    def __init__(self, errors):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["details"] = list(self.errors)
        return data


class NotFoundError(InventoryError):
    status_code = 404

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class ConflictError(InventoryError):
    """The request is well formed but clashes with current ledger state."""

    status_code = 409


class DuplicateAllocationError(ConflictError):
    def __init__(self, job_id, material_id):
        self.job_id = job_id
        self.material_id = material_id
        super().__init__(
            f"material {material_id} is already allocated to job {job_id}"
        )


class DuplicateAssignmentError(ConflictError):
    def __init__(self, job_id, material_id):
        self.job_id = job_id
        self.material_id = material_id
        super().__init__(
            f"tool {material_id} is already assigned to job {job_id}"
        )


class InsufficientStockError(ConflictError):
    def __init__(self, available: int, requested: int):
        self.available = available
        self.requested = requested
        super().__init__(
            f"insufficient stock: available {available}, "
            f"requested {requested}"
        )


class NegativeStockError(ConflictError):
    def __init__(self, current: int, delta: int):
        self.current = current
        self.delta = delta
        super().__init__(
            f"stock change of {delta} would leave {current + delta} "
            f"on hand (currently {current})"
        )


class ToolUnavailableError(ConflictError):
    def __init__(self, material_id, tool_status: Optional[str]):
        self.material_id = material_id
        self.tool_status = tool_status
        super().__init__(
            f"tool {material_id} is not available (status: {tool_status})"
        )


class InvalidOperationError(ConflictError):
    """The entity exists but the operation does not apply to it."""


class StorageError(InventoryError):
    """A ledger store round trip failed.

    ``transient`` is True when the same call may succeed later (lock
    contention, busy database). The core never retries on its own.
    """

    def __init__(self, message: str, transient: bool = False):
        self.transient = transient
        super().__init__(message)

    @property
    def status_code(self) -> int:
        return 503 if self.transient else 500

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["transient"] = self.transient
        return data


class ConcurrentModificationError(StorageError):
    """A compare-and-swap write lost a race; re-read before retrying."""

    def __init__(self, entity: str, entity_id):
        super().__init__(
            f"{entity} {entity_id} was modified concurrently",
            transient=True,
        )


class AnalyticsUnavailableError(StorageError):
    """An optional analytics source is configured but could not answer."""

    def __init__(self, message: str):
        super().__init__(message, transient=True)
