"""Enum definitions for billing records."""

from enum import Enum


class BillType(str, Enum):
    """Why a unit bill exists."""

    REGULAR = "regular"  # Monthly allocation of the building bill
    MOVE_OUT = "move_out"  # Estimated bill for a tenant leaving mid-cycle
    MOVE_IN = "move_in"


class PaymentStatus(str, Enum):
    """Payment state of a unit bill."""

    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"


class UnitStatus(str, Enum):
    """Occupancy of a unit."""

    OCCUPIED = "occupied"
    VACANT = "vacant"


class TenantStatus(str, Enum):
    """Occupancy state of a tenant record."""

    ACTIVE = "active"
    MOVED_OUT = "moved_out"


class SettlementStatus(str, Enum):
    """Move settlement lifecycle: pending -> completed | cancelled."""

    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class EditMode(str, Enum):
    """How a unit bill edit derives its fees."""

    PROPORTIONAL = "proportional"  # Re-run the allocation from the building bill
    MANUAL = "manual"  # Store the submitted fees as-is


class HistoryAction(str, Enum):
    """Kind of change recorded in the bill history."""

    CREATED = "created"
    UPDATED = "updated"
    PAID = "paid"
    DELETED = "deleted"
