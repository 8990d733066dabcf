"""Database models."""

from tenant_billing.models.bill_history import BillHistory
from tenant_billing.models.building_bill import BuildingBill
from tenant_billing.models.move_settlement import MoveSettlement
from tenant_billing.models.tenant import Tenant
from tenant_billing.models.unit import Unit
from tenant_billing.models.unit_bill import UnitBill

__all__ = ["BillHistory", "BuildingBill", "MoveSettlement", "Tenant", "Unit", "UnitBill"]
