"""Building bill, allocation and unit bill schemas."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from tenant_billing.models.enums import BillType, HistoryAction, PaymentStatus


class FeeComponents(BaseModel):
    """The seven named fee components of an invoice (signed amounts)."""

    basic_fee: Decimal = Decimal("0")
    power_fee: Decimal = Decimal("0")
    climate_fee: Decimal = Decimal("0")
    fuel_fee: Decimal = Decimal("0")
    power_factor_fee: Decimal = Decimal("0")
    vat: Decimal = Decimal("0")
    power_fund: Decimal = Decimal("0")


class BuildingBillCreate(FeeComponents):
    """Whole-building invoice as delivered by invoice parsing or data entry."""

    bill_year: int = Field(ge=2000, le=2100)
    bill_month: int = Field(ge=1, le=12)
    billing_period_start: date | None = None
    billing_period_end: date | None = None
    total_usage: Decimal
    round_down: Decimal = Decimal("0")
    total_amount: Decimal
    due_date: date | None = None

    @field_validator("total_usage")
    @classmethod
    def validate_total_usage(cls, v: Decimal) -> Decimal:
        """Reject negative building usage; zero is caught at allocation time."""
        if v < 0:
            raise ValueError("Total usage cannot be negative")
        return v


class BuildingBillResponse(BuildingBillCreate):
    """Schema for building bill response."""

    id: int
    created_at: datetime

    model_config = {"from_attributes": True}


class FeeBreakdown(FeeComponents):
    """One unit's share of a building bill."""

    usage_amount: Decimal
    usage_rate: Decimal
    total_amount: Decimal


class UnitUsageInput(BaseModel):
    """One row of the per-unit usage list."""

    unit_number: str
    usage: Decimal
    previous_reading: Decimal | None = None
    current_reading: Decimal | None = None

    @field_validator("unit_number")
    @classmethod
    def validate_unit_number(cls, v: str) -> str:
        """Unit numbers must not be blank."""
        if not v or not v.strip():
            raise ValueError("Unit number cannot be empty")
        return v.strip()


class BuildingAllocationRequest(BaseModel):
    """Usage list to allocate a building bill across."""

    usages: list[UnitUsageInput]
    notes: str | None = None
    force: bool = False


class UnitAllocationLine(BaseModel):
    """Saved regular bill produced by a building allocation."""

    unit_bill_id: int
    unit_number: str
    usage_amount: Decimal
    usage_rate: Decimal
    total_amount: Decimal


class BuildingAllocationResult(BaseModel):
    """Outcome of allocating a building bill across its units.

    ``target_total`` is the building total before the round-down, i.e. the
    amount the unit bills should reconcile to when every unit's usage is
    accounted for. ``difference`` is absorbed at the building level.
    """

    building_bill_id: int
    lines: list[UnitAllocationLine]
    skipped_units: list[str]
    allocated_usage: Decimal
    calculated_total: Decimal
    target_total: Decimal
    difference: Decimal
    tolerance: Decimal
    is_balanced: bool


class UnitBillResponse(FeeComponents):
    """Schema for unit bill response."""

    id: int
    building_bill_id: int
    unit_id: int
    tenant_id: int | None
    tenant_name_snapshot: str | None
    bill_type: BillType
    move_settlement_id: int | None
    is_estimated: bool
    billing_period_start: date | None
    billing_period_end: date | None
    previous_reading: Decimal | None
    current_reading: Decimal | None
    usage_amount: Decimal
    usage_rate: Decimal
    total_amount: Decimal
    due_date: date | None
    payment_status: PaymentStatus
    payment_date: date | None
    payment_method: str | None
    notes: str | None
    is_manually_edited: bool
    edit_reason: str | None

    model_config = {"from_attributes": True}


class PaymentUpdate(BaseModel):
    """Schema for changing the payment state of a unit bill."""

    payment_status: PaymentStatus
    payment_date: date | None = None
    payment_method: str | None = None


class BillHistoryResponse(BaseModel):
    """Schema for one audit entry."""

    id: int
    unit_bill_id: int
    action: HistoryAction
    edit_reason: str | None
    old_values: dict | None
    new_values: dict | None
    changed_by: int | None
    changed_at: datetime
