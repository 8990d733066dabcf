"""Move settlement and estimation schemas."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from tenant_billing.models.enums import SettlementStatus
from tenant_billing.schemas.billing import FeeBreakdown, FeeComponents
from tenant_billing.schemas.unit import TenantCreate


class BillingMonth(BaseModel):
    """A (year, month) billing cycle."""

    year: int
    month: int


class AveragedBuildingBill(FeeComponents):
    """Synthetic building bill averaged over earlier cycles."""

    total_usage: Decimal
    round_down: Decimal
    total_amount: Decimal
    base_months: list[BillingMonth]


class EstimationResult(BaseModel):
    """Estimated move-out charges and the inputs they were derived from."""

    unit_id: int
    previous_reading: Decimal
    meter_reading: Decimal
    outgoing_usage: Decimal
    bill_year: int
    bill_month: int
    averaged_bill: AveragedBuildingBill
    breakdown: FeeBreakdown
    is_estimated: bool = True


class EstimatePreviewRequest(BaseModel):
    """Schema for previewing a move-out estimate without saving."""

    unit_id: int
    meter_reading: Decimal
    settlement_date: date | None = None


class MoveOutSettlementCreate(BaseModel):
    """Schema for recording a move-out."""

    unit_id: int
    settlement_date: date
    meter_reading: Decimal
    incoming_tenant: TenantCreate | None = None
    notes: str | None = None

    @field_validator("meter_reading")
    @classmethod
    def validate_reading(cls, v: Decimal) -> Decimal:
        """Meter readings are cumulative and never negative."""
        if v < 0:
            raise ValueError("Meter reading cannot be negative")
        return v


class SettlementStatusUpdate(BaseModel):
    """Administrative status change (no data reversal)."""

    status: SettlementStatus

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: SettlementStatus) -> SettlementStatus:
        """Only terminal states can be set directly."""
        if v == SettlementStatus.PENDING:
            raise ValueError("Status can only be set to completed or cancelled")
        return v


class SettlementTenantInfo(BaseModel):
    """Tenant side of a settlement."""

    tenant_id: int
    name: str
    contact: str | None
    period_start: date | None
    period_end: date | None = None
    meter_reading: Decimal | None
    usage: Decimal | None = None


class MoveSettlementResponse(BaseModel):
    """Schema for move settlement response."""

    id: int
    unit_id: int
    unit_number: str
    settlement_date: date
    bill_year: int
    bill_month: int
    status: SettlementStatus
    outgoing_tenant: SettlementTenantInfo
    incoming_tenant: SettlementTenantInfo | None
    estimated_total_usage: Decimal
    estimated_total_amount: Decimal
    estimation_base_months: list[BillingMonth]
    move_out_bill_id: int | None
    move_out_bill_total: Decimal | None
    notes: str | None
    created_at: datetime


class MoveSettlementFilters(BaseModel):
    """Filters for listing settlements."""

    unit_number: str | None = None
    status: SettlementStatus | None = None
    start_period: str | None = Field(default=None, pattern=r"^\d{4}-\d{1,2}$")
    end_period: str | None = Field(default=None, pattern=r"^\d{4}-\d{1,2}$")
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=200)


class MoveSettlementList(BaseModel):
    """Paginated list of settlements."""

    items: list[MoveSettlementResponse]
    total: int
    page: int
    limit: int
