"""Schemas for editing a single unit bill."""

from decimal import Decimal

from pydantic import BaseModel, field_validator, model_validator

from tenant_billing.models.enums import EditMode
from tenant_billing.schemas.billing import FeeComponents, UnitBillResponse


class UnitBillEditRequest(FeeComponents):
    """Edit request for one unit bill.

    In proportional mode the fee fields and total are recomputed from the
    building bill and whatever the caller sent for them is discarded. In
    manual mode they are stored exactly as sent.
    """

    edit_mode: EditMode
    edit_reason: str
    usage_amount: Decimal
    previous_reading: Decimal | None = None
    current_reading: Decimal | None = None
    total_amount: Decimal = Decimal("0")
    notes: str | None = None

    @field_validator("edit_reason")
    @classmethod
    def validate_edit_reason(cls, v: str) -> str:
        """An edit must say why it was made."""
        if not v or not v.strip():
            raise ValueError("Edit reason is required")
        return v.strip()

    @field_validator("usage_amount")
    @classmethod
    def validate_usage(cls, v: Decimal) -> Decimal:
        """Usage cannot be negative."""
        if v < 0:
            raise ValueError("Usage amount cannot be negative")
        return v

    @model_validator(mode="after")
    def validate_manual_total(self) -> "UnitBillEditRequest":
        """Manual edits must carry the total to store."""
        if self.edit_mode == EditMode.MANUAL and "total_amount" not in self.model_fields_set:
            raise ValueError("Manual edits require total_amount")
        return self


class UnitBillEditResult(BaseModel):
    """Updated bill plus advisory warnings."""

    unit_bill: UnitBillResponse
    history_id: int
    warnings: list[str]
