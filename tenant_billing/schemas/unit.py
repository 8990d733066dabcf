"""Unit and tenant schemas."""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, field_validator

from tenant_billing.models.enums import TenantStatus, UnitStatus


class UnitCreate(BaseModel):
    """Schema for creating a unit."""

    unit_number: str

    @field_validator("unit_number")
    @classmethod
    def validate_unit_number(cls, v: str) -> str:
        """Unit numbers must not be blank."""
        if not v or not v.strip():
            raise ValueError("Unit number cannot be empty")
        return v.strip()


class UnitResponse(BaseModel):
    """Schema for unit response."""

    id: int
    unit_number: str
    tenant_name: str | None
    contact: str | None
    email: str | None
    status: UnitStatus
    move_in_date: date | None
    move_out_date: date | None

    model_config = {"from_attributes": True}


class TenantCreate(BaseModel):
    """Tenant details supplied at move-in."""

    name: str
    contact: str | None = None
    email: str | None = None
    move_in_date: date
    move_in_reading: Decimal

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Tenant name must not be blank."""
        if not v or not v.strip():
            raise ValueError("Tenant name cannot be empty")
        return v.strip()

    @field_validator("move_in_reading")
    @classmethod
    def validate_reading(cls, v: Decimal) -> Decimal:
        """Meter readings are cumulative and never negative."""
        if v < 0:
            raise ValueError("Meter reading cannot be negative")
        return v


class TenantResponse(BaseModel):
    """Schema for tenant response."""

    id: int
    unit_id: int
    name: str
    contact: str | None
    email: str | None
    status: TenantStatus
    move_in_date: date
    move_out_date: date | None
    move_in_reading: Decimal | None
    move_out_reading: Decimal | None
    notes: str | None

    model_config = {"from_attributes": True}
