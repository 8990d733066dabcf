"""Tenant database model."""

from datetime import UTC, date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tenant_billing.core.database import Base
from tenant_billing.models.enums import TenantStatus

if TYPE_CHECKING:
    from tenant_billing.models.unit import Unit


class Tenant(Base):
    """One occupancy of a unit, from move-in to move-out."""

    __tablename__ = "tenants"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    unit_id: Mapped[int] = mapped_column(ForeignKey("units.id"), index=True)
    name: Mapped[str] = mapped_column(String(100))
    contact: Mapped[str | None] = mapped_column(String(50), nullable=True)
    email: Mapped[str | None] = mapped_column(String(100), nullable=True)
    status: Mapped[TenantStatus] = mapped_column(
        String(20), default=TenantStatus.ACTIVE, index=True
    )

    move_in_date: Mapped[date]
    move_out_date: Mapped[date | None] = mapped_column(nullable=True)
    move_in_reading: Mapped[Decimal | None] = mapped_column(
        Numeric(precision=12, scale=3), nullable=True
    )
    move_out_reading: Mapped[Decimal | None] = mapped_column(
        Numeric(precision=12, scale=3), nullable=True
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=lambda: datetime.now(UTC))
    updated_at: Mapped[datetime] = mapped_column(
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    # Relationships
    unit: Mapped["Unit"] = relationship(back_populates="tenants")
