"""Unit database model."""

from datetime import UTC, date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tenant_billing.core.database import Base
from tenant_billing.models.enums import UnitStatus

if TYPE_CHECKING:
    from tenant_billing.models.tenant import Tenant


class Unit(Base):
    """Rentable unit with a snapshot of its current occupant."""

    __tablename__ = "units"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    unit_number: Mapped[str] = mapped_column(String(20), unique=True, index=True)

    # Occupancy snapshot, kept in sync by the settlement service
    tenant_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    contact: Mapped[str | None] = mapped_column(String(50), nullable=True)
    email: Mapped[str | None] = mapped_column(String(100), nullable=True)
    status: Mapped[UnitStatus] = mapped_column(String(20), default=UnitStatus.VACANT)
    move_in_date: Mapped[date | None] = mapped_column(nullable=True)
    move_out_date: Mapped[date | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=lambda: datetime.now(UTC))
    updated_at: Mapped[datetime] = mapped_column(
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    # Relationships
    tenants: Mapped[list["Tenant"]] = relationship(back_populates="unit")
