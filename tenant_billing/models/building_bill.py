"""BuildingBill database model."""

from datetime import UTC, date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import Numeric, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tenant_billing.core.database import Base
from tenant_billing.models.fees import FeeColumns

if TYPE_CHECKING:
    from tenant_billing.models.unit_bill import UnitBill


class BuildingBill(FeeColumns, Base):
    """Whole-building utility invoice for one billing cycle."""

    __tablename__ = "building_bills"
    __table_args__ = (UniqueConstraint("bill_year", "bill_month", name="uq_building_bill_period"),)

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    bill_year: Mapped[int] = mapped_column(index=True)
    bill_month: Mapped[int] = mapped_column(index=True)
    billing_period_start: Mapped[date | None] = mapped_column(nullable=True)
    billing_period_end: Mapped[date | None] = mapped_column(nullable=True)

    total_usage: Mapped[Decimal] = mapped_column(Numeric(precision=12, scale=3))
    round_down: Mapped[Decimal] = mapped_column(Numeric(precision=14, scale=2), default=0)

    due_date: Mapped[date | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=lambda: datetime.now(UTC))

    # Relationships
    unit_bills: Mapped[list["UnitBill"]] = relationship(back_populates="building_bill")
