"""MoveSettlement database model."""

import json
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tenant_billing.core.database import Base
from tenant_billing.models.enums import SettlementStatus

if TYPE_CHECKING:
    from tenant_billing.models.tenant import Tenant
    from tenant_billing.models.unit import Unit
    from tenant_billing.models.unit_bill import UnitBill


class MoveSettlement(Base):
    """A mid-cycle move-out (and optional move-in) with its estimated bill.

    Never deleted: a rollback sets ``status`` to cancelled and appends a note.
    The months averaged for the estimate are stored as JSON, e.g.
    ``[{"year": 2026, "month": 1}, {"year": 2025, "month": 12}]``.
    """

    __tablename__ = "move_settlements"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    unit_id: Mapped[int] = mapped_column(ForeignKey("units.id"), index=True)
    settlement_date: Mapped[date]
    bill_year: Mapped[int] = mapped_column(index=True)
    bill_month: Mapped[int] = mapped_column(index=True)

    # Outgoing tenant
    outgoing_tenant_id: Mapped[int] = mapped_column(ForeignKey("tenants.id"), index=True)
    outgoing_period_start: Mapped[date]
    outgoing_period_end: Mapped[date]
    outgoing_meter_reading: Mapped[Decimal] = mapped_column(Numeric(precision=12, scale=3))
    outgoing_usage: Mapped[Decimal] = mapped_column(Numeric(precision=12, scale=3))

    # Incoming tenant
    incoming_tenant_id: Mapped[int | None] = mapped_column(
        ForeignKey("tenants.id", ondelete="SET NULL"), nullable=True
    )
    incoming_period_start: Mapped[date | None] = mapped_column(nullable=True)
    incoming_meter_reading: Mapped[Decimal | None] = mapped_column(
        Numeric(precision=12, scale=3), nullable=True
    )

    # Estimation inputs
    estimated_total_usage: Mapped[Decimal] = mapped_column(Numeric(precision=12, scale=3))
    estimated_total_amount: Mapped[Decimal] = mapped_column(Numeric(precision=14, scale=2))
    estimation_base_months: Mapped[str] = mapped_column(Text, default="[]")

    status: Mapped[SettlementStatus] = mapped_column(
        String(20), default=SettlementStatus.PENDING, index=True
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[int | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=lambda: datetime.now(UTC))
    updated_at: Mapped[datetime] = mapped_column(
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    # Relationships
    unit: Mapped["Unit"] = relationship()
    outgoing_tenant: Mapped["Tenant"] = relationship(foreign_keys=[outgoing_tenant_id])
    incoming_tenant: Mapped["Tenant | None"] = relationship(foreign_keys=[incoming_tenant_id])
    unit_bills: Mapped[list["UnitBill"]] = relationship(back_populates="move_settlement")

    def get_base_months(self) -> list[tuple[int, int]]:
        """Parse the stored JSON list of averaged months."""
        raw = json.loads(self.estimation_base_months or "[]")
        return [(item["year"], item["month"]) for item in raw]

    def set_base_months(self, months: list[tuple[int, int]]) -> None:
        """Serialize (year, month) pairs to JSON for storage."""
        self.estimation_base_months = json.dumps(
            [{"year": year, "month": month} for year, month in months]
        )
