"""UnitBill database model - one unit's share of a building bill."""

from datetime import UTC, date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tenant_billing.core.database import Base
from tenant_billing.models.enums import BillType, PaymentStatus
from tenant_billing.models.fees import FeeColumns

if TYPE_CHECKING:
    from tenant_billing.models.building_bill import BuildingBill
    from tenant_billing.models.move_settlement import MoveSettlement
    from tenant_billing.models.tenant import Tenant
    from tenant_billing.models.unit import Unit


class UnitBill(FeeColumns, Base):
    """Allocated (or estimated) charges for one unit in one billing cycle."""

    __tablename__ = "unit_bills"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    # Foreign keys
    building_bill_id: Mapped[int] = mapped_column(ForeignKey("building_bills.id"), index=True)
    unit_id: Mapped[int] = mapped_column(ForeignKey("units.id"), index=True)
    tenant_id: Mapped[int | None] = mapped_column(
        ForeignKey("tenants.id"), nullable=True, index=True
    )
    move_settlement_id: Mapped[int | None] = mapped_column(
        ForeignKey("move_settlements.id"), nullable=True, index=True
    )

    # Tenant name at billing time, survives later tenant changes
    tenant_name_snapshot: Mapped[str | None] = mapped_column(String(100), nullable=True)
    bill_type: Mapped[BillType] = mapped_column(String(20), default=BillType.REGULAR, index=True)
    is_estimated: Mapped[bool] = mapped_column(default=False)
    billing_period_start: Mapped[date | None] = mapped_column(nullable=True)
    billing_period_end: Mapped[date | None] = mapped_column(nullable=True)

    # Metering
    previous_reading: Mapped[Decimal | None] = mapped_column(
        Numeric(precision=12, scale=3), nullable=True
    )
    current_reading: Mapped[Decimal | None] = mapped_column(
        Numeric(precision=12, scale=3), nullable=True
    )
    usage_amount: Mapped[Decimal] = mapped_column(Numeric(precision=12, scale=3))
    usage_rate: Mapped[Decimal] = mapped_column(Numeric(precision=14, scale=10))

    # Payment
    due_date: Mapped[date | None] = mapped_column(nullable=True)
    payment_status: Mapped[PaymentStatus] = mapped_column(
        String(20), default=PaymentStatus.PENDING, index=True
    )
    payment_date: Mapped[date | None] = mapped_column(nullable=True)
    payment_method: Mapped[str | None] = mapped_column(String(50), nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_manually_edited: Mapped[bool] = mapped_column(default=False)
    edit_reason: Mapped[str | None] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=lambda: datetime.now(UTC))
    updated_at: Mapped[datetime] = mapped_column(
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    # Relationships
    building_bill: Mapped["BuildingBill"] = relationship(back_populates="unit_bills")
    unit: Mapped["Unit"] = relationship()
    tenant: Mapped["Tenant | None"] = relationship()
    move_settlement: Mapped["MoveSettlement | None"] = relationship(back_populates="unit_bills")
