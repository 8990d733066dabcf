"""Fee component columns shared by building bills and unit bills."""

from decimal import Decimal

from sqlalchemy import Numeric
from sqlalchemy.orm import Mapped, mapped_column

# The named fee components of an invoice, in invoice order
FEE_FIELDS: tuple[str, ...] = (
    "basic_fee",
    "power_fee",
    "climate_fee",
    "fuel_fee",
    "power_factor_fee",
    "vat",
    "power_fund",
)


class FeeColumns:
    """Mixin adding the seven signed fee components and the total."""

    basic_fee: Mapped[Decimal] = mapped_column(Numeric(precision=14, scale=2), default=0)
    power_fee: Mapped[Decimal] = mapped_column(Numeric(precision=14, scale=2), default=0)
    climate_fee: Mapped[Decimal] = mapped_column(Numeric(precision=14, scale=2), default=0)
    fuel_fee: Mapped[Decimal] = mapped_column(Numeric(precision=14, scale=2), default=0)
    power_factor_fee: Mapped[Decimal] = mapped_column(
        Numeric(precision=14, scale=2), default=0
    )
    vat: Mapped[Decimal] = mapped_column(Numeric(precision=14, scale=2), default=0)
    power_fund: Mapped[Decimal] = mapped_column(Numeric(precision=14, scale=2), default=0)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(precision=14, scale=2), default=0)
