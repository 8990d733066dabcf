"""Estimation engine for mid-cycle move-outs.

When a tenant leaves mid-cycle the building invoice for that cycle does not
exist yet. The outgoing tenant is billed against a synthetic building bill
averaged over the most recent earlier cycles; the gap to the real invoice is
absorbed by the building later.
"""

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from tenant_billing.core.config import settings
from tenant_billing.core.exceptions import NegativeUsage, NoHistoricalData, UnitNotFound
from tenant_billing.models.building_bill import BuildingBill
from tenant_billing.models.enums import BillType, TenantStatus
from tenant_billing.models.fees import FEE_FIELDS
from tenant_billing.models.tenant import Tenant
from tenant_billing.models.unit import Unit
from tenant_billing.models.unit_bill import UnitBill
from tenant_billing.schemas.settlement import AveragedBuildingBill, BillingMonth, EstimationResult
from tenant_billing.services.allocation import allocate, to_decimal
from tenant_billing.services.billing_period import next_period, resolve_period

logger = logging.getLogger(__name__)


def get_last_regular_bill(db: Session, unit_id: int) -> UnitBill | None:
    """Most recent regular bill of a unit that carries a meter reading."""
    return (
        db.query(UnitBill)
        .join(BuildingBill, UnitBill.building_bill_id == BuildingBill.id)
        .filter(
            UnitBill.unit_id == unit_id,
            UnitBill.bill_type == BillType.REGULAR,
            UnitBill.current_reading.is_not(None),
        )
        .order_by(BuildingBill.bill_year.desc(), BuildingBill.bill_month.desc())
        .first()
    )


def resolve_previous_reading(
    db: Session,
    unit_id: int,
    tenant_id: int | None = None,
) -> Decimal:
    """Meter reading the outgoing usage is measured from.

    Priority: current reading of the unit's latest regular bill, then the
    tenant's move-in reading (the given tenant, else the active one), then 0.
    """
    last_bill = get_last_regular_bill(db, unit_id)
    if last_bill is not None:
        return to_decimal(last_bill.current_reading)

    query = db.query(Tenant)
    if tenant_id is not None:
        tenant = query.filter(Tenant.id == tenant_id).first()
    else:
        tenant = (
            query.filter(Tenant.unit_id == unit_id, Tenant.status == TenantStatus.ACTIVE)
            .order_by(Tenant.id.desc())
            .first()
        )
    if tenant is not None and tenant.move_in_reading is not None:
        return to_decimal(tenant.move_in_reading)
    return Decimal("0")


def get_trailing_bills(
    db: Session,
    year: int,
    month: int,
    count: int | None = None,
) -> list[BuildingBill]:
    """Up to ``count`` building bills strictly before (year, month), newest first."""
    return (
        db.query(BuildingBill)
        .filter(
            or_(
                BuildingBill.bill_year < year,
                and_(BuildingBill.bill_year == year, BuildingBill.bill_month < month),
            )
        )
        .order_by(BuildingBill.bill_year.desc(), BuildingBill.bill_month.desc())
        .limit(count or settings.ESTIMATION_WINDOW_MONTHS)
        .all()
    )


def average_bills(bills: list[BuildingBill]) -> AveragedBuildingBill:
    """Arithmetic mean of usage, every fee component and the totals."""
    if not bills:
        raise NoHistoricalData()

    n = Decimal(len(bills))

    def mean(name: str) -> Decimal:
        return sum((to_decimal(getattr(b, name)) for b in bills), Decimal("0")) / n

    return AveragedBuildingBill(
        total_usage=mean("total_usage"),
        round_down=mean("round_down"),
        total_amount=mean("total_amount"),
        base_months=[BillingMonth(year=b.bill_year, month=b.bill_month) for b in bills],
        **{name: mean(name) for name in FEE_FIELDS},
    )


def estimation_anchor(db: Session, unit_id: int, as_of: date | None) -> tuple[int, int]:
    """Billing cycle being estimated.

    With a settlement date this is the cycle the date falls in. Without one it
    is the cycle after the unit's latest regular bill, or the current
    calendar month for a unit that was never billed.
    """
    if as_of is not None:
        return resolve_period(as_of)
    last_bill = get_last_regular_bill(db, unit_id)
    if last_bill is not None:
        return next_period(last_bill.building_bill.bill_year, last_bill.building_bill.bill_month)
    today = date.today()
    return today.year, today.month


def estimate(
    db: Session,
    unit_id: int,
    meter_reading: Decimal,
    as_of: date | None = None,
    tenant_id: int | None = None,
) -> EstimationResult:
    """Estimate the move-out bill for a unit at ``meter_reading``.

    Raises NegativeUsage when the reading is below the previous one,
    NoHistoricalData when no earlier building bill exists and
    ZeroBuildingUsage when the averaged usage is not positive.
    """
    if db.get(Unit, unit_id) is None:
        raise UnitNotFound()

    previous_reading = resolve_previous_reading(db, unit_id, tenant_id)
    reading = to_decimal(meter_reading)
    outgoing_usage = reading - previous_reading
    if outgoing_usage < 0:
        raise NegativeUsage(
            f"Meter reading ({reading}) is lower than the previous reading ({previous_reading})"
        )

    year, month = estimation_anchor(db, unit_id, as_of)
    window = get_trailing_bills(db, year, month)
    if not window:
        raise NoHistoricalData(
            f"No building bill before {year}-{month:02d} to estimate from"
        )
    averaged = average_bills(window)
    breakdown = allocate(averaged, outgoing_usage)

    logger.info(
        "Estimated unit %s for %s-%02d from %d months: usage %s, total %s",
        unit_id,
        year,
        month,
        len(window),
        outgoing_usage,
        breakdown.total_amount,
    )

    return EstimationResult(
        unit_id=unit_id,
        previous_reading=previous_reading,
        meter_reading=reading,
        outgoing_usage=outgoing_usage,
        bill_year=year,
        bill_month=month,
        averaged_bill=averaged,
        breakdown=breakdown,
    )
