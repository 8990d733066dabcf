"""Allocation calculator: split a building bill across units by usage."""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from sqlalchemy.orm import Session

from tenant_billing.core.config import settings
from tenant_billing.core.exceptions import (
    BuildingBillNotFound,
    NegativeUsage,
    PaidBillsBlockReallocation,
    UsageExceedsBuildingTotal,
    ZeroBuildingUsage,
)
from tenant_billing.models.building_bill import BuildingBill
from tenant_billing.models.enums import BillType, HistoryAction, PaymentStatus, TenantStatus
from tenant_billing.models.fees import FEE_FIELDS
from tenant_billing.models.tenant import Tenant
from tenant_billing.models.unit import Unit
from tenant_billing.models.unit_bill import UnitBill
from tenant_billing.schemas.billing import (
    BuildingAllocationResult,
    FeeBreakdown,
    UnitAllocationLine,
    UnitUsageInput,
)
from tenant_billing.services.history import new_history_entry, snapshot
from tenant_billing.services.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


def to_decimal(value: Any) -> Decimal:
    """Coerce a stored or submitted amount to Decimal; None counts as zero."""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_to_unit(amount: Decimal, unit: int) -> Decimal:
    """Round to the nearest multiple of ``unit``, halves away from zero.

    Sign-symmetric, so a -15 credit rounds to -20 just as 15 rounds to 20.
    """
    step = Decimal(unit)
    rounded = (amount / step).quantize(Decimal("1"), rounding=ROUND_HALF_UP) * step
    # Collapse negative zero from zero-usage credits
    return rounded if rounded else Decimal("0")


def allocate(
    building_bill: Any,
    unit_usage: Decimal,
    rounding_unit: int | None = None,
) -> FeeBreakdown:
    """Compute one unit's share of a building bill.

    ``building_bill`` may be any object exposing ``total_usage`` and the seven
    fee attributes: a ``BuildingBill`` row or an averaged estimate.

        usage_rate = unit_usage / total_usage
        fee        = round_to_unit(building_fee * usage_rate)
        total      = sum(fee components)

    The total is the sum of already-rounded components; it is not rounded
    again. Any residual against the building total stays at building level.
    """
    unit = rounding_unit or settings.ROUNDING_UNIT
    total_usage = to_decimal(building_bill.total_usage)
    usage = to_decimal(unit_usage)

    if total_usage <= 0:
        raise ZeroBuildingUsage()
    if usage < 0:
        raise NegativeUsage(f"Unit usage cannot be negative ({usage})")
    if usage > total_usage:
        raise UsageExceedsBuildingTotal(
            f"Unit usage {usage} is greater than the building total {total_usage}"
        )

    ratio = usage / total_usage
    fees = {
        name: round_to_unit(to_decimal(getattr(building_bill, name)) * ratio, unit)
        for name in FEE_FIELDS
    }
    return FeeBreakdown(
        usage_amount=usage,
        usage_rate=ratio,
        total_amount=sum(fees.values(), Decimal("0")),
        **fees,
    )


def conservation_tolerance(unit_count: int, rounding_unit: int | None = None) -> Decimal:
    """Largest drift per-component rounding can introduce across ``unit_count`` units."""
    unit = Decimal(rounding_unit or settings.ROUNDING_UNIT)
    return unit / 2 * len(FEE_FIELDS) * unit_count


def allocate_building(
    db: Session,
    building_bill_id: int,
    usages: list[UnitUsageInput],
    notes: str | None = None,
    user_id: int | None = None,
    force: bool = False,
) -> BuildingAllocationResult:
    """Allocate a building bill across a usage list and save the regular bills.

    Earlier regular bills of the same building bill are replaced; settlement
    bills (move-out / move-in) are left alone. A paid earlier bill blocks the
    run unless ``force`` is set. Unknown unit numbers are skipped and
    reported.
    """
    building_bill = db.get(BuildingBill, building_bill_id)
    if not building_bill:
        raise BuildingBillNotFound()

    # Validate the whole list before touching anything
    breakdowns = [(row, allocate(building_bill, row.usage)) for row in usages]

    units = {
        u.unit_number: u
        for u in db.query(Unit).filter(Unit.unit_number.in_([row.unit_number for row in usages]))
    }
    active_tenants = {
        t.unit_id: t
        for t in db.query(Tenant).filter(
            Tenant.unit_id.in_([u.id for u in units.values()]),
            Tenant.status == TenantStatus.ACTIVE,
        )
    }
    stale = (
        db.query(UnitBill)
        .filter(
            UnitBill.building_bill_id == building_bill_id,
            UnitBill.bill_type == BillType.REGULAR,
        )
        .all()
    )
    paid = [bill.id for bill in stale if bill.payment_status == PaymentStatus.PAID]
    if paid and not force:
        raise PaidBillsBlockReallocation(
            f"Building bill {building_bill_id} has paid unit bills {paid}; "
            "pass force to reallocate anyway"
        )
    if paid:
        logger.warning(
            "Forced reallocation of building bill %s discards paid unit bills %s",
            building_bill_id,
            paid,
        )

    saved: list[tuple[UnitBill, str]] = []
    skipped: list[str] = []
    with UnitOfWork(db) as uow:
        for old in stale:
            uow.insert(
                new_history_entry(
                    old.id, HistoryAction.DELETED, user_id, old_values=snapshot(old)
                )
            )
            uow.delete(old)

        for row, breakdown in breakdowns:
            unit = units.get(row.unit_number)
            if unit is None:
                logger.warning(
                    "Unit %s not found, skipping allocation for building bill %s",
                    row.unit_number,
                    building_bill_id,
                )
                skipped.append(row.unit_number)
                continue

            tenant = active_tenants.get(unit.id)
            bill = UnitBill(
                building_bill=building_bill,
                unit=unit,
                tenant=tenant,
                tenant_name_snapshot=tenant.name if tenant else unit.tenant_name,
                bill_type=BillType.REGULAR,
                billing_period_start=building_bill.billing_period_start,
                billing_period_end=building_bill.billing_period_end,
                previous_reading=row.previous_reading,
                current_reading=row.current_reading,
                due_date=building_bill.due_date,
                notes=notes,
                **breakdown.model_dump(),
            )
            uow.insert(bill)
            saved.append((bill, unit.unit_number))

        # History rows need the generated bill ids
        uow.flush()
        for bill, _ in saved:
            uow.insert(
                new_history_entry(
                    bill.id, HistoryAction.CREATED, user_id, new_values=snapshot(bill)
                )
            )

    lines = [
        UnitAllocationLine(
            unit_bill_id=bill.id,
            unit_number=unit_number,
            usage_amount=bill.usage_amount,
            usage_rate=bill.usage_rate,
            total_amount=bill.total_amount,
        )
        for bill, unit_number in saved
    ]
    calculated_total = sum((line.total_amount for line in lines), Decimal("0"))
    allocated_usage = sum((line.usage_amount for line in lines), Decimal("0"))
    target_total = to_decimal(building_bill.total_amount) - to_decimal(building_bill.round_down)
    difference = target_total - calculated_total
    tolerance = conservation_tolerance(len(lines))

    logger.info(
        "Allocated building bill %s/%s across %d units: calculated %s, target %s, difference %s",
        building_bill.bill_year,
        building_bill.bill_month,
        len(lines),
        calculated_total,
        target_total,
        difference,
    )

    return BuildingAllocationResult(
        building_bill_id=building_bill_id,
        lines=lines,
        skipped_units=skipped,
        allocated_usage=allocated_usage,
        calculated_total=calculated_total,
        target_total=target_total,
        difference=difference,
        tolerance=tolerance,
        is_balanced=abs(difference) <= tolerance,
    )
