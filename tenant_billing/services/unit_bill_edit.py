"""Unit bill edits and payment updates.

Every change to a saved unit bill goes through here so that it leaves a
BillHistory entry with the values before and after.
"""

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy.orm import Session

from tenant_billing.core.config import settings
from tenant_billing.core.exceptions import BuildingBillNotFound, NegativeUsage, UnitBillNotFound
from tenant_billing.models.building_bill import BuildingBill
from tenant_billing.models.enums import EditMode, HistoryAction, PaymentStatus
from tenant_billing.models.fees import FEE_FIELDS
from tenant_billing.models.unit_bill import UnitBill
from tenant_billing.schemas.billing import PaymentUpdate, UnitBillResponse
from tenant_billing.schemas.unit_bill_edit import UnitBillEditRequest, UnitBillEditResult
from tenant_billing.services.allocation import allocate, to_decimal
from tenant_billing.services.history import new_history_entry, snapshot
from tenant_billing.services.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


def get_unit_bill(db: Session, unit_bill_id: int) -> UnitBill:
    """Get a unit bill by ID."""
    bill = db.get(UnitBill, unit_bill_id)
    if not bill:
        raise UnitBillNotFound()
    return bill


def _manual_values(
    building_bill: BuildingBill,
    request: UnitBillEditRequest,
) -> tuple[dict, list[str]]:
    """Fee values exactly as requested, plus a warning when they do not add up."""
    total_usage = to_decimal(building_bill.total_usage)
    values = {name: getattr(request, name) for name in FEE_FIELDS}
    values["usage_amount"] = request.usage_amount
    values["usage_rate"] = (
        request.usage_amount / total_usage if total_usage > 0 else Decimal("0")
    )
    values["total_amount"] = request.total_amount

    warnings = []
    component_sum = sum((values[name] for name in FEE_FIELDS), Decimal("0"))
    gap = component_sum - request.total_amount
    if abs(gap) > settings.EDIT_TOTAL_TOLERANCE:
        warnings.append(
            f"Fee components add up to {component_sum}, which differs from the "
            f"total {request.total_amount} by {gap}"
        )
    return values, warnings


def edit_unit_bill(
    db: Session,
    unit_bill_id: int,
    building_bill_id: int,
    request: UnitBillEditRequest,
    user_id: int | None = None,
) -> UnitBillEditResult:
    """Apply a proportional or manual edit to one unit bill.

    Proportional edits recompute every fee from the building bill for the
    new usage. Manual edits store the submitted figures; a mismatch between
    the components and the total is reported in ``warnings`` but not
    rejected.
    """
    bill = db.get(UnitBill, unit_bill_id)
    if not bill:
        raise UnitBillNotFound()
    building_bill = db.get(BuildingBill, building_bill_id)
    if not building_bill:
        raise BuildingBillNotFound()
    if bill.building_bill_id != building_bill.id:
        raise UnitBillNotFound(
            f"Unit bill {unit_bill_id} does not belong to building bill {building_bill_id}"
        )

    if (
        request.previous_reading is not None
        and request.current_reading is not None
        and request.current_reading < request.previous_reading
    ):
        raise NegativeUsage(
            f"Current reading ({request.current_reading}) is lower than "
            f"the previous reading ({request.previous_reading})"
        )

    warnings: list[str] = []
    if request.edit_mode == EditMode.PROPORTIONAL:
        values = allocate(building_bill, request.usage_amount).model_dump()
    else:
        values, warnings = _manual_values(building_bill, request)
        for warning in warnings:
            logger.warning("Manual edit of unit bill %s: %s", unit_bill_id, warning)

    if request.previous_reading is not None:
        values["previous_reading"] = request.previous_reading
    if request.current_reading is not None:
        values["current_reading"] = request.current_reading
    if request.notes is not None:
        values["notes"] = request.notes

    old_values = snapshot(bill)
    with UnitOfWork(db) as uow:
        uow.update(
            bill,
            is_manually_edited=True,
            edit_reason=request.edit_reason,
            **values,
        )
        uow.flush()
        entry = uow.insert(
            new_history_entry(
                bill.id,
                HistoryAction.UPDATED,
                user_id,
                old_values=old_values,
                new_values=snapshot(bill, edit_mode=request.edit_mode.value),
                edit_reason=request.edit_reason,
            )
        )

    logger.info(
        "Edited unit bill %s (%s): total %s -> %s",
        unit_bill_id,
        request.edit_mode.value,
        old_values["total_amount"],
        bill.total_amount,
    )

    return UnitBillEditResult(
        unit_bill=unit_bill_to_response(bill),
        history_id=entry.id,
        warnings=warnings,
    )


def update_payment(
    db: Session,
    unit_bill_id: int,
    data: PaymentUpdate,
    user_id: int | None = None,
) -> UnitBill:
    """Change the payment state of a unit bill.

    Marking a bill paid without a date records today; any other status
    clears the payment date.
    """
    bill = get_unit_bill(db, unit_bill_id)
    old_values = snapshot(bill)

    if data.payment_status == PaymentStatus.PAID:
        payment_date = data.payment_date or date.today()
        action = HistoryAction.PAID
    else:
        payment_date = None
        action = HistoryAction.UPDATED

    with UnitOfWork(db) as uow:
        uow.update(
            bill,
            payment_status=data.payment_status,
            payment_date=payment_date,
            payment_method=data.payment_method,
        )
        uow.flush()
        uow.insert(
            new_history_entry(
                bill.id,
                action,
                user_id,
                old_values=old_values,
                new_values=snapshot(
                    bill, payment_date=payment_date.isoformat() if payment_date else None
                ),
            )
        )

    logger.info("Unit bill %s payment status set to %s", unit_bill_id, data.payment_status.value)
    return bill


def unit_bill_to_response(bill: UnitBill) -> UnitBillResponse:
    """Convert a UnitBill model to a response schema."""
    return UnitBillResponse.model_validate(bill)
