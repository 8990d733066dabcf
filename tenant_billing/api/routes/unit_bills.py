"""Unit bill routes: payments and audit history."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tenant_billing.core.database import get_db
from tenant_billing.schemas.billing import BillHistoryResponse, PaymentUpdate, UnitBillResponse
from tenant_billing.services import history as history_service
from tenant_billing.services import unit_bill_edit as edit_service

router = APIRouter(prefix="/unit-bills", tags=["unit-bills"])


@router.get("/{unit_bill_id}", response_model=UnitBillResponse)
def get_unit_bill(
    unit_bill_id: int,
    db: Session = Depends(get_db),
) -> UnitBillResponse:
    """Get a unit bill by ID."""
    return edit_service.unit_bill_to_response(edit_service.get_unit_bill(db, unit_bill_id))


@router.patch("/{unit_bill_id}/payment", response_model=UnitBillResponse)
def update_payment(
    unit_bill_id: int,
    data: PaymentUpdate,
    db: Session = Depends(get_db),
) -> UnitBillResponse:
    """Record a payment or change the payment status."""
    bill = edit_service.update_payment(db, unit_bill_id, data)
    return edit_service.unit_bill_to_response(bill)


@router.get("/{unit_bill_id}/history", response_model=list[BillHistoryResponse])
def get_unit_bill_history(
    unit_bill_id: int,
    db: Session = Depends(get_db),
) -> list[BillHistoryResponse]:
    """Audit trail of a unit bill, newest first.

    Also available for bills removed by a settlement rollback.
    """
    entries = history_service.get_history(db, unit_bill_id)
    return [history_service.history_to_response(e) for e in entries]
