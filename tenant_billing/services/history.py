"""Bill history (audit trail) helpers."""

import json
from decimal import Decimal
from typing import Any

from sqlalchemy.orm import Session

from tenant_billing.core.exceptions import UnitBillNotFound
from tenant_billing.models.bill_history import BillHistory
from tenant_billing.models.enums import HistoryAction
from tenant_billing.models.fees import FEE_FIELDS
from tenant_billing.models.unit_bill import UnitBill
from tenant_billing.schemas.billing import BillHistoryResponse

SNAPSHOT_FIELDS: tuple[str, ...] = (
    "usage_amount",
    "usage_rate",
    *FEE_FIELDS,
    "total_amount",
    "payment_status",
)


def _json_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    return value


def snapshot(bill: UnitBill, **extra: Any) -> dict[str, Any]:
    """Capture the billable fields of a unit bill as JSON-safe values."""
    values = {name: _json_value(getattr(bill, name)) for name in SNAPSHOT_FIELDS}
    values.update({key: _json_value(value) for key, value in extra.items()})
    return values


def new_history_entry(
    unit_bill_id: int,
    action: HistoryAction,
    changed_by: int | None,
    old_values: dict[str, Any] | None = None,
    new_values: dict[str, Any] | None = None,
    edit_reason: str | None = None,
) -> BillHistory:
    """Build (but do not persist) one audit entry."""
    return BillHistory(
        unit_bill_id=unit_bill_id,
        action=action,
        edit_reason=edit_reason,
        old_values=json.dumps(old_values) if old_values is not None else None,
        new_values=json.dumps(new_values) if new_values is not None else None,
        changed_by=changed_by,
    )


def get_history(db: Session, unit_bill_id: int) -> list[BillHistory]:
    """Audit entries for a unit bill, newest first.

    Entries stay readable after the bill itself was deleted by a rollback, so
    an unknown id only fails when there is no history either.
    """
    entries = (
        db.query(BillHistory)
        .filter(BillHistory.unit_bill_id == unit_bill_id)
        .order_by(BillHistory.changed_at.desc(), BillHistory.id.desc())
        .all()
    )
    if not entries and db.get(UnitBill, unit_bill_id) is None:
        raise UnitBillNotFound()
    return entries


def history_to_response(entry: BillHistory) -> BillHistoryResponse:
    """Convert a BillHistory model to a response schema."""
    return BillHistoryResponse(
        id=entry.id,
        unit_bill_id=entry.unit_bill_id,
        action=entry.action,
        edit_reason=entry.edit_reason,
        old_values=entry.get_old_values(),
        new_values=entry.get_new_values(),
        changed_by=entry.changed_by,
        changed_at=entry.changed_at,
    )
