"""Move-out settlement service.

A settlement records a tenant leaving mid-cycle: the estimated move-out
bill, the tenant and unit state changes and, optionally, the next tenant
moving in. Creating and rolling back a settlement each run as one unit of
work so a failure part-way leaves no trace.
"""

import logging
from datetime import UTC, datetime

from sqlalchemy import func
from sqlalchemy.orm import Session

from tenant_billing.core.exceptions import (
    AlreadyCancelled,
    AlreadyRegistered,
    InvalidStatusTransition,
    LaterSettlementExists,
    PaidBillsBlockRollback,
    SettlementNotFound,
    UnitNotFound,
    UnitReoccupied,
)
from tenant_billing.models.enums import (
    BillType,
    HistoryAction,
    PaymentStatus,
    SettlementStatus,
    TenantStatus,
    UnitStatus,
)
from tenant_billing.models.move_settlement import MoveSettlement
from tenant_billing.models.tenant import Tenant
from tenant_billing.models.unit import Unit
from tenant_billing.models.unit_bill import UnitBill
from tenant_billing.schemas.settlement import (
    BillingMonth,
    MoveOutSettlementCreate,
    MoveSettlementFilters,
    MoveSettlementList,
    MoveSettlementResponse,
    SettlementTenantInfo,
)
from tenant_billing.schemas.unit import TenantCreate
from tenant_billing.services.billing_period import period_start
from tenant_billing.services.building_bill import get_building_bill_for_period
from tenant_billing.services.estimation import estimate
from tenant_billing.services.history import new_history_entry, snapshot
from tenant_billing.services.unit import (
    build_tenant,
    get_active_tenants,
    get_single_active_tenant,
    occupancy_for,
)
from tenant_billing.services.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


def _append_note(existing: str | None, note: str) -> str:
    return f"{existing}\n{note}" if existing else note


def _timestamp() -> str:
    return datetime.now(UTC).strftime("%Y-%m-%d %H:%M")


def _register_incoming(
    uow: UnitOfWork,
    settlement: MoveSettlement,
    unit: Unit,
    data: TenantCreate,
) -> Tenant:
    """Queue the incoming tenant and the unit/settlement changes it implies."""
    tenant = uow.insert(build_tenant(unit, data))
    uow.update(
        settlement,
        incoming_tenant=tenant,
        incoming_period_start=data.move_in_date,
        incoming_meter_reading=data.move_in_reading,
    )
    uow.update(unit, **occupancy_for(tenant))
    return tenant


def get_settlement(db: Session, settlement_id: int) -> MoveSettlement:
    """Get a settlement by ID."""
    settlement = db.get(MoveSettlement, settlement_id)
    if not settlement:
        raise SettlementNotFound()
    return settlement


def create_move_out(
    db: Session,
    request: MoveOutSettlementCreate,
    user_id: int | None = None,
) -> MoveSettlement:
    """Record a move-out with its estimated bill.

    Fails without writing anything when the unit is unknown, the unit does
    not have exactly one active tenant, or the estimate cannot be made.
    """
    with UnitOfWork(db) as uow:
        unit = db.get(Unit, request.unit_id)
        if not unit:
            raise UnitNotFound()

        tenant = get_single_active_tenant(db, unit.id, lock=True)
        estimation = estimate(
            db,
            unit.id,
            request.meter_reading,
            as_of=request.settlement_date,
            tenant_id=tenant.id,
        )
        breakdown = estimation.breakdown

        settlement = MoveSettlement(
            unit=unit,
            settlement_date=request.settlement_date,
            bill_year=estimation.bill_year,
            bill_month=estimation.bill_month,
            outgoing_tenant=tenant,
            outgoing_period_start=period_start(estimation.bill_year, estimation.bill_month),
            outgoing_period_end=request.settlement_date,
            outgoing_meter_reading=estimation.meter_reading,
            outgoing_usage=estimation.outgoing_usage,
            estimated_total_usage=estimation.averaged_bill.total_usage,
            estimated_total_amount=estimation.averaged_bill.total_amount,
            status=SettlementStatus.PENDING,
            notes=request.notes,
            created_by=user_id,
        )
        settlement.set_base_months(
            [(m.year, m.month) for m in estimation.averaged_bill.base_months]
        )
        uow.insert(settlement)

        # The move-out bill hangs off the cycle's building bill when it exists
        building_bill = get_building_bill_for_period(
            db, estimation.bill_year, estimation.bill_month
        )
        move_out_bill = None
        if building_bill is not None:
            move_out_bill = uow.insert(
                UnitBill(
                    building_bill=building_bill,
                    unit=unit,
                    tenant=tenant,
                    move_settlement=settlement,
                    tenant_name_snapshot=tenant.name,
                    bill_type=BillType.MOVE_OUT,
                    is_estimated=True,
                    billing_period_start=settlement.outgoing_period_start,
                    billing_period_end=request.settlement_date,
                    previous_reading=estimation.previous_reading,
                    current_reading=estimation.meter_reading,
                    due_date=building_bill.due_date,
                    notes=request.notes,
                    **breakdown.model_dump(),
                )
            )

        uow.update(
            tenant,
            status=TenantStatus.MOVED_OUT,
            move_out_date=request.settlement_date,
            move_out_reading=estimation.meter_reading,
        )

        if request.incoming_tenant is not None:
            _register_incoming(uow, settlement, unit, request.incoming_tenant)
        else:
            uow.update(
                unit,
                tenant_name=None,
                contact=None,
                email=None,
                status=UnitStatus.VACANT,
                move_out_date=request.settlement_date,
            )

        if move_out_bill is not None:
            uow.flush()
            uow.insert(
                new_history_entry(
                    move_out_bill.id,
                    HistoryAction.CREATED,
                    user_id,
                    new_values=snapshot(move_out_bill, bill_type=BillType.MOVE_OUT.value),
                    edit_reason="Move-out settlement",
                )
            )

    logger.info(
        "Created move settlement %s for unit %s (%s-%02d): usage %s, estimated total %s",
        settlement.id,
        unit.unit_number,
        settlement.bill_year,
        settlement.bill_month,
        estimation.outgoing_usage,
        breakdown.total_amount,
    )
    return settlement


def register_incoming(db: Session, settlement_id: int, data: TenantCreate) -> MoveSettlement:
    """Attach an incoming tenant to a settlement recorded without one."""
    settlement = db.get(MoveSettlement, settlement_id)
    if not settlement or settlement.status == SettlementStatus.CANCELLED:
        raise SettlementNotFound()
    if settlement.incoming_tenant_id is not None:
        raise AlreadyRegistered()

    with UnitOfWork(db) as uow:
        tenant = _register_incoming(uow, settlement, settlement.unit, data)

    logger.info("Registered incoming tenant %s for settlement %s", tenant.id, settlement.id)
    return settlement


def set_status(db: Session, settlement_id: int, new_status: SettlementStatus) -> MoveSettlement:
    """Mark a pending settlement completed or cancelled.

    Only the flag changes; use ``rollback`` to undo a settlement's effects.
    """
    settlement = get_settlement(db, settlement_id)
    if settlement.status != SettlementStatus.PENDING or new_status == SettlementStatus.PENDING:
        raise InvalidStatusTransition(
            f"Cannot change settlement status from {SettlementStatus(settlement.status).value} "
            f"to {new_status.value}"
        )

    with UnitOfWork(db) as uow:
        uow.update(settlement, status=new_status)

    logger.info("Settlement %s marked %s", settlement_id, new_status.value)
    return settlement


def _rollback_bills(db: Session, settlement: MoveSettlement) -> list[UnitBill]:
    """Bills a rollback removes: the settlement's own and the incoming tenant's move-in bills."""
    bills = {bill.id: bill for bill in settlement.unit_bills}
    if settlement.incoming_tenant_id is not None:
        move_in = db.query(UnitBill).filter(
            UnitBill.tenant_id == settlement.incoming_tenant_id,
            UnitBill.unit_id == settlement.unit_id,
            UnitBill.bill_type == BillType.MOVE_IN,
        )
        bills.update({bill.id: bill for bill in move_in})
    return list(bills.values())


def rollback(db: Session, settlement_id: int, user_id: int | None = None) -> MoveSettlement:
    """Undo a settlement and every change it made.

    Bills are deleted (their history survives), the outgoing tenant becomes
    active again, the incoming tenant is removed or demoted, and the unit is
    handed back to the outgoing tenant. The settlement row is kept and
    marked cancelled.

    Paid bills block the rollback, and so does later activity on the unit:
    a newer settlement that is not cancelled, or an active tenant other than
    this settlement's incoming tenant.
    """
    settlement = get_settlement(db, settlement_id)
    if settlement.status == SettlementStatus.CANCELLED:
        raise AlreadyCancelled()

    later = (
        db.query(MoveSettlement.id)
        .filter(
            MoveSettlement.unit_id == settlement.unit_id,
            MoveSettlement.id > settlement.id,
            MoveSettlement.status != SettlementStatus.CANCELLED,
        )
        .order_by(MoveSettlement.id)
        .all()
    )
    if later:
        raise LaterSettlementExists(
            f"Settlement {settlement_id} is followed by settlements "
            f"{[row.id for row in later]} on the same unit; roll those back first"
        )

    bills = _rollback_bills(db, settlement)
    paid = [bill.id for bill in bills if bill.payment_status == PaymentStatus.PAID]
    if paid:
        raise PaidBillsBlockRollback(
            f"Settlement {settlement_id} has paid bills {paid}; refund them before rolling back"
        )

    removed_ids = {bill.id for bill in bills}
    outgoing = settlement.outgoing_tenant
    incoming = settlement.incoming_tenant
    stamp = _timestamp()

    with UnitOfWork(db) as uow:
        own_ids = {settlement.outgoing_tenant_id, settlement.incoming_tenant_id}
        others = [
            tenant.id
            for tenant in get_active_tenants(db, settlement.unit_id, lock=True)
            if tenant.id not in own_ids
        ]
        if others:
            raise UnitReoccupied(
                f"Unit {settlement.unit.unit_number} has active tenants {others} who moved in "
                f"after settlement {settlement_id}; move them out before rolling back"
            )

        for bill in bills:
            uow.insert(
                new_history_entry(
                    bill.id,
                    HistoryAction.DELETED,
                    user_id,
                    old_values=snapshot(bill, bill_type=bill.bill_type),
                    edit_reason=f"Settlement {settlement_id} rolled back",
                )
            )
            uow.delete(bill)

        uow.update(
            outgoing,
            status=TenantStatus.ACTIVE,
            move_out_date=None,
            move_out_reading=None,
        )

        if incoming is not None:
            other_bills = (
                db.query(func.count(UnitBill.id))
                .filter(UnitBill.tenant_id == incoming.id, UnitBill.id.not_in(removed_ids))
                .scalar()
            )
            # Cancelled later settlements still name the tenant as outgoing
            outgoing_in = (
                db.query(func.count(MoveSettlement.id))
                .filter(MoveSettlement.outgoing_tenant_id == incoming.id)
                .scalar()
            )
            if other_bills or outgoing_in:
                uow.update(
                    incoming,
                    status=TenantStatus.MOVED_OUT,
                    notes=_append_note(
                        incoming.notes,
                        f"[{stamp}] Move-in cancelled by settlement {settlement_id} rollback",
                    ),
                )
            else:
                uow.update(settlement, incoming_tenant=None)
                uow.delete(incoming)

        uow.update(settlement.unit, **occupancy_for(outgoing))
        uow.update(
            settlement,
            status=SettlementStatus.CANCELLED,
            notes=_append_note(settlement.notes, f"[{stamp}] Rolled back"),
        )

    logger.info(
        "Rolled back settlement %s: removed %d bills, restored tenant %s",
        settlement_id,
        len(removed_ids),
        outgoing.id,
    )
    return settlement


def list_settlements(db: Session, filters: MoveSettlementFilters) -> MoveSettlementList:
    """Settlements matching the filters, newest settlement date first."""
    query = db.query(MoveSettlement).join(Unit, MoveSettlement.unit_id == Unit.id)

    if filters.unit_number:
        query = query.filter(Unit.unit_number == filters.unit_number)
    if filters.status:
        query = query.filter(MoveSettlement.status == filters.status)

    period_key = MoveSettlement.bill_year * 100 + MoveSettlement.bill_month
    if filters.start_period:
        year, month = (int(part) for part in filters.start_period.split("-"))
        query = query.filter(period_key >= year * 100 + month)
    if filters.end_period:
        year, month = (int(part) for part in filters.end_period.split("-"))
        query = query.filter(period_key <= year * 100 + month)

    total = query.count()
    settlements = (
        query.order_by(MoveSettlement.settlement_date.desc(), MoveSettlement.id.desc())
        .offset((filters.page - 1) * filters.limit)
        .limit(filters.limit)
        .all()
    )
    return MoveSettlementList(
        items=[settlement_to_response(s) for s in settlements],
        total=total,
        page=filters.page,
        limit=filters.limit,
    )


def settlement_to_response(settlement: MoveSettlement) -> MoveSettlementResponse:
    """Convert a MoveSettlement model to a response schema."""
    outgoing = settlement.outgoing_tenant
    incoming = settlement.incoming_tenant
    move_out_bill = next(
        (b for b in settlement.unit_bills if b.bill_type == BillType.MOVE_OUT), None
    )

    return MoveSettlementResponse(
        id=settlement.id,
        unit_id=settlement.unit_id,
        unit_number=settlement.unit.unit_number,
        settlement_date=settlement.settlement_date,
        bill_year=settlement.bill_year,
        bill_month=settlement.bill_month,
        status=settlement.status,
        outgoing_tenant=SettlementTenantInfo(
            tenant_id=outgoing.id,
            name=outgoing.name,
            contact=outgoing.contact,
            period_start=settlement.outgoing_period_start,
            period_end=settlement.outgoing_period_end,
            meter_reading=settlement.outgoing_meter_reading,
            usage=settlement.outgoing_usage,
        ),
        incoming_tenant=(
            SettlementTenantInfo(
                tenant_id=incoming.id,
                name=incoming.name,
                contact=incoming.contact,
                period_start=settlement.incoming_period_start,
                meter_reading=settlement.incoming_meter_reading,
            )
            if incoming is not None
            else None
        ),
        estimated_total_usage=settlement.estimated_total_usage,
        estimated_total_amount=settlement.estimated_total_amount,
        estimation_base_months=[
            BillingMonth(year=year, month=month) for year, month in settlement.get_base_months()
        ],
        move_out_bill_id=move_out_bill.id if move_out_bill else None,
        move_out_bill_total=move_out_bill.total_amount if move_out_bill else None,
        notes=settlement.notes,
        created_at=settlement.created_at,
    )
