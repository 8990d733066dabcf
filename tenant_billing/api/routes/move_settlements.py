"""Move-out settlement routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from tenant_billing.core.database import get_db
from tenant_billing.schemas.settlement import (
    EstimatePreviewRequest,
    EstimationResult,
    MoveOutSettlementCreate,
    MoveSettlementFilters,
    MoveSettlementList,
    MoveSettlementResponse,
    SettlementStatusUpdate,
)
from tenant_billing.schemas.unit import TenantCreate
from tenant_billing.services import estimation as estimation_service
from tenant_billing.services import settlement as settlement_service

router = APIRouter(prefix="/move-settlements", tags=["move-settlements"])


@router.post("/estimate", response_model=EstimationResult)
def preview_estimate(
    data: EstimatePreviewRequest,
    db: Session = Depends(get_db),
) -> EstimationResult:
    """Preview a move-out bill without saving anything.

    The building bill is averaged over the last ESTIMATION_WINDOW_MONTHS
    cycles before the settlement's cycle and allocated to the usage since
    the previous reading.
    """
    return estimation_service.estimate(
        db, data.unit_id, data.meter_reading, as_of=data.settlement_date
    )


@router.post("/", response_model=MoveSettlementResponse, status_code=status.HTTP_201_CREATED)
def create_settlement(
    data: MoveOutSettlementCreate,
    db: Session = Depends(get_db),
) -> MoveSettlementResponse:
    """Record a move-out, optionally with the incoming tenant."""
    settlement = settlement_service.create_move_out(db, data)
    return settlement_service.settlement_to_response(settlement)


@router.get("/", response_model=MoveSettlementList)
def list_settlements(
    filters: Annotated[MoveSettlementFilters, Query()],
    db: Session = Depends(get_db),
) -> MoveSettlementList:
    """List settlements, filtered by unit, status and billing period (YYYY-M)."""
    return settlement_service.list_settlements(db, filters)


@router.get("/{settlement_id}", response_model=MoveSettlementResponse)
def get_settlement(
    settlement_id: int,
    db: Session = Depends(get_db),
) -> MoveSettlementResponse:
    """Get a settlement by ID."""
    settlement = settlement_service.get_settlement(db, settlement_id)
    return settlement_service.settlement_to_response(settlement)


@router.post("/{settlement_id}/incoming-tenant", response_model=MoveSettlementResponse)
def register_incoming_tenant(
    settlement_id: int,
    data: TenantCreate,
    db: Session = Depends(get_db),
) -> MoveSettlementResponse:
    """Register the tenant moving in after a recorded move-out."""
    settlement = settlement_service.register_incoming(db, settlement_id, data)
    return settlement_service.settlement_to_response(settlement)


@router.patch("/{settlement_id}/status", response_model=MoveSettlementResponse)
def update_status(
    settlement_id: int,
    data: SettlementStatusUpdate,
    db: Session = Depends(get_db),
) -> MoveSettlementResponse:
    """Mark a pending settlement completed or cancelled (flag only)."""
    settlement = settlement_service.set_status(db, settlement_id, data.status)
    return settlement_service.settlement_to_response(settlement)


@router.post("/{settlement_id}/rollback", response_model=MoveSettlementResponse)
def rollback_settlement(
    settlement_id: int,
    db: Session = Depends(get_db),
) -> MoveSettlementResponse:
    """Undo a settlement: delete its bills and restore tenants and unit."""
    settlement = settlement_service.rollback(db, settlement_id)
    return settlement_service.settlement_to_response(settlement)
