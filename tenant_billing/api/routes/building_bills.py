"""Building bill routes: record invoices, allocate them, edit unit shares."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from tenant_billing.core.database import get_db
from tenant_billing.schemas.billing import (
    BuildingAllocationRequest,
    BuildingAllocationResult,
    BuildingBillCreate,
    BuildingBillResponse,
)
from tenant_billing.schemas.unit_bill_edit import UnitBillEditRequest, UnitBillEditResult
from tenant_billing.services import allocation as allocation_service
from tenant_billing.services import building_bill as building_bill_service
from tenant_billing.services import unit_bill_edit as edit_service

router = APIRouter(prefix="/building-bills", tags=["building-bills"])


@router.post("/", response_model=BuildingBillResponse, status_code=status.HTTP_201_CREATED)
def create_building_bill(
    data: BuildingBillCreate,
    db: Session = Depends(get_db),
) -> BuildingBillResponse:
    """Record the building's invoice for one billing cycle."""
    bill = building_bill_service.create_building_bill(db, data)
    return BuildingBillResponse.model_validate(bill)


@router.get("/", response_model=list[BuildingBillResponse])
def list_building_bills(
    limit: int = Query(24, ge=1, le=120),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
) -> list[BuildingBillResponse]:
    """List building bills, newest cycle first."""
    bills = building_bill_service.get_building_bills(db, limit=limit, offset=offset)
    return [BuildingBillResponse.model_validate(b) for b in bills]


@router.get("/{building_bill_id}", response_model=BuildingBillResponse)
def get_building_bill(
    building_bill_id: int,
    db: Session = Depends(get_db),
) -> BuildingBillResponse:
    """Get a building bill by ID."""
    bill = building_bill_service.get_building_bill(db, building_bill_id)
    return BuildingBillResponse.model_validate(bill)


@router.post("/{building_bill_id}/allocate", response_model=BuildingAllocationResult)
def allocate_building_bill(
    building_bill_id: int,
    data: BuildingAllocationRequest,
    db: Session = Depends(get_db),
) -> BuildingAllocationResult:
    """Split a building bill across units by usage.

    Replaces earlier regular unit bills of this building bill; paid ones
    are only replaced with ``force``. Each fee is allocated as:

        fee = round(building_fee * unit_usage / building_usage, ROUNDING_UNIT)

    The result reports how far the unit totals drift from the building
    total and whether that drift is within rounding tolerance.
    """
    return allocation_service.allocate_building(
        db, building_bill_id, data.usages, data.notes, force=data.force
    )


@router.patch(
    "/{building_bill_id}/unit-bills/{unit_bill_id}",
    response_model=UnitBillEditResult,
)
def edit_unit_bill(
    building_bill_id: int,
    unit_bill_id: int,
    data: UnitBillEditRequest,
    db: Session = Depends(get_db),
) -> UnitBillEditResult:
    """Edit one unit's share proportionally or with manual figures."""
    return edit_service.edit_unit_bill(db, unit_bill_id, building_bill_id, data)
