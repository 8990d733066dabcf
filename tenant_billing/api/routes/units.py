"""Unit and tenant registry routes."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from tenant_billing.core.database import get_db
from tenant_billing.schemas.unit import TenantCreate, TenantResponse, UnitCreate, UnitResponse
from tenant_billing.services import unit as unit_service

router = APIRouter(prefix="/units", tags=["units"])


@router.post("/", response_model=UnitResponse, status_code=status.HTTP_201_CREATED)
def create_unit(
    data: UnitCreate,
    db: Session = Depends(get_db),
) -> UnitResponse:
    """Create a vacant unit."""
    unit = unit_service.create_unit(db, data)
    return UnitResponse.model_validate(unit)


@router.get("/", response_model=list[UnitResponse])
def list_units(db: Session = Depends(get_db)) -> list[UnitResponse]:
    """List all units with their current occupant."""
    return [UnitResponse.model_validate(u) for u in unit_service.get_units(db)]


@router.get("/{unit_id}", response_model=UnitResponse)
def get_unit(
    unit_id: int,
    db: Session = Depends(get_db),
) -> UnitResponse:
    """Get a unit by ID."""
    return UnitResponse.model_validate(unit_service.get_unit(db, unit_id))


@router.post(
    "/{unit_id}/tenants",
    response_model=TenantResponse,
    status_code=status.HTTP_201_CREATED,
)
def register_tenant(
    unit_id: int,
    data: TenantCreate,
    db: Session = Depends(get_db),
) -> TenantResponse:
    """Move a tenant into a vacant unit.

    Tenant changes on an occupied unit go through a move-out settlement.
    """
    tenant = unit_service.register_tenant(db, unit_id, data)
    return TenantResponse.model_validate(tenant)
