"""Unit and tenant registry."""

from sqlalchemy.orm import Session

from tenant_billing.core.exceptions import (
    DuplicateUnit,
    NoActiveTenant,
    UnitNotFound,
    UnitOccupied,
)
from tenant_billing.models.enums import TenantStatus, UnitStatus
from tenant_billing.models.tenant import Tenant
from tenant_billing.models.unit import Unit
from tenant_billing.schemas.unit import TenantCreate, UnitCreate


def create_unit(db: Session, data: UnitCreate) -> Unit:
    """Create a vacant unit."""
    existing = db.query(Unit).filter(Unit.unit_number == data.unit_number).first()
    if existing:
        raise DuplicateUnit(f"Unit '{data.unit_number}' already exists")

    unit = Unit(unit_number=data.unit_number, status=UnitStatus.VACANT)
    db.add(unit)
    db.commit()
    db.refresh(unit)
    return unit


def get_unit(db: Session, unit_id: int) -> Unit:
    """Get a unit by ID."""
    unit = db.get(Unit, unit_id)
    if not unit:
        raise UnitNotFound()
    return unit


def get_units(db: Session) -> list[Unit]:
    return db.query(Unit).order_by(Unit.unit_number).all()


def get_active_tenants(db: Session, unit_id: int, lock: bool = False) -> list[Tenant]:
    """Active tenants of a unit; ``lock`` selects them FOR UPDATE where supported."""
    query = db.query(Tenant).filter(
        Tenant.unit_id == unit_id,
        Tenant.status == TenantStatus.ACTIVE,
    )
    if lock:
        query = query.with_for_update()
    return query.order_by(Tenant.id).all()


def get_single_active_tenant(db: Session, unit_id: int, lock: bool = False) -> Tenant:
    """The unit's only active tenant, or NoActiveTenant for zero or several."""
    tenants = get_active_tenants(db, unit_id, lock=lock)
    if len(tenants) != 1:
        raise NoActiveTenant(
            f"Unit {unit_id} has {len(tenants)} active tenants; exactly one is required"
        )
    return tenants[0]


def build_tenant(unit: Unit, data: TenantCreate) -> Tenant:
    """New active tenant for a unit (not yet added to a session)."""
    return Tenant(
        unit=unit,
        name=data.name,
        contact=data.contact,
        email=data.email,
        status=TenantStatus.ACTIVE,
        move_in_date=data.move_in_date,
        move_in_reading=data.move_in_reading,
    )


def occupancy_for(tenant: Tenant) -> dict:
    """Unit occupancy fields describing ``tenant`` as the current occupant."""
    return {
        "tenant_name": tenant.name,
        "contact": tenant.contact,
        "email": tenant.email,
        "status": UnitStatus.OCCUPIED,
        "move_in_date": tenant.move_in_date,
        "move_out_date": None,
    }


def register_tenant(db: Session, unit_id: int, data: TenantCreate) -> Tenant:
    """Move a first tenant into a vacant unit outside of any settlement."""
    unit = get_unit(db, unit_id)
    if get_active_tenants(db, unit_id):
        raise UnitOccupied(f"Unit {unit.unit_number} already has an active tenant")

    tenant = build_tenant(unit, data)
    db.add(tenant)
    for name, value in occupancy_for(tenant).items():
        setattr(unit, name, value)
    db.commit()
    db.refresh(tenant)
    return tenant
