"""Shared fixtures: an isolated in-memory database per test."""

import os

# Keep the application engine off the working directory's database file
os.environ.setdefault("DATABASE_URL", "sqlite://")

from collections.abc import Callable, Iterator
from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from tenant_billing.core.database import Base, get_db
from tenant_billing.main import app
from tenant_billing.models.building_bill import BuildingBill
from tenant_billing.models.tenant import Tenant
from tenant_billing.models.unit import Unit
from tenant_billing.schemas.unit import TenantCreate, UnitCreate
from tenant_billing.services import unit as unit_service

# Invoice used throughout the allocation tests
BUILDING_FEES = {
    "basic_fee": Decimal("1397760"),
    "power_fee": Decimal("3482120"),
    "climate_fee": Decimal("98540"),
    "fuel_fee": Decimal("0"),
    "power_factor_fee": Decimal("0"),
    "vat": Decimal("497842"),
    "power_fund": Decimal("149000"),
}
BUILDING_USAGE = Decimal("25231")
BUILDING_TOTAL = Decimal("5625262")


@pytest.fixture
def session_factory() -> Iterator[sessionmaker]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory: sessionmaker) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory: sessionmaker) -> Iterator[TestClient]:
    """Test client whose requests use the per-test database."""

    def override_get_db() -> Iterator[Session]:
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_building_bill(db: Session) -> Callable[..., BuildingBill]:
    """Factory for building bills; fees default to BUILDING_FEES."""

    def _make(year: int, month: int, **overrides) -> BuildingBill:
        values = {
            **BUILDING_FEES,
            "total_usage": BUILDING_USAGE,
            "total_amount": BUILDING_TOTAL,
            "round_down": Decimal("2"),
            "billing_period_start": date(year, month, 9),
            "due_date": date(year, month, 28),
        }
        values.update(overrides)
        bill = BuildingBill(bill_year=year, bill_month=month, **values)
        db.add(bill)
        db.commit()
        db.refresh(bill)
        return bill

    return _make


@pytest.fixture
def make_occupied_unit(db: Session) -> Callable[..., tuple[Unit, Tenant]]:
    """Factory for a unit with one active tenant."""

    def _make(
        unit_number: str = "101",
        name: str = "Kim Minji",
        move_in_reading: Decimal = Decimal("1000"),
        move_in_date: date = date(2025, 3, 1),
    ) -> tuple[Unit, Tenant]:
        unit = unit_service.create_unit(db, UnitCreate(unit_number=unit_number))
        tenant = unit_service.register_tenant(
            db,
            unit.id,
            TenantCreate(
                name=name,
                contact="010-1234-5678",
                email=f"{unit_number}@example.com",
                move_in_date=move_in_date,
                move_in_reading=move_in_reading,
            ),
        )
        db.refresh(unit)
        return unit, tenant

    return _make
