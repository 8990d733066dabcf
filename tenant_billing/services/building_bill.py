"""Building bill registry."""

import logging

from sqlalchemy import and_
from sqlalchemy.orm import Session

from tenant_billing.core.exceptions import BuildingBillNotFound, DuplicateBuildingBill
from tenant_billing.models.building_bill import BuildingBill
from tenant_billing.schemas.billing import BuildingBillCreate

logger = logging.getLogger(__name__)


def create_building_bill(db: Session, data: BuildingBillCreate) -> BuildingBill:
    """Record a building invoice for a billing cycle."""
    existing = get_building_bill_for_period(db, data.bill_year, data.bill_month)
    if existing:
        raise DuplicateBuildingBill(
            f"Building bill for {data.bill_year}-{data.bill_month:02d} already exists"
        )

    bill = BuildingBill(**data.model_dump())
    db.add(bill)
    db.commit()
    db.refresh(bill)
    logger.info(
        "Recorded building bill %s-%02d: usage %s, total %s",
        bill.bill_year,
        bill.bill_month,
        bill.total_usage,
        bill.total_amount,
    )
    return bill


def get_building_bill(db: Session, building_bill_id: int) -> BuildingBill:
    """Get a building bill by ID."""
    bill = db.get(BuildingBill, building_bill_id)
    if not bill:
        raise BuildingBillNotFound()
    return bill


def get_building_bill_for_period(db: Session, year: int, month: int) -> BuildingBill | None:
    return (
        db.query(BuildingBill)
        .filter(and_(BuildingBill.bill_year == year, BuildingBill.bill_month == month))
        .first()
    )


def get_building_bills(db: Session, limit: int = 24, offset: int = 0) -> list[BuildingBill]:
    """Building bills, newest cycle first."""
    return (
        db.query(BuildingBill)
        .order_by(BuildingBill.bill_year.desc(), BuildingBill.bill_month.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
