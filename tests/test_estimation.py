"""Tests for move-out estimation."""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.orm import Session

from tenant_billing.core.exceptions import (
    NegativeUsage,
    NoHistoricalData,
    UnitNotFound,
    ZeroBuildingUsage,
)
from tenant_billing.schemas.billing import UnitUsageInput
from tenant_billing.schemas.unit import UnitCreate
from tenant_billing.services import unit as unit_service
from tenant_billing.services.allocation import allocate, allocate_building
from tenant_billing.services.estimation import (
    average_bills,
    estimate,
    get_trailing_bills,
    resolve_previous_reading,
)


@pytest.fixture
def four_months(make_building_bill):
    """Building bills for 2025-09 .. 2025-12 with rising usage."""
    return [
        make_building_bill(2025, month, total_usage=Decimal(usage))
        for month, usage in [(9, "10000"), (10, "11000"), (11, "12000"), (12, "13000")]
    ]


class TestPreviousReading:
    """Where the outgoing usage is measured from."""

    def test_falls_back_to_move_in_reading(self, db: Session, make_occupied_unit) -> None:
        unit, _ = make_occupied_unit(move_in_reading=Decimal("1000"))
        assert resolve_previous_reading(db, unit.id) == Decimal("1000")

    def test_prefers_last_regular_bill(
        self, db: Session, make_occupied_unit, make_building_bill
    ) -> None:
        unit, _ = make_occupied_unit(move_in_reading=Decimal("1000"))
        bill = make_building_bill(2025, 12)
        allocate_building(
            db,
            bill.id,
            [
                UnitUsageInput(
                    unit_number=unit.unit_number,
                    usage=Decimal("300"),
                    previous_reading=Decimal("1000"),
                    current_reading=Decimal("1300"),
                )
            ],
        )
        assert resolve_previous_reading(db, unit.id) == Decimal("1300")

    def test_zero_without_history(self, db: Session) -> None:
        unit = unit_service.create_unit(db, UnitCreate(unit_number="201"))
        assert resolve_previous_reading(db, unit.id) == Decimal("0")


class TestTrailingWindow:
    def test_three_most_recent_before_anchor(self, db: Session, four_months) -> None:
        bills = get_trailing_bills(db, 2026, 1)
        assert [(b.bill_year, b.bill_month) for b in bills] == [
            (2025, 12),
            (2025, 11),
            (2025, 10),
        ]

    def test_excludes_anchor_month(self, db: Session, four_months) -> None:
        bills = get_trailing_bills(db, 2025, 12)
        assert [(b.bill_year, b.bill_month) for b in bills] == [
            (2025, 11),
            (2025, 10),
            (2025, 9),
        ]

    def test_average(self, db: Session, four_months) -> None:
        averaged = average_bills(get_trailing_bills(db, 2026, 1))

        assert averaged.total_usage == Decimal("12000")
        assert averaged.basic_fee == Decimal("1397760")
        assert [(m.year, m.month) for m in averaged.base_months] == [
            (2025, 12),
            (2025, 11),
            (2025, 10),
        ]

    def test_average_of_nothing(self) -> None:
        with pytest.raises(NoHistoricalData):
            average_bills([])


class TestEstimate:
    """Tests for the full estimate."""

    def test_estimate(self, db: Session, make_occupied_unit, four_months) -> None:
        unit, _ = make_occupied_unit(move_in_reading=Decimal("1000"))

        result = estimate(db, unit.id, Decimal("1120"), as_of=date(2026, 1, 16))

        assert result.is_estimated
        assert result.previous_reading == Decimal("1000")
        assert result.outgoing_usage == Decimal("120")
        assert (result.bill_year, result.bill_month) == (2026, 1)
        assert result.averaged_bill.total_usage == Decimal("12000")
        assert result.breakdown == allocate(result.averaged_bill, Decimal("120"))

    def test_reading_below_previous(
        self, db: Session, make_occupied_unit, make_building_bill
    ) -> None:
        """previous 100, reading 80: the meter cannot run backwards."""
        make_building_bill(2025, 12)
        unit, _ = make_occupied_unit(move_in_reading=Decimal("100"))

        with pytest.raises(NegativeUsage):
            estimate(db, unit.id, Decimal("80"), as_of=date(2026, 1, 16))

    def test_no_building_bills(self, db: Session, make_occupied_unit) -> None:
        unit, _ = make_occupied_unit()

        with pytest.raises(NoHistoricalData):
            estimate(db, unit.id, Decimal("1100"), as_of=date(2026, 1, 16))

    def test_only_later_building_bills(
        self, db: Session, make_occupied_unit, make_building_bill
    ) -> None:
        make_building_bill(2026, 2)
        unit, _ = make_occupied_unit()

        with pytest.raises(NoHistoricalData):
            estimate(db, unit.id, Decimal("1100"), as_of=date(2026, 1, 16))

    def test_zero_average_usage(
        self, db: Session, make_occupied_unit, make_building_bill
    ) -> None:
        make_building_bill(2025, 12, total_usage=Decimal("0"))
        unit, _ = make_occupied_unit()

        with pytest.raises(ZeroBuildingUsage):
            estimate(db, unit.id, Decimal("1100"), as_of=date(2026, 1, 16))

    def test_unknown_unit(self, db: Session) -> None:
        with pytest.raises(UnitNotFound):
            estimate(db, 999, Decimal("10"))

    def test_monotonic_in_reading(self, db: Session, make_occupied_unit, four_months) -> None:
        unit, _ = make_occupied_unit(move_in_reading=Decimal("1000"))

        totals = [
            estimate(db, unit.id, Decimal(reading), as_of=date(2026, 1, 16)).breakdown.total_amount
            for reading in ["1000", "1050", "1120", "1500", "2400"]
        ]
        assert totals == sorted(totals)

    def test_anchor_follows_last_regular_bill(
        self, db: Session, make_occupied_unit, four_months
    ) -> None:
        unit, _ = make_occupied_unit(move_in_reading=Decimal("1000"))
        allocate_building(
            db,
            four_months[1].id,
            [
                UnitUsageInput(
                    unit_number=unit.unit_number,
                    usage=Decimal("200"),
                    current_reading=Decimal("1200"),
                )
            ],
        )

        result = estimate(db, unit.id, Decimal("1260"))

        assert (result.bill_year, result.bill_month) == (2025, 11)
        assert result.previous_reading == Decimal("1200")
        assert [(m.year, m.month) for m in result.averaged_bill.base_months] == [
            (2025, 10),
            (2025, 9),
        ]

    def test_anchor_defaults_to_calendar_month(
        self, db: Session, make_occupied_unit, make_building_bill, monkeypatch
    ) -> None:
        """A never-billed unit estimates the current calendar month, not its cycle."""

        class FixedDate(date):
            @classmethod
            def today(cls) -> date:
                return cls(2026, 3, 5)

        monkeypatch.setattr("tenant_billing.services.estimation.date", FixedDate)
        for month in [(2025, 12), (2026, 1), (2026, 2)]:
            make_building_bill(*month)
        unit, _ = make_occupied_unit(move_in_reading=Decimal("1000"))

        result = estimate(db, unit.id, Decimal("1100"))

        # The 5th precedes the cutoff day, so the cycle would still be February
        assert (result.bill_year, result.bill_month) == (2026, 3)
        assert [(m.year, m.month) for m in result.averaged_bill.base_months] == [
            (2026, 2),
            (2026, 1),
            (2025, 12),
        ]
