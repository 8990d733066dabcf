"""Billing-period resolution around the monthly meter-reading day."""

from datetime import date

from tenant_billing.core.config import settings


def resolve_period(settlement_date: date, cutoff_day: int | None = None) -> tuple[int, int]:
    """Map a date to the (year, month) billing cycle it falls in.

    Meters are read on ``cutoff_day`` each month, and the cycle that starts on
    that day carries the month's name. With the default cutoff of 9:

        2026-01-16 -> (2026, 1)   cycle 01-09 .. 02-09
        2026-01-05 -> (2025, 12)  cycle 12-09 .. 01-09
    """
    cutoff = cutoff_day or settings.METER_CUTOFF_DAY
    if settlement_date.day >= cutoff:
        return settlement_date.year, settlement_date.month
    return previous_period(settlement_date.year, settlement_date.month)


def previous_period(year: int, month: int) -> tuple[int, int]:
    if month == 1:
        return year - 1, 12
    return year, month - 1


def next_period(year: int, month: int) -> tuple[int, int]:
    if month == 12:
        return year + 1, 1
    return year, month + 1


def period_start(year: int, month: int, cutoff_day: int | None = None) -> date:
    """First day of a billing cycle (its meter-reading day)."""
    return date(year, month, cutoff_day or settings.METER_CUTOFF_DAY)
