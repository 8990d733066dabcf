"""Billing error taxonomy.

Every error the services raise is a ``BillingError``. They are FastAPI
``HTTPException`` subclasses so routes can let them propagate untouched, and
each carries a stable ``error_code`` so callers can branch on the kind of
failure without parsing messages.
"""

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse


class BillingError(HTTPException):
    """Base class for all allocation and settlement errors."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    error_code: str = "billing_error"
    default_detail: str = "Billing operation failed"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(status_code=self.status_code, detail=detail or self.default_detail)


class ZeroBuildingUsage(BillingError):
    error_code = "zero_building_usage"
    default_detail = "Building total usage must be greater than zero"


class NegativeUsage(BillingError):
    error_code = "negative_usage"
    default_detail = "Current meter reading is lower than the previous reading"


class UsageExceedsBuildingTotal(BillingError):
    error_code = "usage_exceeds_building_total"
    default_detail = "Unit usage is greater than the building total usage"


class NoHistoricalData(BillingError):
    error_code = "no_historical_data"
    default_detail = "At least one earlier building bill is required for estimation"


class NoActiveTenant(BillingError):
    error_code = "no_active_tenant"
    default_detail = "Unit does not have exactly one active tenant"


class AlreadyRegistered(BillingError):
    status_code = status.HTTP_409_CONFLICT
    error_code = "already_registered"
    default_detail = "An incoming tenant is already registered for this settlement"


class SettlementNotFound(BillingError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "settlement_not_found"
    default_detail = "Move settlement not found"


class UnitBillNotFound(BillingError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "unit_bill_not_found"
    default_detail = "Unit bill not found"


class BuildingBillNotFound(BillingError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "building_bill_not_found"
    default_detail = "Building bill not found"


class UnitNotFound(BillingError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "unit_not_found"
    default_detail = "Unit not found"


class DuplicateBuildingBill(BillingError):
    status_code = status.HTTP_409_CONFLICT
    error_code = "duplicate_building_bill"
    default_detail = "A building bill already exists for this period"


class DuplicateUnit(BillingError):
    status_code = status.HTTP_409_CONFLICT
    error_code = "duplicate_unit"
    default_detail = "A unit with this number already exists"


class PaidBillsBlockRollback(BillingError):
    status_code = status.HTTP_409_CONFLICT
    error_code = "paid_bills_block_rollback"
    default_detail = (
        "Settlement has paid bills; revert their payment status before rolling back"
    )


class UnitOccupied(BillingError):
    status_code = status.HTTP_409_CONFLICT
    error_code = "unit_occupied"
    default_detail = "Unit already has an active tenant; record a move-out settlement first"


class LaterSettlementExists(BillingError):
    status_code = status.HTTP_409_CONFLICT
    error_code = "later_settlement_exists"
    default_detail = "A later settlement on this unit must be rolled back first"


class UnitReoccupied(BillingError):
    status_code = status.HTTP_409_CONFLICT
    error_code = "unit_reoccupied"
    default_detail = "Another tenant has moved into the unit since this settlement"


class PaidBillsBlockReallocation(BillingError):
    status_code = status.HTTP_409_CONFLICT
    error_code = "paid_bills_block_reallocation"
    default_detail = "Building bill has paid unit bills; pass force to reallocate anyway"


class AlreadyCancelled(BillingError):
    status_code = status.HTTP_409_CONFLICT
    error_code = "already_cancelled"
    default_detail = "Settlement is already cancelled"


class InvalidStatusTransition(BillingError):
    status_code = status.HTTP_409_CONFLICT
    error_code = "invalid_status_transition"
    default_detail = "Settlement status cannot change from its current state"


class TransactionFailed(BillingError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "transaction_failed"
    default_detail = "Transaction aborted; no changes were saved"


async def billing_error_handler(request: Request, exc: BillingError) -> JSONResponse:
    """Render a billing error with its machine-readable code."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error_code": exc.error_code},
    )
