"""FastAPI application entry point."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from tenant_billing.api.routes import building_bills, health, move_settlements, unit_bills, units
from tenant_billing.core.config import settings
from tenant_billing.core.database import Base, engine
from tenant_billing.core.exceptions import BillingError, billing_error_handler
from tenant_billing.core.logging import setup_logging

# Import models for Base.metadata.create_all
from tenant_billing.models import (  # noqa: F401
    BillHistory,
    BuildingBill,
    MoveSettlement,
    Tenant,
    Unit,
    UnitBill,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager."""
    setup_logging(settings.LOG_LEVEL)
    # Startup: Create database tables
    Base.metadata.create_all(bind=engine)
    logger.info("%s %s started", settings.PROJECT_NAME, settings.VERSION)
    yield


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    description="Utility bill allocation and move-out settlement for multi-unit buildings",
    lifespan=lifespan,
)

app.add_exception_handler(BillingError, billing_error_handler)  # type: ignore[arg-type]

# Include API routers
app.include_router(health.router, prefix="/api", tags=["health"])
app.include_router(units.router, prefix="/api")
app.include_router(building_bills.router, prefix="/api")
app.include_router(unit_bills.router, prefix="/api")
app.include_router(move_settlements.router, prefix="/api")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "tenant_billing.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )
