"""Health check route."""

from fastapi import APIRouter

from tenant_billing.core.config import settings

router = APIRouter()


@router.get("/health")
def health_check() -> dict[str, str]:
    """Liveness check."""
    return {"status": "healthy", "version": settings.VERSION}
