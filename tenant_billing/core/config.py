"""Application configuration settings."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict


def _get_default_database_url() -> str:
    """Get the default database URL, using the mounted volume path if available."""
    if os.path.isdir("/data"):
        return "sqlite:////data/tenant_billing.db"
    return "sqlite:///./tenant_billing.db"


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
    )

    PROJECT_NAME: str = "Tenant Billing"
    VERSION: str = "0.1.0"
    DEBUG: bool = True
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # Database - defaults to the volume path if /data exists
    DATABASE_URL: str = _get_default_database_url()

    # Billing rules
    METER_CUTOFF_DAY: int = 9  # Day of month the meters are read
    ROUNDING_UNIT: int = 10  # Fee components are rounded to this many minor units
    ESTIMATION_WINDOW_MONTHS: int = 3
    EDIT_TOTAL_TOLERANCE: int = 10


settings = Settings()
