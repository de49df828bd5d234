"""Runtime settings for PawPantry.

Values are read from the environment (prefix ``PAWPANTRY_``) and an optional
``.env`` file. Pricing defaults here are only the last link of the fail-soft
chain; live values come from the ``system_settings`` table.
"""

from decimal import Decimal
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    environment: str = "development"
    log_level: str | None = None
    database_url: str = "sqlite:///pawpantry.db"
    database_echo: bool = False

    currency: str = "USD"
    order_number_prefix: str = "ORD-"
    order_number_length: int = 10
    order_number_attempts: int = 10

    default_delivery_fee: Decimal = Decimal("4.99")
    default_tax_rate: Decimal = Decimal("8.5")

    notification_workers: int = 2
    staff_audience: str = "fulfillment-staff"

    model_config = SettingsConfigDict(
        env_prefix="PAWPANTRY_",
        env_file=".env",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings (cached)."""
    return Settings()
