# referral_engine/core/config.py
"""
Environment-driven settings for the referral engine.

Values are read from the process environment (and an optional ``.env`` file).
Program terms such as bonus amounts and expiry windows are exposed to the
services through ``ProgramConfig`` (see ``services/program_config.py``) rather
than read from here directly.
"""

from decimal import Decimal
import logging
import os
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


logger = logging.getLogger(__name__)

_PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = _PROJECT_ROOT / ".env"
    logger.debug("[CONFIG] Looking for .env at: %s (exists=%s)", env_path, env_path.exists())
    load_dotenv(env_path)


class Settings(BaseSettings):
    environment: str = Field(default="development", description="Deployment environment name")

    database_url: str = Field(
        default="sqlite:///./referral_engine.db",
        description="SQLAlchemy database URL (PostgreSQL in production)",
    )
    database_echo: bool = Field(default=False, description="Echo SQL statements")

    redis_url: str = "redis://localhost:6379"
    celery_broker_url: Optional[str] = Field(default=None, description="Overrides redis_url")
    celery_always_eager: bool = Field(
        default=False, description="Run Celery tasks inline (tests and local scripts)"
    )

    # External collaborators
    user_service_url: str = Field(default="http://localhost:8001", description="Identity service")
    notification_service_url: str = Field(
        default="http://localhost:8002", description="Notification delivery service"
    )
    payment_service_url: str = Field(
        default="http://localhost:8003", description="Credit ledger service"
    )
    service_api_key: SecretStr = Field(
        default=SecretStr(""), description="Shared key sent as X-Service-Key"
    )
    external_timeout_seconds: float = Field(default=10.0, description="HTTP timeout")

    # Referral program terms
    referrals_customer_bonus: Decimal = Field(default=Decimal("10.00"))
    referrals_driver_bonus: Decimal = Field(default=Decimal("25.00"))
    referrals_restaurant_bonus: Decimal = Field(default=Decimal("50.00"))
    referrals_expiry_days: int = Field(default=30, description="Days before a pending referral expires")
    referrals_default_max_usage: int = Field(default=50, description="Default usage cap per code")
    referrals_allow_multiple_codes: bool = Field(
        default=False, description="Allow an owner to hold several active codes"
    )
    rewards_expiry_days: int = Field(default=30, description="Days before a pending reward expires")
    rewards_currency: str = Field(default="USD")
    rewards_first_time_bonus: Decimal = Field(default=Decimal("5.00"))
    rewards_milestones: Dict[int, Decimal] = Field(
        default_factory=lambda: {
            5: Decimal("15.00"),
            10: Decimal("30.00"),
            25: Decimal("75.00"),
            50: Decimal("150.00"),
            100: Decimal("300.00"),
        },
        description="Completed-referral thresholds mapped to milestone bonus amounts",
    )

    # Housekeeping
    sweep_batch_size: int = Field(default=500, description="Records loaded per sweep pass")

    model_config = SettingsConfigDict(
        env_prefix="REFERRAL_ENGINE_",
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("rewards_currency")
    @classmethod
    def _upper_currency(cls, value: str) -> str:
        return value.strip().upper()

    @property
    def is_testing(self) -> bool:
        return is_running_tests() or self.environment.lower() == "test"

    @property
    def broker_url(self) -> str:
        return self.celery_broker_url or self.redis_url


settings = Settings()
