"""
License Ledger Application Configuration
=========================================

PURPOSE:
    Pydantic-Settings based configuration for the license ledger service.
    All settings can be overridden via environment variables
    (LICENSELEDGER_ prefix) or a local ``.env`` file.
"""

import logging
import os
from typing import Literal, Optional

from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

USD_DECIMALS = 18
ONE_USD = 10 ** USD_DECIMALS
SECONDS_PER_DAY = 24 * 60 * 60


class Settings(BaseSettings):
    """Service settings: storage, administrator, pricing, oracle and keeper."""

    app_name: str = "licenseledger"
    app_version: str = os.environ.get("LICENSELEDGER_VERSION", "0.3.0")
    debug: bool = False

    # Storage
    data_directory: str = "/data"
    database_url: Optional[str] = None

    # Principal allowed to penalize providers and withdraw treasury balances
    admin_principal: str = "admin"

    # Fixed USD listing fee, 18-decimal fixed point (default $1)
    registration_fee_usd: int = ONE_USD

    # Subscriptions older than this are eligible for expiry resolution
    grace_period_days: int = 30

    # Price oracle
    oracle_mode: Literal["static", "http"] = "static"
    oracle_static_answer: int = 1_841_000_000  # $18.41 with 8 decimals
    oracle_decimals: int = 8
    oracle_url: Optional[str] = None
    oracle_timeout_s: float = 5.0
    oracle_max_staleness_s: int = 0  # 0 disables the stale-quote check

    # Expiry keeper (in-process automation loop)
    keeper_enabled: bool = False
    keeper_interval_s: float = 60.0
    keeper_max_resolutions_per_tick: int = 25

    # Logging
    log_dir: str = "logs"
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_prefix = "LICENSELEDGER_"

    @property
    def grace_period_s(self) -> int:
        return self.grace_period_days * SECONDS_PER_DAY

    def get_database_url(self) -> str:
        """Return the configured database URL, defaulting to SQLite in the data directory."""
        if self.database_url:
            return self.database_url
        return f"sqlite:///{os.path.join(self.data_directory, 'licenseledger.db')}"


settings = Settings()
