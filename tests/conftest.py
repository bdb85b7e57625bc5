"""
Pytest configuration for license ledger tests.
Points storage and logs at a temp directory before any licenseledger import.
"""

import os
import tempfile

_test_data_dir = tempfile.mkdtemp(prefix="licenseledger_test_")
os.environ["LICENSELEDGER_DATA_DIRECTORY"] = _test_data_dir
os.environ["LICENSELEDGER_DATABASE_URL"] = f"sqlite:///{_test_data_dir}/test.db"
os.environ["LICENSELEDGER_LOG_DIR"] = os.path.join(_test_data_dir, "logs")
os.environ["LICENSELEDGER_ADMIN_PRINCIPAL"] = "0xadmin"
os.environ["LICENSELEDGER_KEEPER_ENABLED"] = "false"

import pytest
from sqlmodel import SQLModel

from licenseledger.config import ONE_USD, SECONDS_PER_DAY
from licenseledger.core.clock import ManualClock
from licenseledger.core.database import create_tables, get_engine
from licenseledger.core.errors.registry import error_registry
from licenseledger.services.price_oracle import StaticPriceOracle
from licenseledger.services.service_registry import ServiceRegistry
from licenseledger.services.subscription_ledger import SubscriptionLedger

# Load error registry so LedgerError maps to the registered HTTP status codes
error_registry.load()

ADMIN = "0xadmin"
PROVIDER = "0xprovider"
CONSUMER = "0xconsumer"
OTHER_CONSUMER = "0xother"

START_TIME = 1_700_000_000
ORACLE_ANSWER = 1_841_000_000  # $18.41, 8 decimals
GRACE_PERIOD_S = 30 * SECONDS_PER_DAY


@pytest.fixture(autouse=True)
def fresh_db():
    """Every test starts from empty tables."""
    engine = get_engine()
    SQLModel.metadata.drop_all(engine)
    create_tables(engine)
    yield engine


@pytest.fixture
def clock():
    return ManualClock(START_TIME)


@pytest.fixture
def oracle(clock):
    return StaticPriceOracle(ORACLE_ANSWER, decimals=8, clock=clock)


@pytest.fixture
def registry(oracle, clock):
    return ServiceRegistry(oracle, admin=ADMIN, registration_fee_usd=ONE_USD, clock=clock)


@pytest.fixture
def ledger(registry, oracle, clock):
    return SubscriptionLedger(registry, oracle, admin=ADMIN, grace_period_s=GRACE_PERIOD_S, clock=clock)


@pytest.fixture
def register_listing(registry):
    """Register a listing owned by ``owner`` paying exactly the current fee."""

    def _register(name="Test MCP", price_usd=10 * ONE_USD, owner=PROVIDER, url="localhost/test"):
        return registry.register(
            owner,
            name,
            price_usd,
            f"{name} description",
            url,
            registry.registration_fee_native(),
        )

    return _register


def required_native(price_usd: int, answer: int = ORACLE_ANSWER, decimals: int = 8) -> int:
    return price_usd * 10 ** decimals // answer
