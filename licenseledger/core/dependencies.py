"""
Service wiring and FastAPI dependencies.

The registry, ledger and oracle are process-wide singletons built lazily
from settings. Tests replace them with ``configure_services()``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Header, HTTPException, status
from sqlalchemy.engine import Engine

from licenseledger.core.clock import Clock, system_clock
from licenseledger.services.price_oracle import PriceOracle, build_price_oracle
from licenseledger.services.service_registry import ServiceRegistry
from licenseledger.services.subscription_ledger import SubscriptionLedger

logger = logging.getLogger(__name__)


@dataclass
class LedgerServices:
    oracle: PriceOracle
    registry: ServiceRegistry
    ledger: SubscriptionLedger
    clock: Clock


_services: Optional[LedgerServices] = None


def configure_services(
    oracle: Optional[PriceOracle] = None,
    clock: Optional[Clock] = None,
    engine: Optional[Engine] = None,
    grace_period_s: Optional[int] = None,
) -> LedgerServices:
    """(Re)build the singletons; arguments override the settings-derived defaults."""
    global _services
    clock = clock or system_clock
    oracle = oracle or build_price_oracle(clock)
    registry = ServiceRegistry(oracle, clock=clock, engine=engine)
    ledger = SubscriptionLedger(registry, oracle, grace_period_s=grace_period_s, clock=clock, engine=engine)
    _services = LedgerServices(oracle=oracle, registry=registry, ledger=ledger, clock=clock)
    return _services


def get_services() -> LedgerServices:
    if _services is None:
        return configure_services()
    return _services


def get_registry() -> ServiceRegistry:
    return get_services().registry


def get_ledger() -> SubscriptionLedger:
    return get_services().ledger


def get_caller(x_principal: Optional[str] = Header(default=None)) -> str:
    """Authenticated principal supplied by the calling environment."""
    if not x_principal or not x_principal.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-Principal header",
        )
    return x_principal.strip()
