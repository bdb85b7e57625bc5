"""
Expiry Keeper — in-process automation for the expiry sweep
============================================================

PURPOSE:
    Plays the role of the external scheduler: poll ``check_expiry()`` and,
    when it reports work, submit the locator to ``resolve_expiry()``.

    The read may observe older state than the write executes against
    (another keeper, a penalty, or an HTTP ``/upkeep/perform`` call may get
    there first). ``resolve_expiry`` re-validates, so the keeper treats
    AlreadyResolved / NotYetExpired as a lost race and moves on.

SCHEDULE:
    ``run_forever()`` is started from the FastAPI lifespan when
    LICENSELEDGER_KEEPER_ENABLED=true and ticks every
    LICENSELEDGER_KEEPER_INTERVAL_S seconds.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from licenseledger.config import settings
from licenseledger.core.errors import AlreadyResolved, NotYetExpired
from licenseledger.services.subscription_ledger import SubscriptionLedger

logger = logging.getLogger(__name__)


@dataclass
class TickResult:
    resolved: int = 0
    skipped: int = 0


class ExpiryKeeper:
    def __init__(
        self,
        ledger: SubscriptionLedger,
        interval_s: Optional[float] = None,
        max_resolutions_per_tick: Optional[int] = None,
    ) -> None:
        self._ledger = ledger
        self.interval_s = settings.keeper_interval_s if interval_s is None else interval_s
        self.max_resolutions_per_tick = (
            settings.keeper_max_resolutions_per_tick
            if max_resolutions_per_tick is None
            else max_resolutions_per_tick
        )

    def tick(self) -> TickResult:
        """Resolve expired subscriptions until the sweep is clean or the per-tick cap is hit."""
        result = TickResult()
        for _ in range(self.max_resolutions_per_tick):
            check = self._ledger.check_expiry()
            if not check.found:
                break
            try:
                self._ledger.resolve_expiry(check.locator)
                result.resolved += 1
            except (AlreadyResolved, NotYetExpired) as e:
                # Lost a race against another writer; the next check sees fresh state.
                result.skipped += 1
                logger.info("Keeper skipped %s: %s", check.locator, e.code)
        if result.resolved or result.skipped:
            logger.info("Keeper tick: resolved=%d skipped=%d", result.resolved, result.skipped)
        return result

    async def run_forever(self) -> None:
        logger.info("Expiry keeper started (interval=%.1fs)", self.interval_s)
        while True:
            try:
                await asyncio.to_thread(self.tick)
            except Exception as e:
                logger.error("Keeper tick failed: %s", e, exc_info=True)
            await asyncio.sleep(self.interval_s)
