"""
Price Oracle — native/USD quotes for fee and subscription conversion
======================================================================

PURPOSE:
    Narrow capability consulted on every ``register`` and ``subscribe``
    call; quotes are never cached by the callers.

    - StaticPriceOracle: deterministic in-process feed whose answer can be
      changed at runtime (local deployments and tests).
    - HttpPriceOracle: reads the latest round from a JSON price endpoint
      returning ``{"answer": int, "decimals": int, "updated_at": int}``.

CONVERSION:
    native = usd_amount * 10**decimals // answer
    where usd_amount is 18-decimal fixed point and answer is the feed's
    native/USD price with ``decimals`` decimals. Integer division truncates,
    so the requirement never exceeds the exact quotient.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Optional, Protocol

import httpx

from licenseledger.config import settings
from licenseledger.core.clock import Clock, system_clock
from licenseledger.core.errors import InvalidOraclePrice

logger = logging.getLogger(__name__)

DEFAULT_DECIMALS = 8


@dataclass(frozen=True)
class OracleQuote:
    """Latest round reported by a price feed."""
    value: int
    decimals: int = DEFAULT_DECIMALS
    updated_at: int = 0


class PriceOracle(Protocol):
    def latest_price(self) -> OracleQuote: ...


class StaticPriceOracle:
    """In-process feed with a mutable answer, mirroring a mock aggregator."""

    def __init__(
        self,
        answer: int,
        decimals: int = DEFAULT_DECIMALS,
        clock: Optional[Clock] = None,
    ) -> None:
        self._clock = clock or system_clock
        self._decimals = decimals
        self._lock = threading.Lock()
        self._answer = int(answer)
        self._updated_at = self._clock.now()

    def update_answer(self, answer: int) -> None:
        with self._lock:
            self._answer = int(answer)
            self._updated_at = self._clock.now()
        logger.info("Static oracle answer updated: %d", answer)

    def latest_price(self) -> OracleQuote:
        with self._lock:
            return OracleQuote(self._answer, self._decimals, self._updated_at)


class HttpPriceOracle:
    """Synchronous httpx client for a JSON price endpoint."""

    def __init__(
        self,
        url: str,
        timeout: float = 5.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._url = url
        self._timeout = timeout
        self._client = client

    def _get(self) -> httpx.Response:
        if self._client is not None:
            return self._client.get(self._url, timeout=self._timeout)
        with httpx.Client(timeout=self._timeout) as client:
            return client.get(self._url)

    def latest_price(self) -> OracleQuote:
        try:
            resp = self._get()
            resp.raise_for_status()
            data = resp.json()
            return OracleQuote(
                value=int(data["answer"]),
                decimals=int(data.get("decimals", DEFAULT_DECIMALS)),
                updated_at=int(data.get("updated_at", 0)),
            )
        except httpx.HTTPError as e:
            logger.error("Price feed request failed: %s", e)
            raise InvalidOraclePrice(detail=f"price feed unreachable: {e}", context={"url": self._url}) from e
        except (KeyError, TypeError, ValueError) as e:
            logger.error("Price feed returned malformed payload: %s", e)
            raise InvalidOraclePrice(detail=f"malformed price payload: {e}", context={"url": self._url}) from e


def read_quote(
    oracle: PriceOracle,
    clock: Optional[Clock] = None,
    max_staleness_s: Optional[int] = None,
) -> OracleQuote:
    """Fetch a quote and reject non-positive or stale answers."""
    quote = oracle.latest_price()
    if quote.value <= 0:
        raise InvalidOraclePrice(
            detail=f"non-positive oracle answer {quote.value}",
            context={"answer": quote.value},
        )
    if max_staleness_s is None:
        max_staleness_s = settings.oracle_max_staleness_s
    if max_staleness_s and clock is not None:
        age = clock.now() - quote.updated_at
        if age > max_staleness_s:
            raise InvalidOraclePrice(
                detail=f"oracle answer is {age}s old (limit {max_staleness_s}s)",
                context={"age_s": age, "updated_at": quote.updated_at},
            )
    return quote


def usd_to_native(usd_amount: int, quote: OracleQuote) -> int:
    """Convert an 18-decimal USD amount to native units at ``quote``."""
    if quote.value <= 0:
        raise InvalidOraclePrice(detail=f"non-positive oracle answer {quote.value}")
    return usd_amount * 10 ** quote.decimals // quote.value


def build_price_oracle(clock: Optional[Clock] = None) -> PriceOracle:
    """Construct the oracle selected by LICENSELEDGER_ORACLE_MODE."""
    if settings.oracle_mode == "http":
        if not settings.oracle_url:
            raise RuntimeError("LICENSELEDGER_ORACLE_URL must be set when ORACLE_MODE=http")
        logger.info("Using HTTP price oracle at %s", settings.oracle_url)
        return HttpPriceOracle(settings.oracle_url, timeout=settings.oracle_timeout_s)
    logger.info(
        "Using static price oracle: answer=%d decimals=%d",
        settings.oracle_static_answer, settings.oracle_decimals,
    )
    return StaticPriceOracle(settings.oracle_static_answer, settings.oracle_decimals, clock=clock)
