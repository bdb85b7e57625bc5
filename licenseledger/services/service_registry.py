"""
Service Registry — priced service listings
============================================

PURPOSE:
    Owns the definitive set of listings a provider can publish:
    1. **register()** — charge the listing fee (USD converted at the current
       oracle rate) and assign the next listing id.
    2. **update()** — owner-only, in-place overwrite of the mutable fields.
    3. **get_details() / exists() / list_by_owner()** — read interface also
       consumed by the subscription ledger.
    4. **withdraw()** — administrator sweeps accumulated fees.

IDS:
    Ids come from the ``listing`` row of ``ledger_counters``. A listing id
    is valid iff ``0 <= id < next_listing_id``; listings are never deleted,
    so a valid id stays valid forever.

FEE:
    fee_native = registration_fee_usd * 10**decimals // answer, recomputed
    from the oracle on every call. Short-lived under/overpayment windows
    from price movement are accepted, and overpayment is kept.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from licenseledger.config import settings
from licenseledger.core.clock import Clock, system_clock
from licenseledger.core.database import atomic_session, read_session
from licenseledger.core.errors import InsufficientPayment, NotFound, Unauthorized
from licenseledger.models import LedgerCounter, Listing, Payout
from licenseledger.models.ledger import (
    EVENT_LISTING_REGISTERED,
    EVENT_LISTING_UPDATED,
    EVENT_WITHDRAWAL,
)
from licenseledger.models.treasury import REGISTRY_ACCOUNT
from licenseledger.services import treasury
from licenseledger.services.event_log import record_event
from licenseledger.services.price_oracle import PriceOracle, read_quote, usd_to_native

logger = logging.getLogger(__name__)

__all__ = ["ServiceRegistry", "LISTING_COUNTER"]

LISTING_COUNTER = "listing"


class ServiceRegistry:
    """Listing store plus the registry's fee treasury."""

    def __init__(
        self,
        oracle: PriceOracle,
        *,
        admin: Optional[str] = None,
        registration_fee_usd: Optional[int] = None,
        clock: Optional[Clock] = None,
        engine: Optional[Engine] = None,
    ) -> None:
        self._oracle = oracle
        self.admin = admin or settings.admin_principal
        self.registration_fee_usd = (
            settings.registration_fee_usd if registration_fee_usd is None else registration_fee_usd
        )
        self._clock = clock or system_clock
        self._engine = engine

    # ------------------------------------------------------------------
    # Fees
    # ------------------------------------------------------------------

    def registration_fee_native(self) -> int:
        """Listing fee in native units at the current oracle rate."""
        quote = read_quote(self._oracle, self._clock)
        return usd_to_native(self.registration_fee_usd, quote)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def register(
        self,
        caller: str,
        name: str,
        price_usd_per_period: int,
        description: str,
        url: str,
        paid_fee: int,
    ) -> int:
        """Publish a new listing owned by ``caller`` and return its id."""
        required = self.registration_fee_native()
        if paid_fee < required:
            raise InsufficientPayment(
                detail=f"listing fee {paid_fee} < required {required}",
                context={"paid": paid_fee, "required": required},
            )

        now = self._clock.now()
        with atomic_session(self._engine) as session:
            counter = session.get(LedgerCounter, LISTING_COUNTER)
            if counter is None:
                counter = LedgerCounter(name=LISTING_COUNTER, value=0)
            listing_id = counter.value
            counter.value = listing_id + 1
            session.add(counter)

            session.add(
                Listing(
                    id=listing_id,
                    owner=caller,
                    name=name,
                    description=description,
                    url=url,
                    price_usd_per_period=price_usd_per_period,
                    created_at=now,
                    updated_at=now,
                )
            )
            treasury.credit(session, REGISTRY_ACCOUNT, paid_fee, now)
            record_event(
                session,
                EVENT_LISTING_REGISTERED,
                created_at=now,
                principal=caller,
                listing_id=listing_id,
                owner=caller,
                paid_fee=paid_fee,
                id=listing_id,
            )

        return listing_id

    def update(
        self,
        caller: str,
        listing_id: int,
        name: str,
        price_usd_per_period: int,
        description: str,
        url: str,
    ) -> Listing:
        """Overwrite the mutable fields of a listing owned by ``caller``."""
        now = self._clock.now()
        with atomic_session(self._engine) as session:
            listing = self._load(session, listing_id)
            if listing.owner != caller:
                raise Unauthorized(
                    detail=f"{caller!r} does not own listing {listing_id}",
                    context={"listing_id": listing_id, "caller": caller},
                )

            listing.name = name
            listing.price_usd_per_period = price_usd_per_period
            listing.description = description
            listing.url = url
            listing.updated_at = now
            session.add(listing)
            record_event(
                session,
                EVENT_LISTING_UPDATED,
                created_at=now,
                principal=caller,
                listing_id=listing_id,
                owner=caller,
                id=listing_id,
                price_usd_per_period=price_usd_per_period,
            )

        return listing

    def withdraw(self, caller: str, recipient: Optional[str] = None) -> Payout:
        """Administrator-only sweep of accumulated listing fees."""
        if caller != self.admin:
            raise Unauthorized(detail=f"{caller!r} is not the registry administrator")
        now = self._clock.now()
        with atomic_session(self._engine) as session:
            payout = treasury.withdraw_all(session, REGISTRY_ACCOUNT, recipient or self.admin, now)
            record_event(
                session,
                EVENT_WITHDRAWAL,
                created_at=now,
                principal=caller,
                account=REGISTRY_ACCOUNT,
                recipient=payout.recipient,
                amount=payout.amount,
            )
        return payout

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def next_listing_id(self) -> int:
        with read_session(self._engine) as session:
            return self._next_id(session)

    def exists(self, listing_id: int) -> bool:
        with read_session(self._engine) as session:
            return 0 <= listing_id < self._next_id(session)

    def get_details(self, listing_id: int) -> Listing:
        with read_session(self._engine) as session:
            return self._load(session, listing_id)

    def list_by_owner(self, owner: str) -> List[Listing]:
        """Listings created by ``owner`` in registration order."""
        stmt = select(Listing).where(Listing.owner == owner).order_by(Listing.id)
        with read_session(self._engine) as session:
            return list(session.exec(stmt).all())

    def balance(self) -> int:
        return treasury.balance_of(REGISTRY_ACCOUNT, self._engine)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _next_id(session: Session) -> int:
        counter = session.get(LedgerCounter, LISTING_COUNTER)
        return counter.value if counter else 0

    def _load(self, session: Session, listing_id: int) -> Listing:
        listing = None
        if 0 <= listing_id < self._next_id(session):
            listing = session.get(Listing, listing_id)
        if listing is None:
            raise NotFound(detail=f"listing {listing_id} not found", context={"listing_id": listing_id})
        return listing
