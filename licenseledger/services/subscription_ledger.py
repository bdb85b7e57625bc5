"""
Subscription Ledger — paid, time-boxed access to listings
===========================================================

PURPOSE:
    1. **subscribe()** — convert the listing's USD price to native units at
       the current oracle rate, take payment, and append a subscription to
       the consumer's sequence.
    2. **check_expiry()** — pure sweep for the first active subscription past
       its grace period; returns an opaque locator.
    3. **resolve_expiry()** — separately invoked write that re-validates the
       located subscription before completing it.
    4. **penalize()** — administrator force-completes and refunds every
       active subscription of one listing.
    5. **active_subscriptions_of()** — consumer's live subscriptions.

STATE MACHINE:
    active → completed (expiry: resolve_expiry, after grace period)
    active → completed (penalty: penalize, payment refunded)
    completed is terminal.

SWEEP ORDER:
    Participants in first-subscribe order, then each participant's
    subscriptions in creation order. ``check_expiry`` returns the first
    match in that order; ``penalize`` visits every match in that order.

PAYMENT:
    required = price_usd_per_period * 10**decimals // answer. Paying more
    than required is accepted and the excess is kept, not refunded.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from licenseledger.config import settings
from licenseledger.core.clock import Clock, system_clock
from licenseledger.core.database import atomic_session, read_session
from licenseledger.core.errors import (
    AlreadyResolved,
    InsufficientPayment,
    NotYetExpired,
    SubscriptionNotFound,
    Unauthorized,
    UnknownListing,
)
from licenseledger.models import Participant, Payout, ResolutionCause, Subscription, SubscriptionStatus
from licenseledger.models.ledger import EVENT_SUBSCRIBED, EVENT_SUBSCRIPTION_RESOLVED, EVENT_WITHDRAWAL
from licenseledger.models.treasury import LEDGER_ACCOUNT, PAYOUT_PENALTY_REFUND
from licenseledger.services import treasury
from licenseledger.services.event_log import record_event
from licenseledger.services.price_oracle import PriceOracle, read_quote, usd_to_native
from licenseledger.services.service_registry import ServiceRegistry

logger = logging.getLogger(__name__)

__all__ = [
    "ExpiryCheck",
    "Locator",
    "PenaltyReport",
    "Refund",
    "SubscriptionLedger",
]


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Locator:
    """(principal, index) pair naming one subscription for resolve_expiry."""
    principal: str
    index: int

    def encode(self) -> str:
        """Opaque hex form handed to external keepers."""
        raw = json.dumps([self.principal, self.index], separators=(",", ":"))
        return "0x" + raw.encode("utf-8").hex()

    @classmethod
    def decode(cls, data: str) -> "Locator":
        """Inverse of encode(); raises ValueError on anything malformed."""
        if not data.startswith("0x"):
            raise ValueError("locator must start with 0x")
        try:
            principal, index = json.loads(bytes.fromhex(data[2:]).decode("utf-8"))
        except (TypeError, UnicodeDecodeError) as e:
            raise ValueError(f"malformed locator: {e}") from e
        if not isinstance(principal, str) or isinstance(index, bool) or not isinstance(index, int) or index < 0:
            raise ValueError("malformed locator payload")
        return cls(principal, index)


@dataclass(frozen=True)
class ExpiryCheck:
    found: bool
    locator: Optional[Locator] = None


@dataclass(frozen=True)
class Refund:
    consumer: str
    index: int
    amount: int


@dataclass
class PenaltyReport:
    listing_id: int
    refunds: List[Refund] = field(default_factory=list)

    @property
    def total_refunded(self) -> int:
        return sum(r.amount for r in self.refunds)


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------

class SubscriptionLedger:
    """Per-consumer subscription sequences, participant index and expiry sweep."""

    def __init__(
        self,
        registry: ServiceRegistry,
        oracle: PriceOracle,
        *,
        admin: Optional[str] = None,
        grace_period_s: Optional[int] = None,
        clock: Optional[Clock] = None,
        engine: Optional[Engine] = None,
    ) -> None:
        self._registry = registry
        self._oracle = oracle
        self.admin = admin or settings.admin_principal
        self.grace_period_s = settings.grace_period_s if grace_period_s is None else grace_period_s
        self._clock = clock or system_clock
        self._engine = engine

    # ------------------------------------------------------------------
    # Pricing
    # ------------------------------------------------------------------

    def latest_native_usd_price(self) -> int:
        """Current native/USD answer (8 decimals)."""
        return read_quote(self._oracle, self._clock).value

    def required_payment(self, listing_id: int) -> int:
        """Native amount needed to subscribe to ``listing_id`` right now."""
        if not self._registry.exists(listing_id):
            raise UnknownListing(detail=f"listing {listing_id} does not exist", context={"listing_id": listing_id})
        listing = self._registry.get_details(listing_id)
        quote = read_quote(self._oracle, self._clock)
        return usd_to_native(listing.price_usd_per_period, quote)

    # ------------------------------------------------------------------
    # Subscribe
    # ------------------------------------------------------------------

    def subscribe(self, caller: str, listing_id: int, paid_native: int) -> int:
        """Pay for one period of ``listing_id``; returns the new subscription index."""
        now = self._clock.now()
        with atomic_session(self._engine) as session:
            if not self._registry.exists(listing_id):
                raise UnknownListing(
                    detail=f"listing {listing_id} does not exist",
                    context={"listing_id": listing_id, "caller": caller},
                )

            listing = self._registry.get_details(listing_id)
            quote = read_quote(self._oracle, self._clock)
            required = usd_to_native(listing.price_usd_per_period, quote)
            if paid_native < required:
                raise InsufficientPayment(
                    detail=f"paid {paid_native} < required {required}",
                    context={"listing_id": listing_id, "paid": paid_native, "required": required},
                )

            self._ensure_participant(session, caller, now)
            index = session.exec(
                select(func.count()).select_from(Subscription).where(Subscription.consumer == caller)
            ).one()
            session.add(
                Subscription(
                    consumer=caller,
                    position=index,
                    listing_id=listing_id,
                    provider=listing.owner,
                    amount_paid_native=paid_native,
                    start_time=now,
                    status=SubscriptionStatus.ACTIVE.value,
                    service_url=listing.url,
                )
            )
            treasury.credit(session, LEDGER_ACCOUNT, paid_native, now)
            record_event(
                session,
                EVENT_SUBSCRIBED,
                created_at=now,
                principal=caller,
                listing_id=listing_id,
                consumer=caller,
                index=index,
                paid_native=paid_native,
            )

        return index

    # ------------------------------------------------------------------
    # Penalty path
    # ------------------------------------------------------------------

    def penalize(self, caller: str, listing_id: int) -> PenaltyReport:
        """Complete and refund every active subscription to ``listing_id``.

        Administrator only. Scans all participants and all of their
        subscriptions, so cost is linear in the total subscription count.
        """
        if caller != self.admin:
            raise Unauthorized(
                detail=f"{caller!r} is not the ledger administrator",
                context={"listing_id": listing_id},
            )

        report = PenaltyReport(listing_id=listing_id)
        now = self._clock.now()
        with atomic_session(self._engine) as session:
            if not self._registry.exists(listing_id):
                raise UnknownListing(detail=f"listing {listing_id} does not exist", context={"listing_id": listing_id})

            stmt = (
                self._sweep_query()
                .where(Subscription.status == SubscriptionStatus.ACTIVE.value)
                .where(Subscription.listing_id == listing_id)
            )
            for sub in session.exec(stmt).all():
                self._complete(session, sub, ResolutionCause.PENALTY, now)
                treasury.pay_out(
                    session,
                    LEDGER_ACCOUNT,
                    sub.consumer,
                    sub.amount_paid_native,
                    PAYOUT_PENALTY_REFUND,
                    now,
                    subscription_id=sub.id,
                )
                report.refunds.append(Refund(sub.consumer, sub.position, sub.amount_paid_native))

        logger.warning(
            "Provider penalized: listing=%d refunds=%d total=%d",
            listing_id, len(report.refunds), report.total_refunded,
        )
        return report

    # ------------------------------------------------------------------
    # Expiry sweep (read) / resolve (write)
    # ------------------------------------------------------------------

    def check_expiry(self) -> ExpiryCheck:
        """First active subscription past its grace period, in sweep order.

        Pure read: no lock, no side effects, safe to call at any frequency.
        """
        # now > start_time + grace  <=>  start_time < now - grace
        cutoff = self._clock.now() - self.grace_period_s
        stmt = (
            self._sweep_query()
            .where(Subscription.status == SubscriptionStatus.ACTIVE.value)
            .where(Subscription.start_time < cutoff)
            .limit(1)
        )
        with read_session(self._engine) as session:
            sub = session.exec(stmt).first()
        if sub is None:
            return ExpiryCheck(found=False)
        return ExpiryCheck(found=True, locator=Locator(sub.consumer, sub.position))

    def resolve_expiry(self, locator: Locator) -> Subscription:
        """Complete the located subscription after re-checking both preconditions."""
        now = self._clock.now()
        with atomic_session(self._engine) as session:
            sub = self._load(session, locator.principal, locator.index)
            if not sub.is_active:
                raise AlreadyResolved(
                    detail=f"subscription {locator.principal}/{locator.index} is {sub.status}",
                    context={"consumer": locator.principal, "index": locator.index},
                )
            if not sub.expired_at(now, self.grace_period_s):
                raise NotYetExpired(
                    detail=f"subscription {locator.principal}/{locator.index} expires after "
                           f"{sub.start_time + self.grace_period_s}",
                    context={"consumer": locator.principal, "index": locator.index, "now": now},
                )
            self._complete(session, sub, ResolutionCause.EXPIRY, now)
        return sub

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def active_subscriptions_of(self, consumer: str) -> List[Subscription]:
        """Active, unexpired subscriptions of ``consumer`` in creation order."""
        now = self._clock.now()
        return [
            sub for sub in self.subscriptions_of(consumer)
            if sub.is_active and not sub.expired_at(now, self.grace_period_s)
        ]

    def subscriptions_of(self, consumer: str) -> List[Subscription]:
        """Full history of ``consumer``, index order."""
        stmt = (
            select(Subscription)
            .where(Subscription.consumer == consumer)
            .order_by(Subscription.position)
        )
        with read_session(self._engine) as session:
            return list(session.exec(stmt).all())

    def subscription_at(self, consumer: str, index: int) -> Subscription:
        with read_session(self._engine) as session:
            return self._load(session, consumer, index)

    def participants(self) -> List[str]:
        """Every consumer that ever subscribed, first-subscribe order."""
        with read_session(self._engine) as session:
            rows = session.exec(select(Participant).order_by(Participant.position)).all()
            return [p.principal for p in rows]

    def balance(self) -> int:
        return treasury.balance_of(LEDGER_ACCOUNT, self._engine)

    def withdraw(self, caller: str, recipient: Optional[str] = None) -> Payout:
        """Administrator-only sweep of retained subscription payments.

        Payments of still-active subscriptions stay in the treasury so a later
        penalty can refund them; only completed and excess amounts are swept.
        """
        if caller != self.admin:
            raise Unauthorized(detail=f"{caller!r} is not the ledger administrator")
        now = self._clock.now()
        with atomic_session(self._engine) as session:
            reserved = self._active_reserve(session)
            payout = treasury.withdraw_all(
                session, LEDGER_ACCOUNT, recipient or self.admin, now, reserved=reserved,
            )
            record_event(
                session,
                EVENT_WITHDRAWAL,
                created_at=now,
                principal=caller,
                account=LEDGER_ACCOUNT,
                recipient=payout.recipient,
                amount=payout.amount,
            )
        return payout

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _sweep_query():
        return (
            select(Subscription)
            .join(Participant, Participant.principal == Subscription.consumer)
            .order_by(Participant.position, Subscription.position)
        )

    @staticmethod
    def _active_reserve(session: Session) -> int:
        amounts = session.exec(
            select(Subscription.amount_paid_native)
            .where(Subscription.status == SubscriptionStatus.ACTIVE.value)
        ).all()
        return sum(amounts)

    @staticmethod
    def _ensure_participant(session: Session, principal: str, now: int) -> Tuple[Participant, bool]:
        existing = session.exec(select(Participant).where(Participant.principal == principal)).first()
        if existing is not None:
            return existing, False
        participant = Participant(principal=principal, joined_at=now)
        session.add(participant)
        logger.info("New participant: %s", principal)
        return participant, True

    @staticmethod
    def _load(session: Session, consumer: str, index: int) -> Subscription:
        sub = session.exec(
            select(Subscription)
            .where(Subscription.consumer == consumer)
            .where(Subscription.position == index)
        ).first()
        if sub is None:
            raise SubscriptionNotFound(
                detail=f"no subscription {consumer}/{index}",
                context={"consumer": consumer, "index": index},
            )
        return sub

    @staticmethod
    def _complete(session: Session, sub: Subscription, cause: ResolutionCause, now: int) -> None:
        sub.status = SubscriptionStatus.COMPLETED.value
        sub.resolved_at = now
        sub.resolution_cause = cause.value
        session.add(sub)
        record_event(
            session,
            EVENT_SUBSCRIPTION_RESOLVED,
            created_at=now,
            principal=sub.consumer,
            listing_id=sub.listing_id,
            consumer=sub.consumer,
            index=sub.position,
            cause=cause.value,
            refunded=sub.amount_paid_native if cause is ResolutionCause.PENALTY else 0,
        )
