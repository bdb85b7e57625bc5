"""
Subscription Models
===================

- Participant: every consumer that has ever subscribed, in first-subscribe
  order. The autoincrement ``position`` is the sweep's iteration order and
  the unique ``principal`` column is the membership check.
- Subscription: one consumer's paid access window to one listing. ``position``
  is the entry's index in that consumer's append-only sequence and is the
  identifier external callers use, so it never changes once assigned.
"""

from enum import Enum
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import Column, Field, SQLModel

from licenseledger.models.types import BigUint


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"


class ResolutionCause(str, Enum):
    EXPIRY = "expiry"
    PENALTY = "penalty"


class Participant(SQLModel, table=True):
    __tablename__ = "participants"

    position: Optional[int] = Field(default=None, primary_key=True)
    principal: str = Field(unique=True, index=True, max_length=128)
    joined_at: int = Field(default=0)


class Subscription(SQLModel, table=True):
    __tablename__ = "subscriptions"
    __table_args__ = (UniqueConstraint("consumer", "position", name="uq_subscription_consumer_position"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    consumer: str = Field(index=True, max_length=128)
    position: int = Field(default=0)
    listing_id: int = Field(index=True)
    provider: str = Field(max_length=128)
    amount_paid_native: int = Field(sa_column=Column(BigUint, nullable=False))
    start_time: int
    status: str = Field(default=SubscriptionStatus.ACTIVE.value, index=True, max_length=16)
    service_url: str = Field(default="", max_length=2048)
    resolved_at: Optional[int] = Field(default=None, nullable=True)
    resolution_cause: Optional[str] = Field(default=None, nullable=True, max_length=16)

    @property
    def is_active(self) -> bool:
        return self.status == SubscriptionStatus.ACTIVE.value

    def expired_at(self, now: int, grace_period_s: int) -> bool:
        """True once strictly more than the grace period has elapsed."""
        return now > self.start_time + grace_period_s
