"""
Ledger Bookkeeping Models
=========================

- LedgerCounter: named monotonic counters (``listing`` holds next_listing_id).
- LedgerEvent: append-only notifications for off-chain observers.
"""

from typing import Optional

from sqlmodel import Column, Field, SQLModel, Text

EVENT_LISTING_REGISTERED = "listing_registered"
EVENT_LISTING_UPDATED = "listing_updated"
EVENT_SUBSCRIBED = "subscribed"
EVENT_SUBSCRIPTION_RESOLVED = "subscription_resolved"
EVENT_WITHDRAWAL = "withdrawal"


class LedgerCounter(SQLModel, table=True):
    __tablename__ = "ledger_counters"

    name: str = Field(primary_key=True, max_length=32)
    value: int = Field(default=0)


class LedgerEvent(SQLModel, table=True):
    __tablename__ = "ledger_events"

    id: Optional[int] = Field(default=None, primary_key=True)
    kind: str = Field(index=True, max_length=64)
    principal: Optional[str] = Field(default=None, nullable=True, index=True, max_length=128)
    listing_id: Optional[int] = Field(default=None, nullable=True, index=True)
    payload: str = Field(default="{}", sa_column=Column(Text, nullable=False, default="{}"))
    created_at: int = Field(default=0)
