"""
Treasury Models
===============

- TreasuryAccount: native balance held by one component (``registry`` for
  listing fees, ``ledger`` for subscription payments).
- Payout: append-only record of native value leaving a treasury, either a
  penalty refund to a consumer or an administrative withdrawal.
"""

from typing import Optional

from sqlmodel import Column, Field, SQLModel

from licenseledger.models.types import BigUint

REGISTRY_ACCOUNT = "registry"
LEDGER_ACCOUNT = "ledger"

PAYOUT_PENALTY_REFUND = "penalty_refund"
PAYOUT_WITHDRAWAL = "withdrawal"


class TreasuryAccount(SQLModel, table=True):
    __tablename__ = "treasury_accounts"

    name: str = Field(primary_key=True, max_length=32)
    balance: int = Field(default=0, sa_column=Column(BigUint, nullable=False, default="0"))
    updated_at: int = Field(default=0)


class Payout(SQLModel, table=True):
    __tablename__ = "payouts"

    id: Optional[int] = Field(default=None, primary_key=True)
    account: str = Field(index=True, max_length=32)
    recipient: str = Field(index=True, max_length=128)
    amount: int = Field(sa_column=Column(BigUint, nullable=False))
    reason: str = Field(max_length=32)
    subscription_id: Optional[int] = Field(default=None, nullable=True)
    created_at: int = Field(default=0)
