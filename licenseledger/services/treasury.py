"""
Treasury — native balances held by the registry and the ledger
================================================================

Registration fees credit the ``registry`` account, subscription payments
credit the ``ledger`` account. Penalty refunds and administrative
withdrawals debit an account and append a ``payouts`` row. All helpers
work on the caller's session so they share its transaction.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from licenseledger.core.database import read_session
from licenseledger.core.errors import NothingToWithdraw
from licenseledger.models import Payout, TreasuryAccount
from licenseledger.models.treasury import PAYOUT_WITHDRAWAL

logger = logging.getLogger(__name__)


def _account(session: Session, name: str) -> TreasuryAccount:
    account = session.get(TreasuryAccount, name)
    if account is None:
        account = TreasuryAccount(name=name, balance=0)
        session.add(account)
    return account


def credit(session: Session, name: str, amount: int, now: int) -> int:
    account = _account(session, name)
    account.balance = account.balance + amount
    account.updated_at = now
    session.add(account)
    return account.balance


def pay_out(
    session: Session,
    name: str,
    recipient: str,
    amount: int,
    reason: str,
    now: int,
    subscription_id: Optional[int] = None,
) -> Payout:
    """Debit ``amount`` from the account and record the transfer to ``recipient``."""
    account = _account(session, name)
    if amount > account.balance:
        # Refunds are bounded by what was paid in, so this means corrupted bookkeeping.
        raise RuntimeError(
            f"Treasury {name!r} balance {account.balance} cannot cover payout of {amount}"
        )
    account.balance = account.balance - amount
    account.updated_at = now
    session.add(account)

    payout = Payout(
        account=name,
        recipient=recipient,
        amount=amount,
        reason=reason,
        subscription_id=subscription_id,
        created_at=now,
    )
    session.add(payout)
    logger.info(
        "Payout: account=%s recipient=%s amount=%d reason=%s",
        name, recipient, amount, reason,
    )
    return payout


def withdraw_all(session: Session, name: str, recipient: str, now: int, reserved: int = 0) -> Payout:
    """Sweep the residual balance of ``name`` to ``recipient``.

    ``reserved`` stays in the account to back obligations that may still be
    refunded.
    """
    account = _account(session, name)
    available = account.balance - reserved
    if available <= 0:
        raise NothingToWithdraw(
            detail=f"treasury {name!r} has nothing beyond its reserve of {reserved}",
            context={"account": name, "balance": account.balance, "reserved": reserved},
        )
    return pay_out(session, name, recipient, available, PAYOUT_WITHDRAWAL, now)


def balance_of(name: str, engine: Optional[Engine] = None) -> int:
    with read_session(engine) as session:
        account = session.get(TreasuryAccount, name)
        return account.balance if account else 0


def payouts_to(recipient: str, engine: Optional[Engine] = None) -> List[Payout]:
    stmt = select(Payout).where(Payout.recipient == recipient).order_by(Payout.id)
    with read_session(engine) as session:
        return list(session.exec(stmt).all())
