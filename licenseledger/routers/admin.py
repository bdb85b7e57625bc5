"""
Admin Router
============

Administrator-only operations (caller must equal LICENSELEDGER_ADMIN_PRINCIPAL):
- POST /admin/penalize/{listing_id}   — complete + refund every active subscription
- POST /admin/withdraw/{account}      — sweep ``registry`` or ``ledger`` balance
- GET  /admin/balances                — treasury balances
"""

import logging
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from licenseledger.core.dependencies import LedgerServices, get_caller, get_services
from licenseledger.models.treasury import REGISTRY_ACCOUNT

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


class RefundResponse(BaseModel):
    consumer: str
    index: int
    amount: int


class PenaltyResponse(BaseModel):
    listing_id: int
    refunds: List[RefundResponse]
    total_refunded: int


class WithdrawRequest(BaseModel):
    recipient: Optional[str] = None


class WithdrawResponse(BaseModel):
    account: str
    recipient: str
    amount: int


class BalancesResponse(BaseModel):
    registry: int
    ledger: int


@router.post("/penalize/{listing_id}", response_model=PenaltyResponse, summary="Penalize a listing's provider")
def penalize(
    listing_id: int,
    caller: str = Depends(get_caller),
    services: LedgerServices = Depends(get_services),
):
    report = services.ledger.penalize(caller, listing_id)
    return PenaltyResponse(
        listing_id=report.listing_id,
        refunds=[RefundResponse(consumer=r.consumer, index=r.index, amount=r.amount) for r in report.refunds],
        total_refunded=report.total_refunded,
    )


@router.post("/withdraw/{account}", response_model=WithdrawResponse, summary="Withdraw a treasury balance")
def withdraw(
    account: Literal["registry", "ledger"],
    body: Optional[WithdrawRequest] = None,
    caller: str = Depends(get_caller),
    services: LedgerServices = Depends(get_services),
):
    recipient = body.recipient if body else None
    component = services.registry if account == REGISTRY_ACCOUNT else services.ledger
    payout = component.withdraw(caller, recipient)
    return WithdrawResponse(account=payout.account, recipient=payout.recipient, amount=payout.amount)


@router.get("/balances", response_model=BalancesResponse, summary="Treasury balances")
def balances(services: LedgerServices = Depends(get_services)):
    return BalancesResponse(
        registry=services.registry.balance(),
        ledger=services.ledger.balance(),
    )
