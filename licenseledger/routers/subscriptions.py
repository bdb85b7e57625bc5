"""
Subscriptions Router
====================

Consumer-facing endpoints over the subscription ledger:
- GET  /price                                  — native/USD oracle answer
- GET  /subscriptions/quote/{listing_id}       — native amount required now
- POST /subscriptions                          — subscribe (caller is consumer)
- GET  /subscriptions/{consumer}               — full history
- GET  /subscriptions/{consumer}/active        — active, unexpired only
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from licenseledger.core.dependencies import get_caller, get_ledger
from licenseledger.models import Subscription
from licenseledger.services.subscription_ledger import SubscriptionLedger

logger = logging.getLogger(__name__)

router = APIRouter(tags=["subscriptions"])


class SubscribeRequest(BaseModel):
    listing_id: int = Field(..., ge=0)
    paid_native: int = Field(..., ge=0)


class SubscribeResponse(BaseModel):
    consumer: str
    index: int
    listing_id: int
    paid_native: int


class SubscriptionResponse(BaseModel):
    index: int
    listing_id: int
    provider: str
    amount_paid_native: int
    start_time: int
    status: str
    service_url: str
    resolved_at: Optional[int] = None
    resolution_cause: Optional[str] = None

    @classmethod
    def from_model(cls, sub: Subscription) -> "SubscriptionResponse":
        return cls(
            index=sub.position,
            listing_id=sub.listing_id,
            provider=sub.provider,
            amount_paid_native=sub.amount_paid_native,
            start_time=sub.start_time,
            status=sub.status,
            service_url=sub.service_url,
            resolved_at=sub.resolved_at,
            resolution_cause=sub.resolution_cause,
        )


class PriceResponse(BaseModel):
    price: int
    decimals: int = 8


class QuoteResponse(BaseModel):
    listing_id: int
    required_native: int


@router.get("/price", response_model=PriceResponse, summary="Latest native/USD price")
def latest_price(ledger: SubscriptionLedger = Depends(get_ledger)):
    return PriceResponse(price=ledger.latest_native_usd_price())


@router.get(
    "/subscriptions/quote/{listing_id}",
    response_model=QuoteResponse,
    summary="Native amount required to subscribe now",
)
def quote(listing_id: int, ledger: SubscriptionLedger = Depends(get_ledger)):
    return QuoteResponse(listing_id=listing_id, required_native=ledger.required_payment(listing_id))


@router.post(
    "/subscriptions",
    response_model=SubscribeResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Subscribe to a listing",
)
def subscribe(
    body: SubscribeRequest,
    caller: str = Depends(get_caller),
    ledger: SubscriptionLedger = Depends(get_ledger),
):
    index = ledger.subscribe(caller, body.listing_id, body.paid_native)
    return SubscribeResponse(
        consumer=caller,
        index=index,
        listing_id=body.listing_id,
        paid_native=body.paid_native,
    )


@router.get(
    "/subscriptions/{consumer}",
    response_model=List[SubscriptionResponse],
    summary="All subscriptions of a consumer",
)
def list_subscriptions(consumer: str, ledger: SubscriptionLedger = Depends(get_ledger)):
    return [SubscriptionResponse.from_model(s) for s in ledger.subscriptions_of(consumer)]


@router.get(
    "/subscriptions/{consumer}/active",
    response_model=List[SubscriptionResponse],
    summary="Active subscriptions of a consumer",
)
def list_active_subscriptions(consumer: str, ledger: SubscriptionLedger = Depends(get_ledger)):
    return [SubscriptionResponse.from_model(s) for s in ledger.active_subscriptions_of(consumer)]
