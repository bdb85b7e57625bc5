"""
Upkeep Router
=============

Keeper-facing split of the expiry sweep:
- GET  /upkeep/check    — pure read; returns ``perform_data`` when work exists
- POST /upkeep/perform  — re-validating write for one ``perform_data``

``perform_data`` is an opaque hex locator. Stale or duplicate submissions
are rejected with AlreadyResolved / NotYetExpired.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from licenseledger.core.dependencies import get_ledger
from licenseledger.services.subscription_ledger import Locator, SubscriptionLedger

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/upkeep", tags=["upkeep"])


class CheckUpkeepResponse(BaseModel):
    upkeep_needed: bool
    perform_data: Optional[str] = None
    consumer: Optional[str] = None
    index: Optional[int] = None


class PerformUpkeepRequest(BaseModel):
    perform_data: str


class PerformUpkeepResponse(BaseModel):
    consumer: str
    index: int
    status: str


@router.get("/check", response_model=CheckUpkeepResponse, summary="Find an expired subscription")
def check_upkeep(ledger: SubscriptionLedger = Depends(get_ledger)):
    result = ledger.check_expiry()
    if not result.found:
        return CheckUpkeepResponse(upkeep_needed=False)
    return CheckUpkeepResponse(
        upkeep_needed=True,
        perform_data=result.locator.encode(),
        consumer=result.locator.principal,
        index=result.locator.index,
    )


@router.post("/perform", response_model=PerformUpkeepResponse, summary="Resolve one expired subscription")
def perform_upkeep(body: PerformUpkeepRequest, ledger: SubscriptionLedger = Depends(get_ledger)):
    try:
        locator = Locator.decode(body.perform_data)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    sub = ledger.resolve_expiry(locator)
    return PerformUpkeepResponse(consumer=sub.consumer, index=sub.position, status=sub.status)
