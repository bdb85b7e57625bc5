"""
Listings Router
===============

Provider-facing endpoints over the service registry:
- GET  /listings/fee        — current listing fee in native units
- POST /listings            — register (caller becomes owner)
- PUT  /listings/{id}       — owner-only update
- GET  /listings/{id}       — details
- GET  /listings?owner=...  — listings by owner, registration order
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from licenseledger.core.dependencies import get_caller, get_registry
from licenseledger.models import Listing
from licenseledger.services.service_registry import ServiceRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/listings", tags=["listings"])


class ListingFields(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    price_usd_per_period: int = Field(..., ge=0, description="USD price, 18-decimal fixed point")
    description: str = Field(default="", max_length=10_000)
    url: str = Field(default="", max_length=2048)


class RegisterListingRequest(ListingFields):
    paid_fee: int = Field(..., ge=0, description="Native amount sent with the registration")


class ListingResponse(BaseModel):
    id: int
    owner: str
    name: str
    description: str
    url: str
    price_usd_per_period: int

    @classmethod
    def from_model(cls, listing: Listing) -> "ListingResponse":
        return cls(
            id=listing.id,
            owner=listing.owner,
            name=listing.name,
            description=listing.description or "",
            url=listing.url,
            price_usd_per_period=listing.price_usd_per_period,
        )


class RegisterListingResponse(BaseModel):
    id: int
    paid_fee: int


class FeeResponse(BaseModel):
    registration_fee_usd: int
    registration_fee_native: int


@router.get("/fee", response_model=FeeResponse, summary="Current listing fee")
def get_fee(registry: ServiceRegistry = Depends(get_registry)):
    return FeeResponse(
        registration_fee_usd=registry.registration_fee_usd,
        registration_fee_native=registry.registration_fee_native(),
    )


@router.post(
    "",
    response_model=RegisterListingResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a listing",
)
def register_listing(
    body: RegisterListingRequest,
    caller: str = Depends(get_caller),
    registry: ServiceRegistry = Depends(get_registry),
):
    listing_id = registry.register(
        caller,
        body.name,
        body.price_usd_per_period,
        body.description,
        body.url,
        body.paid_fee,
    )
    return RegisterListingResponse(id=listing_id, paid_fee=body.paid_fee)


@router.put("/{listing_id}", response_model=ListingResponse, summary="Update a listing (owner only)")
def update_listing(
    listing_id: int,
    body: ListingFields,
    caller: str = Depends(get_caller),
    registry: ServiceRegistry = Depends(get_registry),
):
    listing = registry.update(
        caller,
        listing_id,
        body.name,
        body.price_usd_per_period,
        body.description,
        body.url,
    )
    return ListingResponse.from_model(listing)


@router.get("/{listing_id}", response_model=ListingResponse, summary="Listing details")
def get_listing(listing_id: int, registry: ServiceRegistry = Depends(get_registry)):
    return ListingResponse.from_model(registry.get_details(listing_id))


@router.get("", response_model=List[ListingResponse], summary="Listings by owner")
def list_listings(
    owner: str = Query(..., min_length=1),
    registry: ServiceRegistry = Depends(get_registry),
):
    return [ListingResponse.from_model(listing) for listing in registry.list_by_owner(owner)]
