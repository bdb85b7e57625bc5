"""
Health Router — liveness plus a cheap database round-trip.
"""

import logging

from fastapi import APIRouter, Depends

from licenseledger.config import settings
from licenseledger.core.dependencies import get_registry
from licenseledger.services.service_registry import ServiceRegistry

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", summary="Health check")
def health(registry: ServiceRegistry = Depends(get_registry)):
    return {
        "status": "ok",
        "service": settings.app_name,
        "version": settings.app_version,
        "next_listing_id": registry.next_listing_id(),
    }
