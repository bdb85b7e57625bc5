"""
Events Router
=============

GET /events?kind=&after_id=&limit= — lifecycle notifications in emission
order, for observers that page through with ``after_id``.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Query
from pydantic import BaseModel

from licenseledger.services.event_log import list_events

router = APIRouter(prefix="/events", tags=["events"])


class EventResponse(BaseModel):
    id: int
    kind: str
    principal: Optional[str] = None
    listing_id: Optional[int] = None
    payload: Dict[str, Any]
    created_at: int


@router.get("", response_model=List[EventResponse], summary="Lifecycle events")
def get_events(
    kind: Optional[str] = None,
    after_id: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
):
    return [EventResponse(**vars(e)) for e in list_events(kind=kind, after_id=after_id, limit=limit)]
