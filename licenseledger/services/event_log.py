"""
Event Log — notifications for off-chain observers
===================================================

Every lifecycle event is appended to ``ledger_events`` inside the same
transaction as the state change that caused it, and logged once the
row is staged.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from licenseledger.core.database import read_session
from licenseledger.models import LedgerEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EventRecord:
    id: int
    kind: str
    principal: Optional[str]
    listing_id: Optional[int]
    payload: Dict[str, Any]
    created_at: int


def record_event(
    session: Session,
    kind: str,
    *,
    created_at: int,
    principal: Optional[str] = None,
    listing_id: Optional[int] = None,
    **payload: Any,
) -> LedgerEvent:
    """Stage an event row on ``session``; it commits with the caller's transaction."""
    row = LedgerEvent(
        kind=kind,
        principal=principal,
        listing_id=listing_id,
        payload=json.dumps(payload, sort_keys=True),
        created_at=created_at,
    )
    session.add(row)
    logger.info(
        kind,
        extra={"event.principal": principal, "event.listing_id": listing_id, **{f"event.{k}": v for k, v in payload.items()}},
    )
    return row


def _to_record(row: LedgerEvent) -> EventRecord:
    return EventRecord(
        id=row.id,
        kind=row.kind,
        principal=row.principal,
        listing_id=row.listing_id,
        payload=json.loads(row.payload),
        created_at=row.created_at,
    )


def list_events(
    kind: Optional[str] = None,
    after_id: int = 0,
    limit: int = 100,
    engine: Optional[Engine] = None,
) -> List[EventRecord]:
    """Events in emission order, optionally filtered by kind, starting after ``after_id``."""
    stmt = select(LedgerEvent).where(LedgerEvent.id > after_id)
    if kind:
        stmt = stmt.where(LedgerEvent.kind == kind)
    stmt = stmt.order_by(LedgerEvent.id).limit(limit)
    with read_session(engine) as session:
        return [_to_record(row) for row in session.exec(stmt).all()]
