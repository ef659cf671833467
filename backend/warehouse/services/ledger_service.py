# Overview: Append-only activity trail for inventory-affecting actions.

from __future__ import annotations

import json
from typing import Any, Optional
from datetime import datetime

from ..extensions import db
from ..models import ActivityEvent, Company
from warehouse.time_utils import utcnow
"""
Activity trail rules

- Append-only: events are never updated or deleted.
- Events are written inside the same DB transaction as the change they record.
- occurred_at is business time; created_at is system time (DB default).
- Quantities are never derived from this table; reconciliation replays the
  approved check-in/check-out requests instead.
"""


def append_activity_event(
    *,
    company_id: int,
    event_type: str,
    event_category: str,
    entity_type: str,
    entity_id: int,
    actor_user_id: int | None = None,
    occurred_at: Optional[datetime] = None,
    note: Optional[str] = None,
    payload: Any = None,
) -> ActivityEvent:
    company = db.session.get(Company, company_id)
    if not company:
        raise ValueError(f"Company {company_id} not found for activity event")

    if payload is not None and not isinstance(payload, str):
        payload = json.dumps(payload, separators=(",", ":"), ensure_ascii=False, default=str)

    ev = ActivityEvent(
        company_id=company_id,
        event_type=event_type,
        event_category=event_category,
        entity_type=entity_type,
        entity_id=entity_id,
        actor_user_id=actor_user_id,
        occurred_at=occurred_at or utcnow(),
        note=(note or "")[:255] or None,
        payload=payload,
    )
    db.session.add(ev)
    db.session.flush()
    return ev


def list_activity_events(
    *,
    company_id: int,
    event_category: str | None = None,
    limit: int = 100,
) -> list[ActivityEvent]:
    query = db.session.query(ActivityEvent).filter(ActivityEvent.company_id == company_id)
    if event_category:
        query = query.filter(ActivityEvent.event_category == event_category)
    limit = max(1, min(limit, 500))
    return query.order_by(ActivityEvent.occurred_at.desc(), ActivityEvent.id.desc()).limit(limit).all()
