# Overview: Append-only audit log; written inside the caller's transaction.

from __future__ import annotations

from datetime import datetime
from typing import Optional

from ..extensions import db
from ..models import AuditEvent
from ..time_utils import utcnow
"""
Audit log invariants

- Append-only: no deletes/updates of existing events.
- No domain/business logic here.
- Events are flushed, never committed: they share the transaction of the
  change they record and disappear with it on rollback.
"""


def append_audit_event(
    *,
    event_type: str,
    entity_type: str,
    entity_id: int,
    actor_user_id: int | None = None,
    occurred_at: Optional[datetime] = None,
    note: Optional[str] = None,
    payload: Optional[dict] = None,
) -> AuditEvent:
    ev = AuditEvent(
        event_type=event_type,
        entity_type=entity_type,
        entity_id=entity_id,
        actor_user_id=actor_user_id,
        occurred_at=occurred_at or utcnow(),
        note=note[:255] if note else None,
        payload=payload,
    )
    db.session.add(ev)
    db.session.flush()  # ensures ev.id is assigned without committing
    return ev


def list_audit_events(entity_type: str | None = None, entity_id: int | None = None) -> list[AuditEvent]:
    q = db.session.query(AuditEvent)
    if entity_type:
        q = q.filter(AuditEvent.entity_type == entity_type)
    if entity_id is not None:
        q = q.filter(AuditEvent.entity_id == entity_id)
    return q.order_by(AuditEvent.occurred_at.asc(), AuditEvent.id.asc()).all()
