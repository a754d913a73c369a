from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class DocumentSequence(db.Model):
    """
    Atomic document sequences (one row per document type).

    WHY: Prevent race conditions when generating folios.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("document_type", name="uq_doc_sequences_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_type = db.Column(db.String(32), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_type": self.document_type,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }


class AuditEvent(db.Model):
    """
    Append-only audit log for cross-cutting domain events.

    IMMUTABLE: Records are never updated or deleted.
    Events are written inside the same DB transaction as the change they record.
    """
    __tablename__ = "audit_events"
    __table_args__ = (
        db.Index("ix_audit_events_entity", "entity_type", "entity_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    event_type = db.Column(db.String(64), nullable=False, index=True)
    entity_type = db.Column(db.String(32), nullable=False)
    entity_id = db.Column(db.Integer, nullable=False)
    actor_user_id = db.Column(db.Integer, nullable=True, index=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    note = db.Column(db.String(255), nullable=True)
    payload = db.Column(db.JSON, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "event_type": self.event_type,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "actor_user_id": self.actor_user_id,
            "occurred_at": to_utc_z(self.occurred_at),
            "note": self.note,
            "payload": self.payload,
        }
