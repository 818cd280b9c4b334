from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class AuditEvent(db.Model):
    """
    Append-only audit trail for sales and stock adjustments.

    Written in the same DB transaction as the change it records.
    Rows are never updated or deleted.
    """
    __tablename__ = "audit_events"
    __table_args__ = (
        db.Index("ix_audit_events_outlet_occurred", "outlet_id", "occurred_at"),
        db.Index("ix_audit_events_entity", "entity_type", "entity_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=False, index=True)

    event_type = db.Column(db.String(64), nullable=False, index=True)  # sale.submitted, inventory.adjusted
    entity_type = db.Column(db.String(32), nullable=False)
    entity_id = db.Column(db.Integer, nullable=False)
    actor_id = db.Column(db.Integer, nullable=True)

    note = db.Column(db.String(255), nullable=True)
    payload = db.Column(db.JSON, nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "outlet_id": self.outlet_id,
            "event_type": self.event_type,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "actor_id": self.actor_id,
            "note": self.note,
            "payload": self.payload,
            "occurred_at": to_utc_z(self.occurred_at),
        }
