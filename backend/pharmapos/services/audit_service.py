# Overview: Append-only audit events written alongside sales and stock adjustments.

from __future__ import annotations

from datetime import datetime
from typing import Optional

from ..extensions import db
from ..models import AuditEvent, Outlet


EVENT_SALE_SUBMITTED = "sale.submitted"
EVENT_INVENTORY_ADJUSTED = "inventory.adjusted"
EVENT_PACK_VARIANT_DEACTIVATED = "catalog.pack_variant_deactivated"


def append_audit_event(
    *,
    outlet_id: int,
    event_type: str,
    entity_type: str,
    entity_id: int,
    actor_id: int | None = None,
    occurred_at: Optional[datetime] = None,
    note: Optional[str] = None,
    payload: Optional[dict] = None,
) -> AuditEvent:
    """
    Append one audit event inside the caller's transaction.

    - No domain logic here.
    - No deletes/updates of existing events.
    - Caller commits.
    """
    if db.session.get(Outlet, outlet_id) is None:
        raise ValueError(f"Outlet {outlet_id} not found for audit event")

    ev = AuditEvent(
        outlet_id=outlet_id,
        event_type=event_type,
        entity_type=entity_type,
        entity_id=entity_id,
        actor_id=actor_id,
        occurred_at=occurred_at,  # if None, db default applies
        note=note,
        payload=payload,
    )
    db.session.add(ev)
    db.session.flush()
    return ev


def list_audit_events(
    outlet_id: int,
    *,
    event_type: str | None = None,
    entity_type: str | None = None,
    entity_id: int | None = None,
    limit: int = 100,
) -> list[AuditEvent]:
    q = db.session.query(AuditEvent).filter(AuditEvent.outlet_id == outlet_id)
    if event_type:
        q = q.filter(AuditEvent.event_type == event_type)
    if entity_type:
        q = q.filter(AuditEvent.entity_type == entity_type)
    if entity_id is not None:
        q = q.filter(AuditEvent.entity_id == entity_id)
    return q.order_by(AuditEvent.id.desc()).limit(limit).all()
