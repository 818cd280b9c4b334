# Overview: Inventory collaborator over SQLAlchemy: stock lookups and atomic adjustments.

"""
PharmaPOS Inventory Invariants (authoritative)

- One InventoryRecord per (product, outlet); current_stock is total atomic units.
- Packs are never stored; they are derived on read by the decomposer.
- current_stock >= 0 after every accepted change (also a DB check constraint).
- Every adjustment is written as an InventoryAdjustment row plus an AuditEvent
  in the same transaction, and always carries a non-empty reason.
- A product with no record at an outlet has stock 0.
"""

from __future__ import annotations

from sqlalchemy.exc import SQLAlchemyError

from .. import domain
from ..errors import MissingReason, NotFound, ServerError, ValidationError
from ..extensions import db
from ..models import InventoryAdjustment, InventoryRecord, Outlet, Product
from .audit_service import EVENT_INVENTORY_ADJUSTED, append_audit_event
from .concurrency import lock_for_update, run_with_retry


STOCK_OUT = "out_of_stock"
STOCK_LOW = "low_stock"
STOCK_IN = "in_stock"
STOCK_OVER = "overstocked"


def stock_status(current_stock: int, minimum_stock: int, maximum_stock: int) -> str:
    """Bucket a stock level; maximum_stock == 0 means "no ceiling"."""
    if current_stock <= 0:
        return STOCK_OUT
    if current_stock <= minimum_stock:
        return STOCK_LOW
    if maximum_stock > 0 and current_stock >= maximum_stock:
        return STOCK_OVER
    return STOCK_IN


def _ensure_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFound(f"Product {product_id} not found", details={"product_id": product_id})
    return product


def get_outlet_or_404(outlet_id: int) -> Outlet:
    outlet = db.session.get(Outlet, outlet_id)
    if outlet is None:
        raise NotFound(f"Outlet {outlet_id} not found", details={"outlet_id": outlet_id})
    return outlet


def find_record(product_id: int, outlet_id: int, *, lock: bool = False) -> InventoryRecord | None:
    query = db.session.query(InventoryRecord).filter_by(product_id=product_id, outlet_id=outlet_id)
    if lock:
        query = lock_for_update(query)
    return query.first()


def ensure_record(
    product_id: int,
    outlet_id: int,
    *,
    current_stock: int | None = None,
    minimum_stock: int | None = None,
    maximum_stock: int | None = None,
) -> InventoryRecord:
    """
    Create or update the record for (product, outlet). Setup/import path only;
    day-to-day stock changes go through sales and adjust(). Caller commits.
    """
    _ensure_product(product_id)
    get_outlet_or_404(outlet_id)

    record = find_record(product_id, outlet_id)
    if record is None:
        record = InventoryRecord(
            product_id=product_id,
            outlet_id=outlet_id,
            current_stock=0,
            minimum_stock=0,
            maximum_stock=0,
        )
        db.session.add(record)

    if current_stock is not None:
        if current_stock < 0:
            raise ValidationError("current_stock cannot be negative", details={"current_stock": current_stock})
        record.current_stock = current_stock
    if minimum_stock is not None:
        record.minimum_stock = minimum_stock
    if maximum_stock is not None:
        record.maximum_stock = maximum_stock

    db.session.flush()
    return record


def list_records(outlet_id: int) -> list[tuple[InventoryRecord, Product]]:
    get_outlet_or_404(outlet_id)
    return (
        db.session.query(InventoryRecord, Product)
        .join(Product, Product.id == InventoryRecord.product_id)
        .filter(InventoryRecord.outlet_id == outlet_id)
        .order_by(Product.name.asc())
        .all()
    )


class SqlInventory:
    """InventoryLookup + InventoryAPI over the inventory tables."""

    def __init__(self, attempts: int = 3):
        self.attempts = attempts

    def get_current_stock(self, product_id: int, outlet_id: int) -> int:
        _ensure_product(product_id)
        record = find_record(product_id, outlet_id)
        return record.current_stock if record else 0

    def get_record(self, product_id: int, outlet_id: int) -> domain.InventoryRecord:
        _ensure_product(product_id)
        record = find_record(product_id, outlet_id)
        if record is None:
            return domain.InventoryRecord(product_id=product_id, outlet_id=outlet_id, current_stock=0)
        return record.to_domain()

    def adjust(self, adjustment: domain.StockAdjustment) -> domain.AdjustResult:
        """
        Apply a signed delta atomically for (product, outlet).

        Raises:
            MissingReason: blank reason
            ValidationError: zero delta, or stock would go negative
            NotFound: unknown product or outlet
            ServerError: database failure after retries
        """
        if not (adjustment.reason or "").strip():
            raise MissingReason()
        if adjustment.delta == 0:
            raise ValidationError("Zero-delta adjustments are not submitted")
        if adjustment.product_id is None or adjustment.outlet_id is None:
            raise ValidationError("Adjustment needs product_id and outlet_id")

        def _op():
            _ensure_product(adjustment.product_id)
            get_outlet_or_404(adjustment.outlet_id)

            record = find_record(adjustment.product_id, adjustment.outlet_id, lock=True)
            if record is None:
                record = InventoryRecord(
                    product_id=adjustment.product_id,
                    outlet_id=adjustment.outlet_id,
                    current_stock=0,
                    minimum_stock=0,
                    maximum_stock=0,
                )
                db.session.add(record)
                db.session.flush()

            previous = record.current_stock
            new_stock = previous + adjustment.delta
            if new_stock < 0:
                raise ValidationError(
                    "Adjustment would make stock negative",
                    details={
                        "product_id": adjustment.product_id,
                        "current_stock": previous,
                        "delta": adjustment.delta,
                    },
                )

            record.current_stock = new_stock
            row = InventoryAdjustment(
                product_id=adjustment.product_id,
                outlet_id=adjustment.outlet_id,
                adjustment_type=adjustment.adjustment_type,
                quantity_delta=adjustment.delta,
                previous_stock=previous,
                new_stock=new_stock,
                reason=adjustment.reason.strip(),
                actor_id=adjustment.actor_id,
            )
            db.session.add(row)
            db.session.flush()

            append_audit_event(
                outlet_id=adjustment.outlet_id,
                event_type=EVENT_INVENTORY_ADJUSTED,
                entity_type="inventory_adjustment",
                entity_id=row.id,
                actor_id=adjustment.actor_id,
                note=row.reason,
                payload={
                    "product_id": adjustment.product_id,
                    "type": adjustment.adjustment_type,
                    "delta": adjustment.delta,
                    "previous_stock": previous,
                    "new_stock": new_stock,
                },
            )

            db.session.commit()
            return domain.AdjustResult(new_stock=new_stock, adjustment_id=row.id)

        try:
            return run_with_retry(_op, attempts=self.attempts)
        except (ValidationError, NotFound):
            db.session.rollback()
            raise
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise ServerError("Inventory adjustment failed", details={"reason": str(exc)}) from exc


def list_adjustments(outlet_id: int, product_id: int | None = None, limit: int = 100) -> list[InventoryAdjustment]:
    q = db.session.query(InventoryAdjustment).filter_by(outlet_id=outlet_id)
    if product_id is not None:
        q = q.filter_by(product_id=product_id)
    return q.order_by(InventoryAdjustment.id.desc()).limit(limit).all()
