# Overview: Computes signed stock adjustments from an observed/target count, with a mandatory reason.

"""
Stock reconciliation

delta = target_stock - current_stock
- blank reason        -> MissingReason
- negative target     -> ValidationError (stock is never below zero)
- delta == 0          -> NO_OP (caller skips submission)
- delta > 0           -> "increase", otherwise "decrease"

Nothing here mutates stock. The inventory collaborator applies the delta.
"""

from __future__ import annotations

from ..domain import (
    ADJUSTMENT_DECREASE,
    ADJUSTMENT_INCREASE,
    NO_OP,
    InventoryRecord,
    NoOpAdjustment,
    StockAdjustment,
)
from ..errors import MissingReason, ValidationError


def reconcile(
    current_stock: int,
    target_stock: int,
    reason: str | None,
    *,
    product_id: int | None = None,
    outlet_id: int | None = None,
    actor_id: int | None = None,
) -> StockAdjustment | NoOpAdjustment:
    if reason is None or not reason.strip():
        raise MissingReason()

    for name, value in (("current_stock", current_stock), ("target_stock", target_stock)):
        if not isinstance(value, int) or isinstance(value, bool):
            raise ValidationError(f"{name} must be an integer", details={name: value})
    if target_stock < 0:
        raise ValidationError("Target stock cannot be negative", details={"target_stock": target_stock})

    delta = target_stock - current_stock
    if delta == 0:
        return NO_OP

    return StockAdjustment(
        product_id=product_id,
        outlet_id=outlet_id,
        delta=delta,
        reason=reason.strip(),
        actor_id=actor_id,
        adjustment_type=ADJUSTMENT_INCREASE if delta > 0 else ADJUSTMENT_DECREASE,
        previous_stock=current_stock,
        target_stock=target_stock,
    )


def reconcile_record(
    record: InventoryRecord,
    target_stock: int,
    reason: str | None,
    actor_id: int | None = None,
) -> StockAdjustment | NoOpAdjustment:
    """reconcile() against an inventory record, carrying its product and outlet."""
    return reconcile(
        record.current_stock,
        target_stock,
        reason,
        product_id=record.product_id,
        outlet_id=record.outlet_id,
        actor_id=actor_id,
    )
