from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from .. import domain


class InventoryRecord(db.Model):
    """
    One stock pool per (product, outlet), in atomic units.

    Pack and unit sales both draw from current_stock; a pack sale removes
    pack_size * pack_quantity. current_stock never goes below zero.
    """
    __tablename__ = "inventory_records"
    __table_args__ = (
        db.UniqueConstraint("product_id", "outlet_id", name="uq_inventory_product_outlet"),
        db.CheckConstraint("current_stock >= 0", name="ck_inventory_current_stock"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=False, index=True)

    current_stock = db.Column(db.Integer, nullable=False, default=0)
    minimum_stock = db.Column(db.Integer, nullable=False, default=0)
    maximum_stock = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship("Product", backref=db.backref("inventory_records", lazy=True))
    outlet = db.relationship("Outlet", backref=db.backref("inventory_records", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_domain(self) -> domain.InventoryRecord:
        return domain.InventoryRecord(
            product_id=self.product_id,
            outlet_id=self.outlet_id,
            current_stock=self.current_stock,
            minimum_stock=self.minimum_stock,
            maximum_stock=self.maximum_stock,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "outlet_id": self.outlet_id,
            "current_stock": self.current_stock,
            "minimum_stock": self.minimum_stock,
            "maximum_stock": self.maximum_stock,
            "version_id": self.version_id,
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryAdjustment(db.Model):
    """
    Applied stock adjustment (append-only).

    Every row carries the reason and the actor; stock before and after are
    recorded so the row stands on its own in an audit.
    """
    __tablename__ = "inventory_adjustments"
    __table_args__ = (
        db.Index("ix_inventory_adjustments_outlet_created", "outlet_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=False, index=True)

    adjustment_type = db.Column(db.String(16), nullable=False)  # increase, decrease
    quantity_delta = db.Column(db.Integer, nullable=False)
    previous_stock = db.Column(db.Integer, nullable=False)
    new_stock = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(255), nullable=False)
    actor_id = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "outlet_id": self.outlet_id,
            "type": self.adjustment_type,
            "quantity_delta": self.quantity_delta,
            "previous_stock": self.previous_stock,
            "new_stock": self.new_stock,
            "reason": self.reason,
            "actor_id": self.actor_id,
            "created_at": to_utc_z(self.created_at),
        }
