from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Sale(db.Model):
    """
    Completed sale, written once by the sales collaborator.

    correlation_id is generated by the client when the sale record is built;
    a resubmission with the same id returns this row instead of a second sale.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("correlation_id", name="uq_sales_correlation_id"),
        db.Index("ix_sales_outlet_created", "outlet_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    correlation_id = db.Column(db.String(64), nullable=False)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=False, index=True)

    # Human-readable document number (e.g., "S-000123"), assigned after insert
    document_number = db.Column(db.String(64), nullable=True, index=True)

    payment_method = db.Column(db.String(16), nullable=False)  # cash, card, mobile, mixed

    # All amounts in minor units
    subtotal_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)
    tendered_cents = db.Column(db.Integer, nullable=False, default=0)
    change_cents = db.Column(db.Integer, nullable=False, default=0)

    created_by_actor_id = db.Column(db.Integer, nullable=True)
    # Client-side build time vs. server receipt time
    built_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    outlet = db.relationship("Outlet", backref=db.backref("sales", lazy=True))

    def to_dict(self, include_lines: bool = False) -> dict:
        data = {
            "id": self.id,
            "correlation_id": self.correlation_id,
            "outlet_id": self.outlet_id,
            "document_number": self.document_number,
            "payment_method": self.payment_method,
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            "tendered_cents": self.tendered_cents,
            "change_cents": self.change_cents,
            "created_by_actor_id": self.created_by_actor_id,
            "built_at": to_utc_z(self.built_at),
            "created_at": to_utc_z(self.created_at),
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
            data["payments"] = [p.to_dict() for p in self.payments]
        return data


class SaleLine(db.Model):
    """
    Line item on a sale, with its pack/unit sale info flattened into columns.

    quantity is in line units (packs for pack sales);
    effective_unit_count is what left the stock pool.
    """
    __tablename__ = "sale_lines"
    __table_args__ = (
        db.CheckConstraint(
            "(sale_type = 'unit' AND pack_quantity = 0 AND unit_quantity > 0)"
            " OR (sale_type = 'pack' AND unit_quantity = 0 AND pack_quantity > 0)",
            name="ck_sale_lines_sale_type",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    pack_variant_id = db.Column(db.Integer, db.ForeignKey("pack_variants.id"), nullable=True)

    sale_type = db.Column(db.String(8), nullable=False)
    unit_quantity = db.Column(db.Integer, nullable=False, default=0)
    pack_quantity = db.Column(db.Integer, nullable=False, default=0)
    pack_size = db.Column(db.Integer, nullable=False, default=1)
    effective_unit_count = db.Column(db.Integer, nullable=False)

    unit_label = db.Column(db.String(64), nullable=True)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    line_discount_cents = db.Column(db.Integer, nullable=False, default=0)
    line_total_cents = db.Column(db.Integer, nullable=False)

    batch_number = db.Column(db.String(64), nullable=True)
    expiry_date = db.Column(db.Date, nullable=True)

    sale = db.relationship("Sale", backref=db.backref("lines", lazy=True, order_by="SaleLine.id"))
    product = db.relationship("Product")

    @property
    def quantity(self) -> int:
        return self.pack_quantity if self.sale_type == "pack" else self.unit_quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "pack_variant_id": self.pack_variant_id,
            "sale_type": self.sale_type,
            "quantity": self.quantity,
            "unit_quantity": self.unit_quantity,
            "pack_quantity": self.pack_quantity,
            "pack_size": self.pack_size,
            "effective_unit_count": self.effective_unit_count,
            "unit_label": self.unit_label,
            "unit_price_cents": self.unit_price_cents,
            "discount_cents": self.discount_cents,
            "line_discount_cents": self.line_discount_cents,
            "line_total_cents": self.line_total_cents,
            "batch_number": self.batch_number,
            "expiry_date": self.expiry_date.isoformat() if self.expiry_date else None,
        }


class SalePayment(db.Model):
    """
    Tender applied to a sale. A mixed payment produces one row per non-zero tender.
    """
    __tablename__ = "sale_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)

    tender_type = db.Column(db.String(16), nullable=False, index=True)  # cash, card, mobile
    amount_cents = db.Column(db.Integer, nullable=False)

    # Mobile money number, card reference, ...
    reference_number = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", backref=db.backref("payments", lazy=True, order_by="SalePayment.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "tender_type": self.tender_type,
            "amount_cents": self.amount_cents,
            "reference_number": self.reference_number,
            "created_at": to_utc_z(self.created_at),
        }
