from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from .. import domain


class Product(db.Model):
    """
    Product master data.

    unit_price_cents is the ATOMIC unit price (one tablet, one sachet).
    Pack prices live on PackVariant; stock lives on InventoryRecord.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_products_sku"),
        db.Index("ix_products_name", "name"),
        db.Index("ix_products_category_active", "category", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(64), nullable=True)
    manufacturer = db.Column(db.String(128), nullable=True)
    barcode = db.Column(db.String(32), nullable=True, index=True)

    # Label for one atomic unit (tablet, capsule, bottle)
    unit = db.Column(db.String(32), nullable=False, default="unit")

    # Authoritative storage in minor units (frontend may only format for display)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    cost_price_cents = db.Column(db.Integer, nullable=False, default=0)

    reorder_level = db.Column(db.Integer, nullable=False, default=0)
    allow_unit_sale = db.Column(db.Boolean, nullable=False, default=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r}>"

    def to_domain(self) -> domain.Product:
        return domain.Product(
            id=self.id,
            sku=self.sku,
            name=self.name,
            category=self.category,
            unit=self.unit or "unit",
            unit_price_cents=self.unit_price_cents,
            cost_price_cents=self.cost_price_cents or 0,
            reorder_level=self.reorder_level or 0,
            allow_unit_sale=bool(self.allow_unit_sale),
            barcode=self.barcode,
            is_active=bool(self.is_active),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "manufacturer": self.manufacturer,
            "barcode": self.barcode,
            "unit": self.unit,
            "unit_price_cents": self.unit_price_cents,
            "cost_price_cents": self.cost_price_cents,
            "reorder_level": self.reorder_level,
            "allow_unit_sale": self.allow_unit_sale,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class PackVariant(db.Model):
    """
    A bundle of pack_size atomic units sold at pack_price_cents.

    Variants are deactivated, never deleted: past sale lines reference them.
    """
    __tablename__ = "pack_variants"
    __table_args__ = (
        db.CheckConstraint("pack_size >= 1", name="ck_pack_variants_pack_size"),
        db.CheckConstraint("pack_price_cents >= 0", name="ck_pack_variants_pack_price"),
        db.CheckConstraint("unit_price_cents >= 0", name="ck_pack_variants_unit_price"),
        db.Index("ix_pack_variants_product_active", "product_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    name = db.Column(db.String(64), nullable=True)

    pack_size = db.Column(db.Integer, nullable=False)
    pack_price_cents = db.Column(db.Integer, nullable=False)
    # Effective per-unit price when bought in this pack
    unit_price_cents = db.Column(db.Integer, nullable=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("pack_variants", lazy=True))

    def to_domain(self) -> domain.PackVariant:
        return domain.PackVariant(
            id=self.id,
            product_id=self.product_id,
            pack_size=self.pack_size,
            pack_price_cents=self.pack_price_cents,
            unit_price_cents=self.unit_price_cents,
            is_active=bool(self.is_active),
            name=self.name,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "name": self.name,
            "pack_size": self.pack_size,
            "pack_price_cents": self.pack_price_cents,
            "unit_price_cents": self.unit_price_cents,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
