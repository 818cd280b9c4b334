# Overview: Catalog collaborator over SQLAlchemy, plus the single normalization step for incoming product shapes.

"""
Catalog boundary

Everything that enters the system as a product passes through
normalize_product_payload() exactly once. Legacy clients send the same fact
under different names (price / sellingPrice, stockQuantity / currentStock,
reorderLevel / minimumStock, ...); after normalization the rest of the code
only ever sees the canonical keys.

SqlCatalog implements the CatalogLookup interface for the pricing core and
returns frozen domain values, never ORM rows.
"""

from __future__ import annotations

from typing import Any, Sequence

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from .. import domain
from ..errors import ConflictError, NotFound, ValidationError
from ..extensions import db
from ..models import PackVariant, Product
from ..validation import (
    ModelValidationPolicy,
    enforce_rules_inventory_record,
    enforce_rules_pack_variant,
    enforce_rules_product,
    validate_payload,
)
from .audit_service import EVENT_PACK_VARIANT_DEACTIVATED, append_audit_event
from .inventory_service import ensure_record, get_outlet_or_404


_ALIASES: dict[str, tuple[str, ...]] = {
    "sku": ("sku", "SKU", "code"),
    "name": ("name", "productName"),
    "description": ("description",),
    "category": ("category",),
    "manufacturer": ("manufacturer",),
    "barcode": ("barcode",),
    "unit": ("unit",),
    "unit_price_cents": ("unit_price_cents", "unitPrice", "sellingPrice", "price"),
    "cost_price_cents": ("cost_price_cents", "costPrice", "cost"),
    "reorder_level": ("reorder_level", "reorderLevel", "minimumStock", "minStockLevel"),
    "allow_unit_sale": ("allow_unit_sale", "allowUnitSale"),
    "current_stock": ("current_stock", "currentStock", "stockQuantity"),
    "maximum_stock": ("maximum_stock", "maximumStock", "maxStockLevel"),
}

_PACK_ALIASES: dict[str, tuple[str, ...]] = {
    "name": ("name",),
    "pack_size": ("pack_size", "packSize"),
    "pack_price_cents": ("pack_price_cents", "packPrice"),
    "unit_price_cents": ("unit_price_cents", "unitPrice"),
    "is_active": ("is_active", "isActive"),
}

_INT_FIELDS = {
    "unit_price_cents", "cost_price_cents", "reorder_level", "current_stock",
    "maximum_stock", "pack_size", "pack_price_cents",
}


def _first(raw: dict, names: tuple[str, ...]) -> Any:
    for name in names:
        if raw.get(name) is not None:
            return raw[name]
    return None


def _as_int(key: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer", details={"field": key})
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise ValidationError(f"{key} must be a whole amount", details={"field": key, "value": value})


def _normalize_block(raw: dict, aliases: dict[str, tuple[str, ...]]) -> dict:
    out: dict = {}
    for key, names in aliases.items():
        value = _first(raw, names)
        if value is None:
            continue
        out[key] = _as_int(key, value) if key in _INT_FIELDS else value
    return out


def normalize_product_payload(raw: dict) -> dict:
    """
    Map any known product shape onto the canonical one.

    Nested "inventory" blocks ({"currentStock": .., "minimumStock": ..}) are
    folded in; top-level values win over nested ones.

    Returns a dict with canonical keys only, plus "pack_variants" (list of dicts).
    """
    if not isinstance(raw, dict):
        raise ValidationError("Product payload must be an object")

    nested = raw.get("inventory") or {}
    if not isinstance(nested, dict):
        raise ValidationError("inventory must be an object", details={"field": "inventory"})
    top = {k: v for k, v in raw.items() if k != "inventory"}

    out = _normalize_block(nested, _ALIASES)
    out.update(_normalize_block(top, _ALIASES))
    if "sku" not in out and out.get("barcode"):
        out["sku"] = str(out["barcode"])
    if not out.get("sku"):
        raise ValidationError("Product needs a sku or barcode", details={"field": "sku"})
    if not out.get("name"):
        raise ValidationError("Product name is required", details={"field": "name"})
    if "unit_price_cents" not in out:
        raise ValidationError("Product price is required", details={"field": "unit_price_cents"})

    pack_keys = ("pack_variants", "packVariants")
    packs = _first(top, pack_keys) or _first(nested, pack_keys) or []
    if not isinstance(packs, list) or not all(isinstance(p, dict) for p in packs):
        raise ValidationError("pack_variants must be a list of objects", details={"field": "pack_variants"})
    out["pack_variants"] = [_normalize_block(p, _PACK_ALIASES) for p in packs]
    return out


class SqlCatalog:
    """CatalogLookup over the products / pack_variants tables."""

    def get_product(self, product_id: int) -> domain.Product:
        product = db.session.get(Product, product_id)
        if product is None:
            raise NotFound(f"Product {product_id} not found", details={"product_id": product_id})
        return product.to_domain()

    def get_pack_variants(self, product_id: int) -> Sequence[domain.PackVariant]:
        rows = (
            db.session.query(PackVariant)
            .filter_by(product_id=product_id)
            .order_by(PackVariant.pack_size.desc(), PackVariant.id.asc())
            .all()
        )
        return [row.to_domain() for row in rows]


def get_product_or_404(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFound(f"Product {product_id} not found", details={"product_id": product_id})
    return product


def list_products(
    *,
    query: str | None = None,
    category: str | None = None,
    include_inactive: bool = False,
) -> list[Product]:
    q = db.session.query(Product)
    if not include_inactive:
        q = q.filter(Product.is_active.is_(True))
    if category:
        q = q.filter(Product.category == category)
    if query and query.strip():
        term = f"%{query.strip().lower()}%"
        q = q.filter(
            or_(
                db.func.lower(Product.name).like(term),
                db.func.lower(Product.description).like(term),
                db.func.lower(Product.category).like(term),
                db.func.lower(Product.manufacturer).like(term),
                Product.barcode.like(f"%{query.strip()}%"),
                db.func.lower(Product.sku).like(term),
            )
        )
    return q.order_by(Product.name.asc()).all()


def create_product(patch: dict) -> Product:
    """Insert a product from an already validated patch. Caller commits."""
    if db.session.query(Product).filter_by(sku=patch["sku"]).first() is not None:
        raise ConflictError(f"SKU {patch['sku']} already exists", details={"sku": patch["sku"]})

    product = Product(**patch)
    db.session.add(product)
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"SKU {patch['sku']} already exists", details={"sku": patch["sku"]})
    return product


def update_product(product_id: int, patch: dict) -> Product:
    product = get_product_or_404(product_id)
    if "sku" in patch and patch["sku"] != product.sku:
        clash = db.session.query(Product).filter_by(sku=patch["sku"]).first()
        if clash is not None:
            raise ConflictError(f"SKU {patch['sku']} already exists", details={"sku": patch["sku"]})
    for key, value in patch.items():
        setattr(product, key, value)
    db.session.flush()
    return product


def add_pack_variant(product_id: int, patch: dict) -> PackVariant:
    """
    Add a pack variant. unit_price_cents defaults to pack price / pack size
    (floor) when not given. Caller commits.
    """
    product = get_product_or_404(product_id)
    pack_size = patch["pack_size"]
    if "unit_price_cents" not in patch or patch["unit_price_cents"] is None:
        patch = dict(patch, unit_price_cents=patch["pack_price_cents"] // pack_size)

    duplicate = (
        db.session.query(PackVariant)
        .filter_by(product_id=product.id, pack_size=pack_size, is_active=True)
        .first()
    )
    if duplicate is not None:
        raise ConflictError(
            f"An active {pack_size}-unit pack already exists for this product",
            details={"pack_variant_id": duplicate.id},
        )

    variant = PackVariant(product_id=product.id, **patch)
    db.session.add(variant)
    db.session.flush()
    return variant


def deactivate_pack_variant(
    product_id: int,
    variant_id: int,
    *,
    outlet_id: int,
    actor_id: int | None = None,
) -> PackVariant:
    """Retire a variant from sale and decomposition; the row stays for history."""
    variant = db.session.query(PackVariant).filter_by(id=variant_id, product_id=product_id).first()
    if variant is None:
        raise NotFound(
            f"Pack variant {variant_id} not found for product {product_id}",
            details={"product_id": product_id, "pack_variant_id": variant_id},
        )
    if variant.is_active:
        variant.is_active = False
        db.session.flush()
        append_audit_event(
            outlet_id=outlet_id,
            event_type=EVENT_PACK_VARIANT_DEACTIVATED,
            entity_type="pack_variant",
            entity_id=variant.id,
            actor_id=actor_id,
            note=f"{variant.pack_size}-unit pack retired",
        )
    return variant


PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku", "name", "description", "category", "manufacturer", "barcode", "unit",
        "unit_price_cents", "cost_price_cents", "reorder_level", "allow_unit_sale", "is_active",
    },
    required_on_create={"sku", "name", "unit_price_cents"},
)

PACK_VARIANT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "pack_size", "pack_price_cents", "unit_price_cents", "is_active"},
    required_on_create={"pack_size", "pack_price_cents"},
)

_STOCK_KEYS = ("current_stock", "maximum_stock")


def _validated_import_row(index: int, raw: Any) -> tuple[dict, list[dict], dict]:
    try:
        normalized = normalize_product_payload(raw)
        packs = normalized.pop("pack_variants")
        stock = {k: normalized.pop(k) for k in _STOCK_KEYS if k in normalized}

        patch = validate_payload(model=Product, payload=normalized, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)

        pack_patches = []
        for pack in packs:
            pack_patch = validate_payload(
                model=PackVariant, payload=pack, policy=PACK_VARIANT_POLICY, partial=False,
            )
            enforce_rules_pack_variant(pack_patch)
            pack_patches.append(pack_patch)

        stock_patch = {"current_stock": stock.get("current_stock"), "maximum_stock": stock.get("maximum_stock")}
        if patch.get("reorder_level") is not None:
            stock_patch["minimum_stock"] = patch["reorder_level"]
        enforce_rules_inventory_record(stock_patch)
    except ValidationError as e:
        raise ValidationError(e.message, details={**e.details, "index": index}) from e
    return patch, pack_patches, stock_patch


def import_products(raw_products: Any, *, outlet_id: int | None = None) -> dict:
    """
    Create or update products from any known legacy shape, matched by sku.

    All rows are validated before anything is written, so one bad row rejects
    the whole batch. Pack variants whose size already exists are skipped.
    With an outlet_id, stock levels from the rows are written to that outlet.
    Caller commits.
    """
    if not isinstance(raw_products, list):
        raise ValidationError("products must be a list", details={"field": "products"})

    rows = [_validated_import_row(i, raw) for i, raw in enumerate(raw_products)]
    if outlet_id is not None:
        get_outlet_or_404(outlet_id)

    created = 0
    updated = 0
    products = []
    for patch, pack_patches, stock_patch in rows:
        existing = db.session.query(Product).filter_by(sku=patch["sku"]).first()
        if existing is None:
            product = create_product(patch)
            created += 1
        else:
            product = update_product(existing.id, patch)
            updated += 1

        active_sizes = {v.pack_size for v in product.pack_variants if v.is_active}
        for pack_patch in pack_patches:
            if pack_patch["pack_size"] in active_sizes:
                continue
            add_pack_variant(product.id, pack_patch)
            active_sizes.add(pack_patch["pack_size"])

        if outlet_id is not None:
            ensure_record(product.id, outlet_id, **stock_patch)

        products.append(product)

    return {"created": created, "updated": updated, "products": products}
