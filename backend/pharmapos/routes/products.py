# Overview: Flask API routes for the catalog: products, pack variants and legacy imports.

"""
Catalog routes.

- Reads require VIEW_PRODUCTS
- Writes (create, pack variants, import) require MANAGE_PRODUCTS

Products are written with canonical field names. /import accepts the legacy
shapes (price / sellingPrice, stockQuantity, packVariants, ...) and
normalizes them first.
"""
from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_permission
from ..extensions import db
from ..models import PackVariant, Product
from ..services import catalog_service
from ..services.catalog_service import PACK_VARIANT_POLICY, PRODUCT_POLICY
from ..services.decomposer import pack_display_text, unit_display_text
from ..validation import enforce_rules_pack_variant, enforce_rules_product, validate_payload
from . import error_response, json_body, require_int


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _product_dict(product: Product) -> dict:
    symbol = current_app.config.get("CURRENCY_SYMBOL", "Le")
    data = product.to_dict()
    data["unit_display_text"] = unit_display_text(product.unit_price_cents, symbol)
    data["pack_variants"] = []
    for variant in product.pack_variants:
        if not variant.is_active:
            continue
        row = variant.to_dict()
        row["display_text"] = pack_display_text(variant.to_domain(), symbol)
        data["pack_variants"].append(row)
    return data


@products_bp.get("")
@require_permission("VIEW_PRODUCTS")
def list_products_route():
    include_inactive = request.args.get("include_inactive", "false").lower() in ("1", "true")
    try:
        products = catalog_service.list_products(
            query=request.args.get("q"),
            category=request.args.get("category"),
            include_inactive=include_inactive,
        )
    except Exception as e:
        return error_response(e)
    return jsonify({"products": [_product_dict(p) for p in products]})


@products_bp.post("")
@require_permission("MANAGE_PRODUCTS")
def create_product_route():
    try:
        payload = json_body()
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
        product = catalog_service.create_product(patch)
        db.session.commit()
    except Exception as e:
        return error_response(e)

    current_app.logger.info("Product created: id=%s sku=%s actor=%s", product.id, product.sku, g.actor_id)
    return jsonify({"product": _product_dict(product)}), 201


@products_bp.get("/<int:product_id>")
@require_permission("VIEW_PRODUCTS")
def get_product_route(product_id: int):
    try:
        product = catalog_service.get_product_or_404(product_id)
    except Exception as e:
        return error_response(e)
    return jsonify({"product": _product_dict(product)})


@products_bp.post("/<int:product_id>/packs")
@require_permission("MANAGE_PRODUCTS")
def add_pack_variant_route(product_id: int):
    try:
        payload = json_body()
        patch = validate_payload(
            model=PackVariant, payload=payload, policy=PACK_VARIANT_POLICY, partial=False,
        )
        enforce_rules_pack_variant(patch)
        variant = catalog_service.add_pack_variant(product_id, patch)
        db.session.commit()
    except Exception as e:
        return error_response(e)

    current_app.logger.info(
        "Pack variant added: product=%s variant=%s size=%s", product_id, variant.id, variant.pack_size,
    )
    return jsonify({"pack_variant": variant.to_dict()}), 201


@products_bp.post("/<int:product_id>/packs/<int:variant_id>/deactivate")
@require_permission("MANAGE_PRODUCTS")
def deactivate_pack_variant_route(product_id: int, variant_id: int):
    try:
        payload = json_body()
        outlet_id = require_int(payload, "outlet_id")
        variant = catalog_service.deactivate_pack_variant(
            product_id, variant_id, outlet_id=outlet_id, actor_id=g.actor_id,
        )
        db.session.commit()
    except Exception as e:
        return error_response(e)
    return jsonify({"pack_variant": variant.to_dict()})


@products_bp.post("/import")
@require_permission("MANAGE_PRODUCTS")
def import_products_route():
    """
    Import products in any known legacy shape.

    Body: {"products": [...], "outlet_id": 1 (optional, writes stock levels)}
    """
    try:
        payload = json_body()
        outlet_id = payload.get("outlet_id")
        if outlet_id is not None:
            outlet_id = require_int(payload, "outlet_id")
        result = catalog_service.import_products(payload.get("products"), outlet_id=outlet_id)
        db.session.commit()
    except Exception as e:
        return error_response(e)

    current_app.logger.info(
        "Products imported: created=%s updated=%s actor=%s", result["created"], result["updated"], g.actor_id,
    )
    return jsonify({
        "created": result["created"],
        "updated": result["updated"],
        "products": [_product_dict(p) for p in result["products"]],
    }), 201
