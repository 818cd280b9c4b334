# Overview: Flask API routes for stock levels, pack decompositions and reasoned adjustments.

"""
Inventory routes.

- View operations require VIEW_INVENTORY
- Adjustments require ADJUST_INVENTORY

Adjustments are target-based: the client sends the counted stock and a
reason, the server computes the delta. A count equal to the current stock is
a no-op and writes nothing.
"""
from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_permission
from ..domain import NO_OP
from ..services.adjustment_service import reconcile_record
from ..services.catalog_service import SqlCatalog
from ..services.decomposer import available_packs, decompose, format_inventory_display, pack_display_text
from ..services.inventory_service import (
    SqlInventory,
    get_outlet_or_404,
    list_adjustments,
    list_records,
    stock_status,
)
from ..services.pack_catalog import PackCatalog
from . import error_response, json_body, require_int


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("/<int:outlet_id>")
@require_permission("VIEW_INVENTORY")
def list_inventory_route(outlet_id: int):
    try:
        pairs = list_records(outlet_id)
        packs = PackCatalog(SqlCatalog())
        items = []
        for record, product in pairs:
            minimum = record.minimum_stock or product.reorder_level or 0
            row = record.to_dict()
            row["product_name"] = product.name
            row["sku"] = product.sku
            row["status"] = stock_status(record.current_stock, minimum, record.maximum_stock or 0)
            row["display"] = format_inventory_display(record.current_stock, packs.variants_or_empty(product.id))
            items.append(row)
    except Exception as e:
        return error_response(e)
    return jsonify({"outlet_id": outlet_id, "items": items})


@inventory_bp.get("/<int:outlet_id>/<int:product_id>/packs")
@require_permission("VIEW_INVENTORY")
def pack_breakdown_route(outlet_id: int, product_id: int):
    """Current stock as whole packs (largest first) plus loose units, with per-pack sale options."""
    symbol = current_app.config.get("CURRENCY_SYMBOL", "Le")
    try:
        get_outlet_or_404(outlet_id)
        packs = PackCatalog(SqlCatalog())
        product = packs.product(product_id)
        variants = packs.variants_or_empty(product.id)
        stock = SqlInventory().get_current_stock(product_id, outlet_id)
        result = decompose(stock, variants, product.unit_price_cents)
    except Exception as e:
        return error_response(e)

    return jsonify({
        "outlet_id": outlet_id,
        "product_id": product_id,
        "current_stock": stock,
        "display": format_inventory_display(stock, variants),
        "decomposition": result.to_dict(),
        "sale_options": [
            {
                "pack_variant_id": v.id,
                "pack_size": v.pack_size,
                "pack_price_cents": v.pack_price_cents,
                "available_packs": available_packs(stock, v.pack_size),
                "display_text": pack_display_text(v, symbol),
            }
            for v in sorted(variants, key=lambda v: (-v.pack_size, v.id))
        ],
    })


@inventory_bp.post("/adjustments")
@require_permission("ADJUST_INVENTORY")
def create_adjustment_route():
    """
    Body: {"outlet_id": 1, "product_id": 2, "target_stock": 40, "reason": "Cycle count"}
    """
    try:
        payload = json_body()
        outlet_id = require_int(payload, "outlet_id")
        product_id = require_int(payload, "product_id")
        target_stock = require_int(payload, "target_stock")

        get_outlet_or_404(outlet_id)
        inventory = SqlInventory(attempts=current_app.config.get("SUBMIT_RETRY_ATTEMPTS", 3))
        record = inventory.get_record(product_id, outlet_id)
        adjustment = reconcile_record(record, target_stock, payload.get("reason"), actor_id=g.actor_id)

        if adjustment is NO_OP:
            return jsonify({"status": "no_op", "current_stock": record.current_stock})

        result = inventory.adjust(adjustment)
    except Exception as e:
        return error_response(e)

    current_app.logger.info(
        "Stock adjusted: outlet=%s product=%s delta=%s new_stock=%s actor=%s",
        outlet_id, product_id, adjustment.delta, result.new_stock, g.actor_id,
    )
    return jsonify({
        "status": "applied",
        "adjustment": adjustment.to_dict(),
        "adjustment_id": result.adjustment_id,
        "new_stock": result.new_stock,
    }), 201


@inventory_bp.get("/<int:outlet_id>/adjustments")
@require_permission("VIEW_INVENTORY")
def list_adjustments_route(outlet_id: int):
    try:
        get_outlet_or_404(outlet_id)
        product_id = request.args.get("product_id", type=int)
        limit = request.args.get("limit", default=100, type=int)
        rows = list_adjustments(outlet_id, product_id=product_id, limit=limit)
    except Exception as e:
        return error_response(e)
    return jsonify({"adjustments": [r.to_dict() for r in rows]})
