# Overview: Flask API route for pricing a cart without submitting it.

from flask import Blueprint, jsonify

from ..decorators import require_permission
from ..services.inventory_service import get_outlet_or_404
from ..services.quote_service import quote
from . import error_response, json_body, require_int


cart_bp = Blueprint("cart", __name__, url_prefix="/api/cart")


@cart_bp.post("/quote")
@require_permission("CREATE_SALE")
def quote_route():
    """
    Price a list of lines against current catalog and stock.

    Body: {"outlet_id": 1, "lines": [{"product_id": 2, "sale_type": "pack",
           "pack_variant_id": 5, "quantity": 2}, ...]}

    Nothing is stored; stock is checked but not reserved.
    """
    try:
        payload = json_body()
        outlet_id = require_int(payload, "outlet_id")
        get_outlet_or_404(outlet_id)
        result = quote(outlet_id, payload.get("lines"))
    except Exception as e:
        return error_response(e)
    return jsonify(result)
