# Overview: Flask API routes for checkout and sale lookup.

"""
Sales routes.

- Checkout requires CREATE_SALE
- Lookups require VIEW_SALES

Checkout replays the posted lines into a cart, builds the sale record and
submits it in one request. Clients should send their own correlation_id so a
retry after a timeout returns the original sale instead of selling twice.
"""
from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_permission
from ..errors import InsufficientStock, ValidationError
from ..services.checkout_service import CheckoutSession
from ..services.inventory_service import get_outlet_or_404
from ..services.quote_service import load_cart, parse_payment
from ..services.sales_service import SqlSalesApi, duplicate_result, find_by_correlation, get_sale, list_sales
from ..time_utils import to_utc_z
from . import error_response, json_body, require_int


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _result_dict(result) -> dict:
    return {
        "sale_id": result.sale_id,
        "document_number": result.document_number,
        "timestamp": to_utc_z(result.timestamp),
        "duplicate": result.duplicate,
    }


@sales_bp.post("/checkout")
@require_permission("CREATE_SALE")
def checkout_route():
    """
    Body: {"outlet_id": 1, "correlation_id": "...", "lines": [...],
           "payment": {"method": "cash", "cash_cents": 2000}}

    201 with the receipt on success, 200 with the stored sale when the
    correlation_id was already submitted.
    """
    try:
        payload = json_body()
        outlet_id = require_int(payload, "outlet_id")
        correlation_id = payload.get("correlation_id")
        if correlation_id is not None and not isinstance(correlation_id, str):
            correlation_id = str(correlation_id)

        # A resubmitted sale has already taken its stock; answer before re-checking the cart
        if correlation_id:
            existing = find_by_correlation(correlation_id, outlet_id)
            if existing is not None:
                current_app.logger.info(
                    "Duplicate checkout: correlation_id=%s sale=%s", correlation_id, existing.id,
                )
                return jsonify(_result_dict(duplicate_result(existing))), 200

        get_outlet_or_404(outlet_id)
        payment = parse_payment(payload.get("payment"))
        engine = load_cart(outlet_id, payload.get("lines"))

        session = CheckoutSession(outlet_id, actor_id=g.actor_id, engine=engine)
        session.begin_checkout(payment, correlation_id=correlation_id)
        api = SqlSalesApi(attempts=current_app.config.get("SUBMIT_RETRY_ATTEMPTS", 3))
        receipt = session.submit(api)
    except InsufficientStock as e:
        current_app.logger.warning(
            "Checkout rejected for stock: product=%s requested=%s available=%s",
            e.product_id, e.requested, e.available,
        )
        return error_response(e)
    except Exception as e:
        return error_response(e)

    result = receipt.result
    current_app.logger.info(
        "Sale submitted: sale=%s document=%s total_cents=%s actor=%s duplicate=%s",
        result.sale_id, result.document_number, receipt.record.total_cents, g.actor_id, result.duplicate,
    )
    body = _result_dict(result)
    body["sale"] = receipt.record.to_dict()
    return jsonify(body), 200 if result.duplicate else 201


@sales_bp.get("/<int:sale_id>")
@require_permission("VIEW_SALES")
def get_sale_route(sale_id: int):
    try:
        sale = get_sale(sale_id)
    except Exception as e:
        return error_response(e)
    return jsonify({"sale": sale.to_dict(include_lines=True)})


@sales_bp.get("")
@require_permission("VIEW_SALES")
def list_sales_route():
    """Most recent sales at an outlet. Query: outlet_id (required), limit (1-200, default 50)."""
    try:
        outlet_id = request.args.get("outlet_id", type=int)
        if outlet_id is None:
            raise ValidationError("outlet_id is required", details={"field": "outlet_id"})
        get_outlet_or_404(outlet_id)
        limit = max(1, min(request.args.get("limit", default=50, type=int), 200))
        sales = list_sales(outlet_id, limit=limit)
    except Exception as e:
        return error_response(e)
    return jsonify({"outlet_id": outlet_id, "sales": [s.to_dict() for s in sales]})
