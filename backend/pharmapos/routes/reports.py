# Overview: Flask API routes for outlet stock and best-seller reports.

from flask import Blueprint, jsonify, request

from ..decorators import require_permission
from ..services import reporting_service
from ..services.inventory_service import get_outlet_or_404
from . import error_response


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/inventory/<int:outlet_id>")
@require_permission("VIEW_REPORTS")
def inventory_report_route(outlet_id: int):
    try:
        report = reporting_service.inventory_report(outlet_id)
    except Exception as e:
        return error_response(e)
    return jsonify(report)


@reports_bp.get("/top-products/<int:outlet_id>")
@require_permission("VIEW_REPORTS")
def top_products_route(outlet_id: int):
    limit = request.args.get("limit", default=10, type=int)
    try:
        get_outlet_or_404(outlet_id)
        report = reporting_service.top_products(outlet_id, limit=max(1, min(limit, 100)))
    except Exception as e:
        return error_response(e)
    return jsonify(report)
