# Overview: Read-only stock and sales reports per outlet.

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import PackVariant, Product, Sale, SaleLine
from ..time_utils import utcnow, to_utc_z
from .decomposer import decompose, format_inventory_display
from .inventory_service import STOCK_LOW, STOCK_OUT, list_records, stock_status


def _active_variants_by_product(product_ids: list[int]) -> dict[int, list]:
    if not product_ids:
        return {}
    rows = (
        db.session.query(PackVariant)
        .filter(PackVariant.product_id.in_(product_ids), PackVariant.is_active.is_(True))
        .all()
    )
    out: dict[int, list] = {}
    for row in rows:
        out.setdefault(row.product_id, []).append(row.to_domain())
    return out


def inventory_report(outlet_id: int) -> dict:
    """
    Stock position for every product stocked at the outlet.

    The low-stock threshold is the record's minimum_stock, falling back to the
    product's reorder_level when the record has none.
    """
    pairs = list_records(outlet_id)
    variants = _active_variants_by_product([product.id for _, product in pairs])

    rows = []
    total_units = 0
    total_value_cents = 0
    for record, product in pairs:
        minimum = record.minimum_stock or product.reorder_level or 0
        status = stock_status(record.current_stock, minimum, record.maximum_stock or 0)
        value = record.current_stock * (product.cost_price_cents or 0)
        product_variants = variants.get(product.id, [])
        breakdown = decompose(record.current_stock, product_variants, product.unit_price_cents)

        total_units += record.current_stock
        total_value_cents += value
        rows.append(
            {
                "product_id": product.id,
                "sku": product.sku,
                "name": product.name,
                "category": product.category,
                "current_stock": record.current_stock,
                "minimum_stock": minimum,
                "maximum_stock": record.maximum_stock,
                "status": status,
                "stock_value_cents": value,
                "retail_value_cents": breakdown.total_value_cents,
                "display": format_inventory_display(record.current_stock, product_variants),
            }
        )

    low = [r for r in rows if r["status"] == STOCK_LOW]
    out = [r for r in rows if r["status"] == STOCK_OUT]

    return {
        "outlet_id": outlet_id,
        "as_of": to_utc_z(utcnow()),
        "total_products": len(rows),
        "total_units": total_units,
        "total_value_cents": total_value_cents,
        "low_stock_count": len(low),
        "out_of_stock_count": len(out),
        "low_stock": low,
        "out_of_stock": out,
        "rows": rows,
    }


def top_products(outlet_id: int, limit: int = 10) -> dict:
    """Best sellers by revenue; quantities are effective units, so packs count in full."""
    rows = (
        db.session.query(
            SaleLine.product_id.label("product_id"),
            Product.sku.label("sku"),
            Product.name.label("name"),
            func.coalesce(func.sum(SaleLine.line_total_cents), 0).label("revenue_cents"),
            func.coalesce(func.sum(SaleLine.effective_unit_count), 0).label("units_sold"),
            func.count(func.distinct(SaleLine.sale_id)).label("sale_count"),
        )
        .join(Sale, SaleLine.sale_id == Sale.id)
        .join(Product, SaleLine.product_id == Product.id)
        .filter(Sale.outlet_id == outlet_id)
        .group_by(SaleLine.product_id, Product.sku, Product.name)
        .order_by(func.sum(SaleLine.line_total_cents).desc(), SaleLine.product_id.asc())
        .limit(limit)
        .all()
    )

    return {
        "outlet_id": outlet_id,
        "rows": [
            {
                "product_id": row.product_id,
                "sku": row.sku,
                "name": row.name,
                "revenue_cents": int(row.revenue_cents or 0),
                "units_sold": int(row.units_sold or 0),
                "sale_count": int(row.sale_count or 0),
            }
            for row in rows
        ],
    }
