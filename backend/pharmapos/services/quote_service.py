# Overview: Rebuilds a cart from request JSON so quotes and checkouts run through the same engine.

"""
The HTTP API is stateless: every quote or checkout request carries the full
list of lines. Each line is replayed into a fresh CartLineEngine against the
current catalog and stock, so the response is exactly what the cart engine
would produce for that sequence of adds.

Line shape:
    {"product_id": 1, "sale_type": "unit" | "pack", "quantity": 3,
     "pack_variant_id": 7, "discount_cents": 0,
     "batch_number": "B12", "expiry_date": "2027-01-31"}

Payment shape:
    {"method": "cash", "cash_cents": 2000, "card_cents": 0,
     "mobile_cents": 0, "mobile_number": null}
"""

from __future__ import annotations

from typing import Any

from ..domain import SALE_TYPE_PACK, SALE_TYPE_UNIT, PaymentTender
from ..errors import ValidationError
from ..time_utils import parse_iso_date
from .cart_service import CartLineEngine
from .catalog_service import SqlCatalog
from .interfaces import CatalogLookup, InventoryLookup
from .inventory_service import SqlInventory
from .pack_catalog import PackCatalog


def _int_field(raw: dict, key: str, *, required: bool = False, default: int | None = None) -> int | None:
    value = raw.get(key)
    if value is None:
        if required:
            raise ValidationError(f"{key} is required", details={"field": key})
        return default
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{key} must be an integer", details={"field": key, "value": value})
    return value


def _str_field(raw: dict, key: str, details: dict | None = None) -> str | None:
    value = raw.get(key)
    if value is not None and not isinstance(value, str):
        raise ValidationError(f"{key} must be a string", details={**(details or {}), "field": key, "value": value})
    return value


def parse_payment(raw: Any) -> PaymentTender:
    if not isinstance(raw, dict):
        raise ValidationError("payment must be an object", details={"field": "payment"})
    method = raw.get("method")
    if not isinstance(method, str) or not method.strip():
        raise ValidationError("payment.method is required", details={"field": "method"})
    return PaymentTender(
        method=method.strip().lower(),
        cash_cents=_int_field(raw, "cash_cents"),
        card_cents=_int_field(raw, "card_cents", default=0),
        mobile_cents=_int_field(raw, "mobile_cents", default=0),
        mobile_number=_str_field(raw, "mobile_number"),
    )


def load_cart(
    outlet_id: int,
    raw_lines: Any,
    *,
    catalog: CatalogLookup | None = None,
    inventory: InventoryLookup | None = None,
) -> CartLineEngine:
    """Replay raw line dicts into a new engine. Errors point at the offending line index."""
    if not isinstance(raw_lines, list):
        raise ValidationError("lines must be a list", details={"field": "lines"})

    packs = PackCatalog(catalog or SqlCatalog())
    stock = inventory or SqlInventory()
    engine = CartLineEngine(outlet_id=outlet_id)

    for index, raw in enumerate(raw_lines):
        if not isinstance(raw, dict):
            raise ValidationError("Each line must be an object", details={"line": index})

        product_id = _int_field(raw, "product_id", required=True)
        quantity = _int_field(raw, "quantity", default=1)
        sale_type = raw.get("sale_type") or SALE_TYPE_UNIT
        variant_id = _int_field(raw, "pack_variant_id")

        batch_number = _str_field(raw, "batch_number", details={"line": index})
        expiry = _str_field(raw, "expiry_date", details={"line": index})
        try:
            expiry_date = parse_iso_date(expiry)
        except ValueError:
            raise ValidationError(
                "expiry_date must be an ISO-8601 date",
                details={"line": index, "field": "expiry_date", "value": expiry},
            )

        product = packs.product(product_id)
        variant = None
        if sale_type == SALE_TYPE_PACK:
            if variant_id is None:
                raise ValidationError("Pack lines need pack_variant_id", details={"line": index})
            variant = packs.variant(product_id, variant_id)

        engine.add_line(
            product,
            sale_type,
            quantity,
            stock.get_current_stock(product_id, outlet_id),
            pack_variant=variant,
            discount_cents=_int_field(raw, "discount_cents"),
            batch_number=batch_number,
            expiry_date=expiry_date,
        )

    return engine


def quote(outlet_id: int, raw_lines: Any) -> dict:
    engine = load_cart(outlet_id, raw_lines)
    return {
        "outlet_id": outlet_id,
        "lines": [line.to_dict() for line in engine.lines()],
        "totals": engine.totals().to_dict(),
    }
