# Overview: In-memory cart for one checkout session; line bookkeeping, stock checks and totals.

"""
Cart line engine

WHY: The cart is the only place where pack and unit sales of the same product
meet. Every line carries a SalePackInfo so the number of stock units it will
consume is always explicit.

INVARIANTS:
- One line per (product, sale shape): "<product_id>" for unit sales,
  "<product_id>:<variant_id>" for pack sales. Adding again increments.
- The effective units of ALL lines of a product never exceed the last-known
  stock for that product. A failed check leaves the cart unchanged.
- totals() is a fresh fold over the current lines on every call.
- Money is integer minor units.

The stock check is advisory; the sales collaborator re-checks at submission.
Single writer, no locking.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date

from ..domain import (
    SALE_TYPE_PACK,
    SALE_TYPE_UNIT,
    SALE_TYPES,
    PackVariant,
    Product,
    SalePackInfo,
)
from ..errors import InsufficientStock, NotFound, ValidationError


def line_id_for(product_id: int, pack_variant_id: int | None = None) -> str:
    if pack_variant_id is None:
        return str(product_id)
    return f"{product_id}:{pack_variant_id}"


@dataclass(frozen=True)
class CartLine:
    line_id: str
    product: Product
    pack_info: SalePackInfo
    pack_variant: PackVariant | None = None
    discount_cents: int = 0
    batch_number: str | None = None
    expiry_date: date | None = None

    @property
    def product_id(self) -> int:
        return self.product.id

    @property
    def sale_type(self) -> str:
        return self.pack_info.sale_type

    @property
    def quantity(self) -> int:
        return self.pack_info.quantity

    @property
    def effective_unit_count(self) -> int:
        return self.pack_info.effective_unit_count

    @property
    def unit_label(self) -> str:
        if self.pack_variant is not None:
            return self.pack_variant.display_name
        return self.product.unit

    @property
    def unit_price_cents(self) -> int:
        # Price of one line unit: one pack for pack lines, one atom otherwise
        if self.pack_variant is not None:
            return self.pack_variant.pack_price_cents
        return self.product.unit_price_cents

    @property
    def line_subtotal_cents(self) -> int:
        return self.unit_price_cents * self.quantity

    @property
    def line_discount_cents(self) -> int:
        raw = self.discount_cents * self.quantity
        return max(0, min(raw, self.line_subtotal_cents))

    @property
    def line_total_cents(self) -> int:
        return self.line_subtotal_cents - self.line_discount_cents

    def with_quantity(self, quantity: int) -> "CartLine":
        if self.pack_variant is not None:
            info = SalePackInfo.packs(self.pack_variant, quantity)
        else:
            info = SalePackInfo.units(quantity)
        return replace(self, pack_info=info)

    def to_dict(self) -> dict:
        return {
            "line_id": self.line_id,
            "product_id": self.product.id,
            "name": self.product.name,
            "sale_type": self.sale_type,
            "quantity": self.quantity,
            "unit": self.unit_label,
            "unit_price_cents": self.unit_price_cents,
            "discount_cents": self.discount_cents,
            "line_subtotal_cents": self.line_subtotal_cents,
            "line_discount_cents": self.line_discount_cents,
            "line_total_cents": self.line_total_cents,
            "pack_info": self.pack_info.to_dict(),
            "batch_number": self.batch_number,
            "expiry_date": self.expiry_date.isoformat() if self.expiry_date else None,
        }


@dataclass(frozen=True)
class CartTotals:
    subtotal_cents: int
    discount_cents: int
    total_cents: int
    line_count: int
    effective_units: int

    def to_dict(self) -> dict:
        return {
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            "line_count": self.line_count,
            "effective_units": self.effective_units,
        }


def _require_positive_int(value, field: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer", details={field: value})
    if value <= 0:
        raise ValidationError(f"{field} must be greater than 0", details={field: value})
    return value


class CartLineEngine:
    """Lines of one cart, in insertion order."""

    def __init__(self, outlet_id: int | None = None):
        self.outlet_id = outlet_id
        self._lines: dict[str, CartLine] = {}
        self._stock: dict[int, int] = {}
        # Bumped on every mutation so a pending checkout can tell the cart changed
        self.version = 0

    # -- queries --

    def lines(self) -> list[CartLine]:
        return list(self._lines.values())

    def get_line(self, line_id: str) -> CartLine:
        line = self._lines.get(line_id)
        if line is None:
            raise NotFound(f"Cart line {line_id} not found", details={"line_id": line_id})
        return line

    def is_empty(self) -> bool:
        return not self._lines

    def __len__(self) -> int:
        return len(self._lines)

    def effective_units_for(self, product_id: int, *, excluding: str | None = None) -> int:
        return sum(
            line.effective_unit_count
            for line in self._lines.values()
            if line.product_id == product_id and line.line_id != excluding
        )

    def totals(self) -> CartTotals:
        subtotal = 0
        discount = 0
        units = 0
        for line in self._lines.values():
            subtotal += line.line_subtotal_cents
            discount += line.line_discount_cents
            units += line.effective_unit_count
        return CartTotals(
            subtotal_cents=subtotal,
            discount_cents=discount,
            total_cents=subtotal - discount,
            line_count=len(self._lines),
            effective_units=units,
        )

    # -- mutations --

    def add_line(
        self,
        product: Product,
        sale_type: str,
        quantity: int,
        current_stock: int,
        pack_variant: PackVariant | None = None,
        discount_cents: int | None = None,
        batch_number: str | None = None,
        expiry_date: date | None = None,
    ) -> CartLine:
        """
        Add quantity of product to the cart as a unit or pack sale.

        For pack sales quantity counts packs. An existing line with the same
        identity is incremented; discount/batch/expiry overwrite it only when given.

        Raises:
            ValidationError: bad quantity, sale type, variant or discount
            InsufficientStock: effective units of the product would exceed current_stock
        """
        _require_positive_int(quantity, "quantity")
        if sale_type not in SALE_TYPES:
            raise ValidationError(f"Invalid sale type: {sale_type}. Must be one of {list(SALE_TYPES)}")
        if not product.is_active:
            raise ValidationError("Product is inactive", details={"product_id": product.id})
        if discount_cents is not None and discount_cents < 0:
            raise ValidationError("Discount cannot be negative", details={"discount_cents": discount_cents})

        if sale_type == SALE_TYPE_UNIT:
            if pack_variant is not None:
                raise ValidationError("pack_variant is only valid for pack sales")
            if not product.allow_unit_sale:
                raise ValidationError(
                    "Product cannot be sold as loose units",
                    details={"product_id": product.id},
                )
        else:
            self._check_variant(product, pack_variant)

        line_id = line_id_for(product.id, pack_variant.id if sale_type == SALE_TYPE_PACK else None)
        existing = self._lines.get(line_id)

        if existing is not None:
            line = existing.with_quantity(existing.quantity + quantity)
            changes = {}
            if discount_cents is not None:
                changes["discount_cents"] = discount_cents
            if batch_number is not None:
                changes["batch_number"] = batch_number
            if expiry_date is not None:
                changes["expiry_date"] = expiry_date
            if changes:
                line = replace(line, **changes)
        else:
            if sale_type == SALE_TYPE_PACK:
                info = SalePackInfo.packs(pack_variant, quantity)
            else:
                info = SalePackInfo.units(quantity)
            line = CartLine(
                line_id=line_id,
                product=product,
                pack_info=info,
                pack_variant=pack_variant if sale_type == SALE_TYPE_PACK else None,
                discount_cents=discount_cents or 0,
                batch_number=batch_number,
                expiry_date=expiry_date,
            )

        self._check_stock(product.id, line, current_stock)

        self._stock[product.id] = current_stock
        self._lines[line_id] = line
        self.version += 1
        return line

    def quick_add(self, product: Product, current_stock: int) -> CartLine:
        """Scan / quick-add path: one more loose unit of the product."""
        return self.add_line(product, SALE_TYPE_UNIT, 1, current_stock)

    def update_quantity(self, line_id: str, new_quantity: int) -> CartLine | None:
        """
        Set a line's quantity. Non-positive quantity removes the line.

        Returns the updated line, or None when the line was removed.
        """
        if not isinstance(new_quantity, int) or isinstance(new_quantity, bool):
            raise ValidationError("quantity must be an integer", details={"quantity": new_quantity})
        if new_quantity <= 0:
            self.remove_line(line_id)
            return None

        line = self.get_line(line_id).with_quantity(new_quantity)
        stock = self._stock.get(line.product_id, 0)
        self._check_stock(line.product_id, line, stock)

        self._lines[line_id] = line
        self.version += 1
        return line

    def remove_line(self, line_id: str) -> None:
        if self._lines.pop(line_id, None) is not None:
            self.version += 1

    def clear(self) -> None:
        if self._lines:
            self.version += 1
        self._lines.clear()
        self._stock.clear()

    # -- helpers --

    def _check_variant(self, product: Product, variant: PackVariant | None) -> None:
        if variant is None:
            raise ValidationError("Pack sales require a pack variant", details={"product_id": product.id})
        if variant.product_id != product.id:
            raise ValidationError(
                "Pack variant does not belong to product",
                details={"product_id": product.id, "pack_variant_id": variant.id},
            )
        if not variant.is_active:
            raise ValidationError(
                "Pack variant is inactive",
                details={"product_id": product.id, "pack_variant_id": variant.id},
            )

    def _check_stock(self, product_id: int, candidate: CartLine, current_stock: int) -> None:
        requested = self.effective_units_for(product_id, excluding=candidate.line_id)
        requested += candidate.effective_unit_count
        if requested > current_stock:
            raise InsufficientStock(product_id, requested, current_stock)
