# Overview: Canonical value types for the pricing core (no database, no Flask).

"""
PharmaPOS domain values (authoritative)

Money:
- All amounts are integer minor units (*_cents). Nothing in the core uses float.

Stock:
- A product has ONE integer stock pool per outlet (InventoryRecord.current_stock).
- Packs are not tracked separately; a pack sale consumes pack_size * pack_quantity units.

Sale types:
- "unit": unit_quantity > 0, pack_quantity == 0, effective = unit_quantity
- "pack": pack_quantity > 0, unit_quantity == 0, effective = pack_quantity * pack_size

These values are produced at the catalog boundary (services/catalog_service.py)
and are immutable once built.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

from .errors import ValidationError


SALE_TYPE_UNIT = "unit"
SALE_TYPE_PACK = "pack"
SALE_TYPES = (SALE_TYPE_UNIT, SALE_TYPE_PACK)

PAYMENT_CASH = "cash"
PAYMENT_CARD = "card"
PAYMENT_MOBILE = "mobile"
PAYMENT_MIXED = "mixed"
PAYMENT_METHODS = (PAYMENT_CASH, PAYMENT_CARD, PAYMENT_MOBILE, PAYMENT_MIXED)

ADJUSTMENT_INCREASE = "increase"
ADJUSTMENT_DECREASE = "decrease"


@dataclass(frozen=True)
class Product:
    id: int
    name: str
    unit_price_cents: int
    sku: str | None = None
    category: str | None = None
    unit: str = "unit"
    cost_price_cents: int = 0
    reorder_level: int = 0
    allow_unit_sale: bool = True
    barcode: str | None = None
    is_active: bool = True


@dataclass(frozen=True)
class PackVariant:
    """A purchasable bundle of pack_size atomic units at pack_price_cents."""
    id: int
    product_id: int
    pack_size: int
    pack_price_cents: int
    unit_price_cents: int
    is_active: bool = True
    name: str | None = None

    def __post_init__(self):
        if not isinstance(self.pack_size, int) or isinstance(self.pack_size, bool) or self.pack_size < 1:
            raise ValidationError(
                "pack_size must be an integer >= 1",
                details={"pack_variant_id": self.id, "pack_size": self.pack_size},
            )
        if self.pack_price_cents < 0 or self.unit_price_cents < 0:
            raise ValidationError(
                "Pack prices cannot be negative",
                details={"pack_variant_id": self.id},
            )

    @property
    def display_name(self) -> str:
        return self.name or f"{self.pack_size}-pack"


@dataclass(frozen=True)
class InventoryRecord:
    product_id: int
    outlet_id: int
    current_stock: int
    minimum_stock: int = 0
    maximum_stock: int = 0


@dataclass(frozen=True)
class SalePackInfo:
    """
    Normalized pack/unit sale info for one line.

    Build with SalePackInfo.units() or SalePackInfo.packs(); the constructor is
    not meant to be called directly.
    """
    sale_type: str
    unit_quantity: int
    pack_quantity: int
    effective_unit_count: int
    pack_variant_id: int | None = None
    pack_size: int = 1

    @classmethod
    def units(cls, unit_quantity: int) -> "SalePackInfo":
        if unit_quantity <= 0:
            raise ValidationError("Unit quantity must be positive", details={"unit_quantity": unit_quantity})
        return cls(
            sale_type=SALE_TYPE_UNIT,
            unit_quantity=unit_quantity,
            pack_quantity=0,
            effective_unit_count=unit_quantity,
        )

    @classmethod
    def packs(cls, variant: PackVariant, pack_quantity: int) -> "SalePackInfo":
        if pack_quantity <= 0:
            raise ValidationError("Pack quantity must be positive", details={"pack_quantity": pack_quantity})
        return cls(
            sale_type=SALE_TYPE_PACK,
            unit_quantity=0,
            pack_quantity=pack_quantity,
            effective_unit_count=pack_quantity * variant.pack_size,
            pack_variant_id=variant.id,
            pack_size=variant.pack_size,
        )

    @property
    def quantity(self) -> int:
        """Quantity of the active branch (units or packs)."""
        if self.sale_type == SALE_TYPE_PACK:
            return self.pack_quantity
        return self.unit_quantity

    def validate(self) -> None:
        """Recheck exclusivity and the effective unit count."""
        if self.sale_type == SALE_TYPE_UNIT:
            ok = (
                self.unit_quantity > 0
                and self.pack_quantity == 0
                and self.effective_unit_count == self.unit_quantity
            )
        elif self.sale_type == SALE_TYPE_PACK:
            ok = (
                self.pack_quantity > 0
                and self.unit_quantity == 0
                and self.pack_variant_id is not None
                and self.effective_unit_count == self.pack_quantity * self.pack_size
            )
        else:
            raise ValidationError(f"Unknown sale type: {self.sale_type}", details={"sale_type": self.sale_type})

        if not ok:
            raise ValidationError("Inconsistent pack sale info", details=self.to_dict())

    def to_dict(self) -> dict:
        return {
            "sale_type": self.sale_type,
            "unit_quantity": self.unit_quantity,
            "pack_quantity": self.pack_quantity,
            "effective_unit_count": self.effective_unit_count,
            "pack_variant_id": self.pack_variant_id,
            "pack_size": self.pack_size,
        }


@dataclass(frozen=True)
class PaymentTender:
    """
    How the customer pays.

    cash_cents is the cash received; None means "exact cash" for a cash sale.
    For mixed payments the three amounts must cover the grand total.
    """
    method: str
    cash_cents: int | None = None
    card_cents: int = 0
    mobile_cents: int = 0
    mobile_number: str | None = None

    @property
    def tendered_cents(self) -> int:
        return (self.cash_cents or 0) + self.card_cents + self.mobile_cents

    def to_dict(self) -> dict:
        return {
            "method": self.method,
            "cash_cents": self.cash_cents,
            "card_cents": self.card_cents,
            "mobile_cents": self.mobile_cents,
            "mobile_number": self.mobile_number,
        }


@dataclass(frozen=True)
class SaleLineItem:
    product_id: int
    product_name: str
    unit_label: str
    unit_price_cents: int
    discount_cents: int
    line_subtotal_cents: int
    line_discount_cents: int
    line_total_cents: int
    pack_info: SalePackInfo
    batch_number: str | None = None
    expiry_date: date | None = None

    @property
    def quantity(self) -> int:
        return self.pack_info.quantity

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_label": self.unit_label,
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
class SaleRecord:
    """Finalized sale handed to the sales collaborator. Never mutated."""
    correlation_id: str
    outlet_id: int
    actor_id: int | None
    payment: PaymentTender
    lines: tuple[SaleLineItem, ...]
    subtotal_cents: int
    discount_cents: int
    total_cents: int
    change_cents: int
    created_at: datetime

    def effective_units_by_product(self) -> dict[int, int]:
        totals: dict[int, int] = {}
        for line in self.lines:
            totals[line.product_id] = totals.get(line.product_id, 0) + line.pack_info.effective_unit_count
        return totals

    def to_dict(self) -> dict:
        return {
            "correlation_id": self.correlation_id,
            "outlet_id": self.outlet_id,
            "actor_id": self.actor_id,
            "payment": self.payment.to_dict(),
            "lines": [line.to_dict() for line in self.lines],
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            "change_cents": self.change_cents,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class StockAdjustment:
    product_id: int | None
    outlet_id: int | None
    delta: int
    reason: str
    actor_id: int | None
    adjustment_type: str
    previous_stock: int
    target_stock: int

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "outlet_id": self.outlet_id,
            "delta": self.delta,
            "reason": self.reason,
            "actor_id": self.actor_id,
            "type": self.adjustment_type,
            "previous_stock": self.previous_stock,
            "target_stock": self.target_stock,
        }


class NoOpAdjustment:
    """Zero-delta reconciliation; callers skip submission."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NO_OP"


NO_OP = NoOpAdjustment()


@dataclass(frozen=True)
class SubmitResult:
    sale_id: int
    document_number: str
    timestamp: datetime
    duplicate: bool = False


@dataclass(frozen=True)
class AdjustResult:
    new_stock: int
    adjustment_id: int | None = None
