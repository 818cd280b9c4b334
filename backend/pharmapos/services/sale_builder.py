# Overview: Turns finalized cart lines into a validated, immutable SaleRecord.

"""
Sale builder

WHY: The cart is mutable and can go stale (a variant repriced, a line edited
twice). The sale record is the frozen snapshot that goes to the sales
collaborator; it is built once, validated fully, and never touched again.

RULES:
- lines non-empty, every quantity > 0
- every SalePackInfo re-derived from the line's variant and quantity and
  compared to the stored one
- payment method in {cash, card, mobile, mixed}
- mixed: cash + card + mobile >= grand total (shortfall is an error), and
  card + mobile <= grand total so change only ever comes out of cash
- cash: if cash received is given it must cover the grand total
- mobile: a mobile number is required

No I/O here. submit() is a thin pass-through; collaborator errors propagate
unchanged and the caller decides what to do with the cart.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Sequence

from ..domain import (
    PAYMENT_CASH,
    PAYMENT_METHODS,
    PAYMENT_MIXED,
    PAYMENT_MOBILE,
    SALE_TYPE_PACK,
    PaymentTender,
    SaleLineItem,
    SalePackInfo,
    SaleRecord,
    SubmitResult,
)
from ..errors import ValidationError
from ..time_utils import utcnow
from .cart_service import CartLine
from .interfaces import SalesAPI


def _expected_pack_info(line: CartLine) -> SalePackInfo:
    if line.pack_info.sale_type == SALE_TYPE_PACK:
        if line.pack_variant is None or line.pack_variant.id != line.pack_info.pack_variant_id:
            raise ValidationError(
                "Pack line has no matching pack variant",
                details={"line_id": line.line_id},
            )
        return SalePackInfo.packs(line.pack_variant, line.pack_info.pack_quantity)
    return SalePackInfo.units(line.pack_info.unit_quantity)


def validate_payment(payment: PaymentTender, total_cents: int) -> int:
    """
    Check the tender against the grand total.

    Returns:
        change due in cents (0 for card and mobile)
    """
    if payment.method not in PAYMENT_METHODS:
        raise ValidationError(
            f"Invalid payment method: {payment.method}. Must be one of {list(PAYMENT_METHODS)}",
            details={"method": payment.method},
        )

    amounts = {
        "cash_cents": payment.cash_cents or 0,
        "card_cents": payment.card_cents,
        "mobile_cents": payment.mobile_cents,
    }
    negative = [name for name, value in amounts.items() if value < 0]
    if negative:
        raise ValidationError("Payment amounts cannot be negative", details={"fields": negative})

    if payment.method == PAYMENT_MIXED:
        tendered = payment.tendered_cents
        if tendered < total_cents:
            raise ValidationError(
                "Mixed payment does not cover the total",
                details={
                    "total_cents": total_cents,
                    "tendered_cents": tendered,
                    "shortfall_cents": total_cents - tendered,
                },
            )
        non_cash = payment.card_cents + payment.mobile_cents
        if non_cash > total_cents:
            raise ValidationError(
                "Card and mobile amounts cannot exceed the total; change is given in cash only",
                details={"total_cents": total_cents, "non_cash_cents": non_cash},
            )
        if payment.mobile_cents > 0 and not (payment.mobile_number or "").strip():
            raise ValidationError("Mobile number is required for mobile payments")
        return tendered - total_cents

    if payment.method == PAYMENT_CASH:
        if payment.cash_cents is None:
            return 0
        if payment.cash_cents < total_cents:
            raise ValidationError(
                "Cash received is less than the total",
                details={
                    "total_cents": total_cents,
                    "tendered_cents": payment.cash_cents,
                    "shortfall_cents": total_cents - payment.cash_cents,
                },
            )
        return payment.cash_cents - total_cents

    if payment.method == PAYMENT_MOBILE and not (payment.mobile_number or "").strip():
        raise ValidationError("Mobile number is required for mobile payments")

    return 0


class SaleBuilder:
    """Validates cart lines and produces SaleRecords. Stateless."""

    def build(
        self,
        lines: Sequence[CartLine],
        payment: PaymentTender,
        outlet_id: int,
        actor_id: int | None = None,
        correlation_id: str | None = None,
        now: datetime | None = None,
    ) -> SaleRecord:
        if not lines:
            raise ValidationError("Cannot check out an empty cart")
        if outlet_id is None:
            raise ValidationError("outlet_id is required")

        items: list[SaleLineItem] = []
        for line in lines:
            if line.quantity <= 0:
                raise ValidationError(
                    "Quantity must be greater than 0",
                    details={"line_id": line.line_id, "quantity": line.quantity},
                )
            line.pack_info.validate()
            expected = _expected_pack_info(line)
            if expected != line.pack_info:
                raise ValidationError(
                    "Stale pack sale info on cart line",
                    details={
                        "line_id": line.line_id,
                        "stored": line.pack_info.to_dict(),
                        "expected": expected.to_dict(),
                    },
                )

            items.append(
                SaleLineItem(
                    product_id=line.product_id,
                    product_name=line.product.name,
                    unit_label=line.unit_label,
                    unit_price_cents=line.unit_price_cents,
                    discount_cents=line.discount_cents,
                    line_subtotal_cents=line.line_subtotal_cents,
                    line_discount_cents=line.line_discount_cents,
                    line_total_cents=line.line_total_cents,
                    pack_info=line.pack_info,
                    batch_number=line.batch_number,
                    expiry_date=line.expiry_date,
                )
            )

        subtotal = sum(item.line_subtotal_cents for item in items)
        discount = sum(item.line_discount_cents for item in items)
        total = subtotal - discount

        change = validate_payment(payment, total)

        return SaleRecord(
            correlation_id=correlation_id or uuid.uuid4().hex,
            outlet_id=outlet_id,
            actor_id=actor_id,
            payment=payment,
            lines=tuple(items),
            subtotal_cents=subtotal,
            discount_cents=discount,
            total_cents=total,
            change_cents=change,
            created_at=now or utcnow(),
        )

    def submit(self, record: SaleRecord, sales_api: SalesAPI) -> SubmitResult:
        return sales_api.submit(record)
