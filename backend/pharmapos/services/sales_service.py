# Overview: Sales collaborator over SQLAlchemy: authoritative stock check, stock decrement and sale persistence.

"""
Sale submission

WHY: The cart's stock check runs against a snapshot and two cashiers can sell
the last box at the same time. This is where the real decision is made.

SUBMIT (one DB transaction):
1. correlation_id already stored -> return that sale (duplicate=True), touch nothing
2. lock every inventory row the sale draws from; re-check effective units
3. any shortfall -> InsufficientStock, nothing written
4. decrement stock, write Sale + SaleLines + SalePayments + AuditEvent, commit

A failed submission changes nothing; the client keeps its cart and may retry
with the same correlation id.
"""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .. import domain
from ..errors import ConflictError, InsufficientStock, NotFound, ServerError, ValidationError
from ..extensions import db
from ..models import InventoryRecord, Outlet, PackVariant, Sale, SaleLine, SalePayment
from ..time_utils import utcnow
from .audit_service import EVENT_SALE_SUBMITTED, append_audit_event
from .concurrency import lock_for_update, run_with_retry


def _payment_rows(record: domain.SaleRecord) -> list[tuple[str, int, str | None]]:
    payment = record.payment
    if payment.method == domain.PAYMENT_MIXED:
        rows = []
        if payment.cash_cents:
            rows.append((domain.PAYMENT_CASH, payment.cash_cents, None))
        if payment.card_cents:
            rows.append((domain.PAYMENT_CARD, payment.card_cents, None))
        if payment.mobile_cents:
            rows.append((domain.PAYMENT_MOBILE, payment.mobile_cents, payment.mobile_number))
        return rows
    if payment.method == domain.PAYMENT_CASH:
        tendered = payment.cash_cents if payment.cash_cents is not None else record.total_cents
        return [(domain.PAYMENT_CASH, tendered, None)]
    if payment.method == domain.PAYMENT_MOBILE:
        return [(domain.PAYMENT_MOBILE, record.total_cents, payment.mobile_number)]
    return [(domain.PAYMENT_CARD, record.total_cents, None)]


def _check_pack_variants(record: domain.SaleRecord) -> None:
    for line in record.lines:
        info = line.pack_info
        if info.sale_type != domain.SALE_TYPE_PACK:
            continue
        variant = db.session.get(PackVariant, info.pack_variant_id)
        if variant is None or variant.product_id != line.product_id:
            raise NotFound(
                f"Pack variant {info.pack_variant_id} not found for product {line.product_id}",
                details={"product_id": line.product_id, "pack_variant_id": info.pack_variant_id},
            )
        if not variant.is_active or variant.pack_size != info.pack_size:
            raise ValidationError(
                "Pack variant changed since the cart was built",
                details={"product_id": line.product_id, "pack_variant_id": variant.id},
            )


def _lock_and_check_stock(record: domain.SaleRecord) -> dict[int, InventoryRecord]:
    needed = record.effective_units_by_product()
    locked: dict[int, InventoryRecord] = {}
    shortfalls = []

    # Lock in product id order so concurrent sales cannot deadlock each other
    for product_id in sorted(needed):
        row = lock_for_update(
            db.session.query(InventoryRecord).filter_by(product_id=product_id, outlet_id=record.outlet_id)
        ).first()
        available = row.current_stock if row else 0
        if available < needed[product_id]:
            shortfalls.append({
                "product_id": product_id,
                "requested_units": needed[product_id],
                "available_units": available,
            })
        locked[product_id] = row

    if shortfalls:
        first = shortfalls[0]
        exc = InsufficientStock(first["product_id"], first["requested_units"], first["available_units"])
        exc.details["items"] = shortfalls
        raise exc

    return locked


def find_by_correlation(correlation_id: str, outlet_id: int | None = None) -> Sale | None:
    """
    Stored sale for a correlation id, if any.

    Correlation ids are unique across outlets; one already used at another
    outlet raises ConflictError instead of handing back that outlet's sale.
    """
    sale = db.session.query(Sale).filter_by(correlation_id=correlation_id).first()
    if sale is not None and outlet_id is not None and sale.outlet_id != outlet_id:
        raise ConflictError(
            "correlation_id already used by a sale at another outlet",
            details={"correlation_id": correlation_id, "outlet_id": outlet_id},
        )
    return sale


def duplicate_result(sale: Sale) -> domain.SubmitResult:
    return domain.SubmitResult(
        sale_id=sale.id,
        document_number=sale.document_number,
        timestamp=sale.created_at,
        duplicate=True,
    )


class SqlSalesApi:
    """SalesAPI over the sales and inventory tables."""

    def __init__(self, attempts: int = 3):
        self.attempts = attempts

    def submit(self, record: domain.SaleRecord) -> domain.SubmitResult:
        if not record.lines:
            raise ValidationError("Cannot submit a sale with no lines")

        def _op():
            existing = find_by_correlation(record.correlation_id, record.outlet_id)
            if existing is not None:
                return duplicate_result(existing)

            if db.session.get(Outlet, record.outlet_id) is None:
                raise NotFound(f"Outlet {record.outlet_id} not found", details={"outlet_id": record.outlet_id})

            _check_pack_variants(record)
            locked = _lock_and_check_stock(record)
            for product_id, units in record.effective_units_by_product().items():
                locked[product_id].current_stock -= units

            payments = _payment_rows(record)
            now = utcnow()
            sale = Sale(
                correlation_id=record.correlation_id,
                outlet_id=record.outlet_id,
                payment_method=record.payment.method,
                subtotal_cents=record.subtotal_cents,
                discount_cents=record.discount_cents,
                total_cents=record.total_cents,
                tendered_cents=sum(amount for _, amount, _ in payments),
                change_cents=record.change_cents,
                created_by_actor_id=record.actor_id,
                built_at=record.created_at,
                created_at=now,
            )
            db.session.add(sale)
            db.session.flush()
            sale.document_number = f"S-{sale.id:06d}"

            for item in record.lines:
                info = item.pack_info
                db.session.add(SaleLine(
                    sale_id=sale.id,
                    product_id=item.product_id,
                    pack_variant_id=info.pack_variant_id,
                    sale_type=info.sale_type,
                    unit_quantity=info.unit_quantity,
                    pack_quantity=info.pack_quantity,
                    pack_size=info.pack_size,
                    effective_unit_count=info.effective_unit_count,
                    unit_label=item.unit_label,
                    unit_price_cents=item.unit_price_cents,
                    discount_cents=item.discount_cents,
                    line_discount_cents=item.line_discount_cents,
                    line_total_cents=item.line_total_cents,
                    batch_number=item.batch_number,
                    expiry_date=item.expiry_date,
                ))

            for tender_type, amount, reference in payments:
                db.session.add(SalePayment(
                    sale_id=sale.id,
                    tender_type=tender_type,
                    amount_cents=amount,
                    reference_number=reference,
                    created_at=now,
                ))

            append_audit_event(
                outlet_id=record.outlet_id,
                event_type=EVENT_SALE_SUBMITTED,
                entity_type="sale",
                entity_id=sale.id,
                actor_id=record.actor_id,
                occurred_at=now,
                note=f"Sale {sale.document_number}",
                payload={
                    "correlation_id": record.correlation_id,
                    "total_cents": record.total_cents,
                    "units_by_product": {str(k): v for k, v in record.effective_units_by_product().items()},
                },
            )

            db.session.commit()
            return domain.SubmitResult(
                sale_id=sale.id,
                document_number=sale.document_number,
                timestamp=now,
            )

        try:
            return run_with_retry(_op, attempts=self.attempts)
        except (ValidationError, NotFound, InsufficientStock, ConflictError):
            db.session.rollback()
            raise
        except IntegrityError:
            # Lost a race on correlation_id: the other request stored this sale
            db.session.rollback()
            existing = find_by_correlation(record.correlation_id, record.outlet_id)
            if existing is None:
                raise ServerError("Sale could not be stored")
            return duplicate_result(existing)
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise ServerError("Sale submission failed", details={"reason": str(exc)}) from exc


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise NotFound(f"Sale {sale_id} not found", details={"sale_id": sale_id})
    return sale


def list_sales(outlet_id: int, limit: int = 50) -> list[Sale]:
    return (
        db.session.query(Sale)
        .filter_by(outlet_id=outlet_id)
        .order_by(Sale.id.desc())
        .limit(limit)
        .all()
    )
