"""
Sales collaborator tests.

Verifies:
- Submission decrements stock by effective units and stores lines, payments and an audit event
- Duplicate correlation ids return the first sale
- The authoritative stock check rejects oversells without writing anything
- Carts rebuilt from request lines match the engine
"""

import pytest

from pharmapos.domain import PaymentTender
from pharmapos.errors import ConflictError, InsufficientStock, NotFound, ValidationError
from pharmapos.models import AuditEvent, InventoryRecord, Outlet, PackVariant, Sale, SalePayment
from pharmapos.services.catalog_service import SqlCatalog
from pharmapos.services.checkout_service import CheckoutSession
from pharmapos.services.pack_catalog import PackCatalog
from pharmapos.services.quote_service import load_cart, parse_payment, quote
from pharmapos.services.sale_builder import SaleBuilder
from pharmapos.services.sales_service import SqlSalesApi, find_by_correlation, get_sale, list_sales


def _stock(db_session, product_id, outlet_id):
    db_session.expire_all()
    return db_session.query(InventoryRecord).filter_by(product_id=product_id, outlet_id=outlet_id).one().current_stock


def _cart_record(outlet, paracetamol, payment=None, correlation_id=None, units=1, packs=2):
    packs_catalog = PackCatalog(SqlCatalog())
    product = packs_catalog.product(paracetamol.id)
    variant = packs_catalog.variants_for(paracetamol.id)[0]

    session = CheckoutSession(outlet.id, actor_id=7)
    if units:
        session.engine.add_line(product, "unit", units, current_stock=10)
    if packs:
        session.engine.add_line(product, "pack", packs, current_stock=10, pack_variant=variant)
    session.begin_checkout(payment or PaymentTender(method="cash", cash_cents=100), correlation_id=correlation_id)
    return session


class TestSubmit:
    def test_sale_persisted_and_stock_decremented(self, db_session, outlet, paracetamol):
        session = _cart_record(outlet, paracetamol, correlation_id="corr-1")
        receipt = session.submit(SqlSalesApi())

        assert receipt.result.duplicate is False
        assert receipt.result.document_number == f"S-{receipt.result.sale_id:06d}"
        assert _stock(db_session, paracetamol.id, outlet.id) == 3

        sale = get_sale(receipt.result.sale_id)
        assert sale.total_cents == 60
        assert sale.change_cents == 40
        assert sale.tendered_cents == 100
        assert [(line.sale_type, line.quantity, line.effective_unit_count) for line in sale.lines] == [
            ("unit", 1, 1),
            ("pack", 2, 6),
        ]
        assert [(p.tender_type, p.amount_cents) for p in sale.payments] == [("cash", 100)]

        event = db_session.query(AuditEvent).filter_by(event_type="sale.submitted").one()
        assert event.entity_id == sale.id
        assert event.payload["correlation_id"] == "corr-1"

    def test_duplicate_submission_is_idempotent(self, db_session, outlet, paracetamol):
        session = _cart_record(outlet, paracetamol, correlation_id="corr-dup")
        record = session.pending_record
        api = SqlSalesApi()

        first = api.submit(record)
        second = api.submit(record)

        assert second.duplicate is True
        assert second.sale_id == first.sale_id
        assert db_session.query(Sale).count() == 1
        assert _stock(db_session, paracetamol.id, outlet.id) == 3

    def test_oversell_rejected_without_writes(self, db_session, outlet, paracetamol):
        session = _cart_record(outlet, paracetamol, units=4, packs=2)

        # Stock drops after the cart was built
        db_session.query(InventoryRecord).filter_by(product_id=paracetamol.id).update({"current_stock": 8})
        db_session.commit()

        with pytest.raises(InsufficientStock) as exc:
            session.submit(SqlSalesApi())

        assert exc.value.requested == 10
        assert exc.value.available == 8
        assert db_session.query(Sale).count() == 0
        assert _stock(db_session, paracetamol.id, outlet.id) == 8
        assert len(session.engine) == 2

    def test_retired_variant_rejected(self, db_session, outlet, paracetamol, three_pack):
        session = _cart_record(outlet, paracetamol)
        db_session.query(PackVariant).filter_by(id=three_pack.id).update({"is_active": False})
        db_session.commit()

        with pytest.raises(ValidationError):
            session.submit(SqlSalesApi())
        assert db_session.query(Sale).count() == 0

    def test_mixed_payment_rows(self, db_session, outlet, paracetamol):
        payment = PaymentTender(method="mixed", cash_cents=20, card_cents=30, mobile_cents=10, mobile_number="076000111")
        receipt = _cart_record(outlet, paracetamol, payment=payment).submit(SqlSalesApi())

        rows = db_session.query(SalePayment).filter_by(sale_id=receipt.result.sale_id).order_by(SalePayment.id).all()
        assert [(r.tender_type, r.amount_cents) for r in rows] == [("cash", 20), ("card", 30), ("mobile", 10)]
        assert rows[2].reference_number == "076000111"

    def test_unknown_outlet(self, db_session, outlet, paracetamol):
        session = _cart_record(outlet, paracetamol)
        record = SaleBuilder().build(session.engine.lines(), PaymentTender(method="card"), outlet_id=999)
        with pytest.raises(NotFound):
            SqlSalesApi().submit(record)

    def test_correlation_id_from_other_outlet(self, db_session, outlet, paracetamol):
        session = _cart_record(outlet, paracetamol, correlation_id="corr-shared")
        session.submit(SqlSalesApi())

        other = Outlet(code="EAST", name="East Branch")
        db_session.add(other)
        db_session.commit()

        lines = _cart_record(outlet, paracetamol, packs=0).engine.lines()
        moved = SaleBuilder().build(lines, PaymentTender(method="card"), outlet_id=other.id, correlation_id="corr-shared")

        with pytest.raises(ConflictError):
            SqlSalesApi().submit(moved)
        assert find_by_correlation("corr-shared", outlet.id) is not None
        assert db_session.query(Sale).count() == 1

    def test_list_and_get(self, outlet, paracetamol):
        receipt = _cart_record(outlet, paracetamol).submit(SqlSalesApi())
        assert [s.id for s in list_sales(outlet.id)] == [receipt.result.sale_id]
        with pytest.raises(NotFound):
            get_sale(999)


class TestQuote:
    def test_load_cart_from_lines(self, outlet, paracetamol, three_pack):
        engine = load_cart(outlet.id, [
            {"product_id": paracetamol.id, "quantity": 1},
            {"product_id": paracetamol.id, "sale_type": "pack", "pack_variant_id": three_pack.id, "quantity": 3},
        ])
        assert engine.totals().total_cents == 85
        assert engine.totals().effective_units == 10

    def test_load_cart_over_stock(self, outlet, paracetamol, three_pack):
        with pytest.raises(InsufficientStock):
            load_cart(outlet.id, [
                {"product_id": paracetamol.id, "quantity": 2},
                {"product_id": paracetamol.id, "sale_type": "pack", "pack_variant_id": three_pack.id, "quantity": 3},
            ])

    def test_pack_line_needs_variant(self, outlet, paracetamol):
        with pytest.raises(ValidationError):
            load_cart(outlet.id, [{"product_id": paracetamol.id, "sale_type": "pack", "quantity": 1}])

    def test_quote_shape(self, outlet, paracetamol):
        result = quote(outlet.id, [{"product_id": paracetamol.id, "quantity": 2, "discount_cents": 1}])
        assert result["totals"]["total_cents"] == 18
        assert result["lines"][0]["line_id"] == str(paracetamol.id)

    def test_batch_and_expiry_carried(self, outlet, paracetamol):
        engine = load_cart(outlet.id, [
            {"product_id": paracetamol.id, "quantity": 1, "batch_number": "B12", "expiry_date": "2027-01-31"},
        ])
        line = engine.lines()[0]
        assert line.batch_number == "B12"
        assert line.expiry_date.isoformat() == "2027-01-31"

    @pytest.mark.parametrize(
        "field,value",
        [
            ("expiry_date", 20270131),
            ("expiry_date", "31/01/2027"),
            ("batch_number", 12),
        ],
    )
    def test_bad_batch_fields_rejected(self, outlet, paracetamol, field, value):
        with pytest.raises(ValidationError) as exc:
            load_cart(outlet.id, [
                {"product_id": paracetamol.id, "quantity": 1},
                {"product_id": paracetamol.id, "quantity": 1, field: value},
            ])
        assert exc.value.details["line"] == 1
        assert exc.value.details["field"] == field

    def test_mobile_number_must_be_text(self):
        with pytest.raises(ValidationError) as exc:
            parse_payment({"method": "mobile", "mobile_number": 23276123456})
        assert exc.value.details["field"] == "mobile_number"

    def test_parse_payment(self):
        payment = parse_payment({"method": "Cash", "cash_cents": 500})
        assert payment.method == "cash"
        assert payment.cash_cents == 500
        with pytest.raises(ValidationError):
            parse_payment({"method": "cash", "cash_cents": 1.5})
        with pytest.raises(ValidationError):
            parse_payment(None)
