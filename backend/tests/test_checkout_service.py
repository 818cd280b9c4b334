"""
Checkout lifecycle tests.

Verifies:
- State transitions from EMPTY through COMPLETED back to EMPTY
- A failed submission keeps the cart and the correlation id
- Cart edits after begin_checkout drop the pending record
"""

import pytest

from pharmapos.domain import PaymentTender
from pharmapos.errors import InsufficientStock, NetworkError, ServerError, ValidationError
from pharmapos.services.checkout_service import (
    STATE_BUILDING,
    STATE_CHECKOUT_PENDING,
    STATE_COMPLETED,
    STATE_EMPTY,
    STATE_FAILED,
    STATE_SUBMITTED,
    CheckoutError,
    CheckoutSession,
)


@pytest.fixture
def session(tablet):
    session = CheckoutSession(outlet_id=1, actor_id=7)
    session.engine.add_line(tablet, "unit", 2, current_stock=10)
    return session


class TestStates:
    def test_new_session_is_empty(self):
        assert CheckoutSession(outlet_id=1).state == STATE_EMPTY

    def test_adding_lines_is_building(self, session):
        assert session.state == STATE_BUILDING

    def test_begin_checkout(self, session):
        totals = session.begin_checkout(PaymentTender(method="cash", cash_cents=50))
        assert session.state == STATE_CHECKOUT_PENDING
        assert totals.total_cents == 20
        assert session.pending_record.change_cents == 30

    def test_successful_submit(self, session, fake_sales_api):
        session.begin_checkout(PaymentTender(method="card"))
        receipt = session.submit(fake_sales_api)

        assert receipt.result.document_number == "S-000001"
        assert receipt.record.total_cents == 20
        assert session.state == STATE_EMPTY
        assert session.engine.is_empty()
        assert session.history[-3:] == [STATE_SUBMITTED, STATE_COMPLETED, STATE_EMPTY]
        assert receipt.to_dict()["sale_id"] == 1

    def test_submit_without_begin(self, session, fake_sales_api):
        with pytest.raises(CheckoutError):
            session.submit(fake_sales_api)

    def test_begin_on_empty_cart(self):
        with pytest.raises(ValidationError):
            CheckoutSession(outlet_id=1).begin_checkout(PaymentTender(method="card"))

    def test_invalid_payment_keeps_state(self, session):
        with pytest.raises(ValidationError):
            session.begin_checkout(PaymentTender(method="cash", cash_cents=5))
        assert session.state == STATE_BUILDING

    def test_cancel_clears_without_submitting(self, session, fake_sales_api):
        session.begin_checkout(PaymentTender(method="card"))
        session.cancel()
        assert session.state == STATE_EMPTY
        assert session.engine.is_empty()
        assert fake_sales_api.submitted == []


class TestFailures:
    @pytest.mark.parametrize(
        "error",
        [NetworkError("offline"), ServerError("boom"), InsufficientStock(1, 2, 1)],
    )
    def test_failure_keeps_cart(self, session, sales_api_factory, error):
        api = sales_api_factory(errors=[error])
        session.begin_checkout(PaymentTender(method="card"))

        with pytest.raises(type(error)):
            session.submit(api)

        assert session.state == STATE_CHECKOUT_PENDING
        assert STATE_FAILED in session.history
        assert len(session.engine) == 1
        assert session.last_error is error

    def test_retry_reuses_correlation_id(self, session, sales_api_factory):
        api = sales_api_factory(errors=[NetworkError("timeout")])
        session.begin_checkout(PaymentTender(method="card"))

        with pytest.raises(NetworkError):
            session.submit(api)
        receipt = session.submit(api)

        assert len(api.submitted) == 2
        assert api.submitted[0].correlation_id == api.submitted[1].correlation_id
        assert receipt.result.sale_id == 1

    def test_begin_again_with_same_payment_keeps_record(self, session):
        payment = PaymentTender(method="card")
        session.begin_checkout(payment)
        first = session.pending_record
        session.begin_checkout(payment)
        assert session.pending_record is first

    def test_cart_edit_drops_pending_record(self, session, tablet):
        session.begin_checkout(PaymentTender(method="card"))
        first = session.pending_record

        session.engine.add_line(tablet, "unit", 1, current_stock=10)

        assert session.state == STATE_BUILDING
        assert session.pending_record is None
        session.begin_checkout(PaymentTender(method="card"))
        assert session.pending_record.correlation_id != first.correlation_id
        assert session.pending_record.total_cents == 30
