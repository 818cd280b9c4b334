# Overview: Cart-to-sale lifecycle for one checkout session.

"""
Checkout lifecycle

STATES:
1. EMPTY: no lines
2. BUILDING: lines being added/updated/removed
3. CHECKOUT_PENDING: totals computed, payment chosen
4. SUBMITTED: SaleRecord built, submission in flight
5. COMPLETED: collaborator confirmed; cart is cleared back to EMPTY
6. FAILED: submission rejected or unreachable; falls back to CHECKOUT_PENDING

RULES:
- The cart is cleared ONLY after a confirmed submission, never optimistically.
- A failed submission leaves the cart untouched and keeps the built record,
  so a retry re-sends the same correlation id (the collaborator dedupes).
- Any cart mutation after begin_checkout() drops the pending record.
- cancel() clears with no external call.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..domain import PaymentTender, SaleRecord, SubmitResult
from ..errors import ValidationError
from .cart_service import CartLineEngine, CartTotals
from .interfaces import SalesAPI
from .sale_builder import SaleBuilder


STATE_EMPTY = "EMPTY"
STATE_BUILDING = "BUILDING"
STATE_CHECKOUT_PENDING = "CHECKOUT_PENDING"
STATE_SUBMITTED = "SUBMITTED"
STATE_COMPLETED = "COMPLETED"
STATE_FAILED = "FAILED"


class CheckoutError(Exception):
    """Operation not allowed in the current checkout state."""


@dataclass(frozen=True)
class Receipt:
    record: SaleRecord
    result: SubmitResult

    def to_dict(self) -> dict:
        return {
            "sale_id": self.result.sale_id,
            "document_number": self.result.document_number,
            "timestamp": self.result.timestamp.isoformat(),
            "duplicate": self.result.duplicate,
            "sale": self.record.to_dict(),
        }


class CheckoutSession:
    def __init__(
        self,
        outlet_id: int,
        actor_id: int | None = None,
        engine: CartLineEngine | None = None,
        builder: SaleBuilder | None = None,
    ):
        self.outlet_id = outlet_id
        self.actor_id = actor_id
        self.engine = engine or CartLineEngine(outlet_id=outlet_id)
        self.builder = builder or SaleBuilder()
        self.payment: PaymentTender | None = None
        self.last_error: Exception | None = None
        self.history: list[str] = []
        self._pending: SaleRecord | None = None
        self._pending_version: int | None = None
        self._state = STATE_EMPTY
        self.history.append(self._state)

    @property
    def state(self) -> str:
        # Reflect cart edits made directly on the engine
        if self._state in (STATE_EMPTY, STATE_BUILDING):
            return STATE_EMPTY if self.engine.is_empty() else STATE_BUILDING
        if self._state == STATE_CHECKOUT_PENDING and self._pending_version is not None:
            if self.engine.version != self._pending_version:
                return STATE_EMPTY if self.engine.is_empty() else STATE_BUILDING
        return self._state

    @property
    def pending_record(self) -> SaleRecord | None:
        if self._pending is not None and self._pending_version == self.engine.version:
            return self._pending
        return None

    def _move(self, state: str) -> None:
        self._state = state
        self.history.append(state)

    def begin_checkout(self, payment: PaymentTender, correlation_id: str | None = None) -> CartTotals:
        """
        Freeze the payment choice and build the sale record.

        Validation errors leave the session where it was.
        """
        if self.state == STATE_SUBMITTED:
            raise CheckoutError("Submission already in flight")
        if self.engine.is_empty():
            raise ValidationError("Cannot check out an empty cart")

        record = self.pending_record
        if record is None or record.payment != payment:
            record = self.builder.build(
                self.engine.lines(),
                payment,
                outlet_id=self.outlet_id,
                actor_id=self.actor_id,
                correlation_id=correlation_id,
            )
        self.payment = payment
        self._pending = record
        self._pending_version = self.engine.version
        self._move(STATE_CHECKOUT_PENDING)
        return self.engine.totals()

    def submit(self, sales_api: SalesAPI) -> Receipt:
        if self.state != STATE_CHECKOUT_PENDING or self.pending_record is None:
            raise CheckoutError("Call begin_checkout() before submit()")

        record = self.pending_record
        self._move(STATE_SUBMITTED)
        try:
            result = self.builder.submit(record, sales_api)
        except Exception as exc:
            # NetworkError, ServerError, InsufficientStock, ValidationError or a bug;
            # either way the cart stays intact for a retry
            self.last_error = exc
            self._move(STATE_FAILED)
            self._move(STATE_CHECKOUT_PENDING)
            raise

        self.last_error = None
        self._move(STATE_COMPLETED)
        self.engine.clear()
        self._pending = None
        self._pending_version = None
        self.payment = None
        self._move(STATE_EMPTY)
        return Receipt(record=record, result=result)

    def cancel(self) -> None:
        if self._state == STATE_SUBMITTED:
            raise CheckoutError("Cannot cancel while a submission is in flight")
        self.engine.clear()
        self._pending = None
        self._pending_version = None
        self.payment = None
        self._move(STATE_EMPTY)
