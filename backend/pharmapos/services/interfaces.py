# Overview: Collaborator interfaces consumed by the pricing core.

"""
The core never talks to the database or the network directly. It is written
against these four shapes; services/catalog_service.py, inventory_service.py
and sales_service.py provide the SQLAlchemy-backed implementations, and tests
substitute in-memory fakes.

Failure contract for submit/adjust: raise NetworkError, ServerError,
ValidationError or InsufficientStock from pharmapos.errors. Nothing else.
"""

from __future__ import annotations

from typing import Protocol, Sequence

from ..domain import (
    AdjustResult,
    PackVariant,
    Product,
    SaleRecord,
    StockAdjustment,
    SubmitResult,
)


class CatalogLookup(Protocol):
    def get_product(self, product_id: int) -> Product:
        """Raise NotFound for unknown ids."""
        ...

    def get_pack_variants(self, product_id: int) -> Sequence[PackVariant]:
        """All variants for the product, active and inactive."""
        ...


class InventoryLookup(Protocol):
    def get_current_stock(self, product_id: int, outlet_id: int) -> int:
        ...


class SalesAPI(Protocol):
    def submit(self, record: SaleRecord) -> SubmitResult:
        ...


class InventoryAPI(Protocol):
    def adjust(self, adjustment: StockAdjustment) -> AdjustResult:
        ...
