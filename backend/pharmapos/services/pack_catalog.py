# Overview: Read-only projection of pack variants and atomic unit prices per product.

from __future__ import annotations

from ..domain import PackVariant, Product
from ..errors import NotFound
from .interfaces import CatalogLookup


class PackCatalog:
    """
    Active pack variants and the atomic unit price for each product.

    No ordering guarantee on variants_for(); the decomposer sorts internally.
    Unknown products raise NotFound. Callers that only need "which packs can
    I offer" use variants_or_empty(), which treats an unknown product as
    unit-sale only.
    """

    def __init__(self, catalog: CatalogLookup):
        self._catalog = catalog

    def product(self, product_id: int) -> Product:
        return self._catalog.get_product(product_id)

    def variants_for(self, product_id: int) -> list[PackVariant]:
        # get_product raises NotFound before we ask for variants
        self._catalog.get_product(product_id)
        return [v for v in self._catalog.get_pack_variants(product_id) if v.is_active]

    def variants_or_empty(self, product_id: int) -> list[PackVariant]:
        try:
            return self.variants_for(product_id)
        except NotFound:
            return []

    def variant(self, product_id: int, variant_id: int) -> PackVariant:
        """Look up one variant (active or not) belonging to the product."""
        for v in self._catalog.get_pack_variants(product_id):
            if v.id == variant_id:
                return v
        raise NotFound(
            f"Pack variant {variant_id} not found for product {product_id}",
            details={"product_id": product_id, "pack_variant_id": variant_id},
        )

    def atomic_unit_price(self, product_id: int) -> int:
        return self._catalog.get_product(product_id).unit_price_cents
