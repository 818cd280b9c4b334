# Overview: Greedy decomposition of a unit stock count into packs and loose units.

"""
Inventory decomposition (largest pack first)

Algorithm:
1. Drop inactive variants; sort the rest by pack_size descending
   (ties broken by variant id so the result is deterministic).
2. For each variant: pack_count = remaining // pack_size. Record it when > 0,
   subtract pack_count * pack_size, add pack_count * pack_price_cents.
3. Whatever remains is loose units, valued at the atomic unit price, or at
   the smallest active variant's unit_price_cents when no atomic price is known.

Conservation: sum(pack_count * pack_size) + loose_units == total_units.

Known approximation: with sizes that are not multiples of each other this is
not guaranteed to minimise pack count or value (e.g. 6 units over {4, 3}
gives 1x4 + 2 loose, not 2x3).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

from ..domain import PackVariant
from ..errors import ValidationError


@dataclass(frozen=True)
class PackCount:
    variant: PackVariant
    pack_count: int

    @property
    def units(self) -> int:
        return self.pack_count * self.variant.pack_size

    @property
    def value_cents(self) -> int:
        return self.pack_count * self.variant.pack_price_cents


@dataclass(frozen=True)
class Decomposition:
    total_units: int
    pack_breakdown: tuple[PackCount, ...]
    loose_units: int
    loose_unit_price_cents: int
    total_value_cents: int

    def to_dict(self) -> dict:
        return {
            "total_units": self.total_units,
            "pack_breakdown": [
                {
                    "pack_variant_id": pc.variant.id,
                    "name": pc.variant.display_name,
                    "pack_size": pc.variant.pack_size,
                    "pack_count": pc.pack_count,
                    "units": pc.units,
                    "value_cents": pc.value_cents,
                }
                for pc in self.pack_breakdown
            ],
            "loose_units": self.loose_units,
            "loose_unit_price_cents": self.loose_unit_price_cents,
            "total_value_cents": self.total_value_cents,
        }


def _active_largest_first(variants: Iterable[PackVariant]) -> list[PackVariant]:
    active = [v for v in variants if v.is_active]
    return sorted(active, key=lambda v: (-v.pack_size, v.id))


def _loose_price(active: Sequence[PackVariant], atomic_unit_price_cents: int | None) -> int:
    if atomic_unit_price_cents is not None:
        return atomic_unit_price_cents
    if active:
        smallest = min(active, key=lambda v: (v.pack_size, v.id))
        return smallest.unit_price_cents
    return 0


def decompose(
    total_units: int,
    variants: Iterable[PackVariant],
    atomic_unit_price_cents: int | None = None,
) -> Decomposition:
    """Split total_units into whole packs (largest first) plus loose units."""
    if total_units < 0:
        raise ValidationError("total_units cannot be negative", details={"total_units": total_units})

    active = _active_largest_first(variants)
    remaining = total_units
    breakdown: list[PackCount] = []
    total_value = 0

    for variant in active:
        pack_count = remaining // variant.pack_size
        if pack_count > 0:
            breakdown.append(PackCount(variant=variant, pack_count=pack_count))
            remaining -= pack_count * variant.pack_size
            total_value += pack_count * variant.pack_price_cents

    loose_price = _loose_price(active, atomic_unit_price_cents)
    total_value += remaining * loose_price

    return Decomposition(
        total_units=total_units,
        pack_breakdown=tuple(breakdown),
        loose_units=remaining,
        loose_unit_price_cents=loose_price,
        total_value_cents=total_value,
    )


def available_packs(total_units: int, pack_size: int) -> int:
    """Whole packs of one size that could be made from total_units."""
    return total_units // pack_size


def loose_units(total_units: int, pack_size: int) -> int:
    return total_units % pack_size


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


def format_inventory_display(total_units: int, variants: Sequence[PackVariant] | None) -> str:
    """
    Human-readable stock, e.g. "3 3-packs + 1 unit".

    No variants -> "12 units"; nothing at all -> "0 units".
    """
    if not variants:
        return f"{total_units} units"

    result = decompose(total_units, variants)
    parts = [_plural(pc.pack_count, pc.variant.display_name) for pc in result.pack_breakdown]
    if result.loose_units > 0:
        parts.append(_plural(result.loose_units, "unit"))

    return " + ".join(parts) if parts else "0 units"


def pack_display_text(variant: PackVariant, currency_symbol: str = "Le") -> str:
    return f"{variant.display_name} ({variant.pack_size} units) - {currency_symbol} {variant.pack_price_cents:,}"


def unit_display_text(unit_price_cents: int, currency_symbol: str = "Le") -> str:
    return f"Individual unit - {currency_symbol} {unit_price_cents:,}"
