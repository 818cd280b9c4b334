# Overview: Payload validation for catalog and inventory writes, driven by SQLAlchemy column metadata.

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Date, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError
from .time_utils import parse_iso_date


# Upper bound for any single price, in minor units
MAX_PRICE_CENTS = 999_999_999

_BARCODE_RE = re.compile(r"^[0-9]{8,13}$")


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = frozenset()  # type: ignore[assignment]


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict: money and quantities never arrive as floats
    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped or not re.fullmatch(r"-?\d+", stripped):
                raise ValidationError(f"{col.key} must be a plain integer")
            return int(stripped)
        if isinstance(value, float):
            raise ValidationError(f"{col.key} must be an integer, not a decimal")
        raise ValidationError(f"{col.key} must be an integer")

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in ("true", "false", "1", "0"):
            return value.strip().lower() in ("true", "1")
        raise ValidationError(f"{col.key} must be a boolean")

    if isinstance(coltype, Date):
        if isinstance(value, str):
            try:
                return parse_iso_date(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 date")
        raise ValidationError(f"{col.key} must be an ISO-8601 date")

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if f not in payload)
        if missing:
            raise ValidationError(
                f"Missing required fields: {', '.join(missing)}",
                details={"missing": missing},
            )

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}", details={"field": k})
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}", details={"field": k})

    patch: dict = {}
    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null", details={"field": k})
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable and val == "":
            raise ValidationError(f"{k} cannot be blank", details={"field": k})

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}", details={"field": k})

        patch[k] = val

    return patch


def _check_price(patch: dict, key: str) -> None:
    if key in patch and patch[key] is not None:
        price = patch[key]
        if price < 0:
            raise ValidationError(f"{key} must be >= 0", details={"field": key})
        if price > MAX_PRICE_CENTS:
            raise ValidationError(f"{key} cannot exceed {MAX_PRICE_CENTS}", details={"field": key})


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    _check_price(patch, "unit_price_cents")
    _check_price(patch, "cost_price_cents")

    if patch.get("unit_price_cents") == 0:
        raise ValidationError("unit_price_cents must be a positive amount", details={"field": "unit_price_cents"})

    if "reorder_level" in patch and patch["reorder_level"] is not None and patch["reorder_level"] < 0:
        raise ValidationError("reorder_level must be >= 0", details={"field": "reorder_level"})

    barcode = patch.get("barcode")
    if barcode and not _BARCODE_RE.match(barcode):
        raise ValidationError("Barcode must be 8-13 digits", details={"field": "barcode"})


def enforce_rules_pack_variant(patch: dict) -> None:
    if "pack_size" in patch and (patch["pack_size"] is None or patch["pack_size"] < 1):
        raise ValidationError("pack_size must be >= 1", details={"field": "pack_size"})
    _check_price(patch, "pack_price_cents")
    _check_price(patch, "unit_price_cents")


def enforce_rules_inventory_record(patch: dict) -> None:
    for key in ("current_stock", "minimum_stock", "maximum_stock"):
        if key in patch and patch[key] is not None and patch[key] < 0:
            raise ValidationError(f"{key} must be >= 0", details={"field": key})

    minimum = patch.get("minimum_stock")
    maximum = patch.get("maximum_stock")
    if minimum is not None and maximum and maximum < minimum:
        raise ValidationError("maximum_stock must be >= minimum_stock", details={"field": "maximum_stock"})
