# Overview: Error taxonomy shared by the pricing core, the collaborators and the routes.

"""
Every error carries a human-readable message plus a details dict that
routes echo back to the client unchanged.

HTTP mapping (see routes/__init__.error_response):
- ValidationError   -> 400
- NotFound          -> 404
- InsufficientStock -> 409
- ConflictError     -> 409
- ServerError       -> 502
- NetworkError      -> 503
"""

from __future__ import annotations


class PosError(Exception):
    """Base class for all point-of-sale errors."""

    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "details": self.details}


class ValidationError(PosError, ValueError):
    """Local input problem; caller corrects input and retries."""

    status_code = 400


class MissingReason(ValidationError):
    """Stock adjustment submitted without a usable reason."""

    def __init__(self, message: str = "A reason is required for every stock adjustment"):
        super().__init__(message, details={"field": "reason"})


class InsufficientStock(PosError):
    """Requested effective units exceed the known stock for a product."""

    status_code = 409

    def __init__(self, product_id: int, requested: int, available: int):
        super().__init__(
            f"Insufficient stock for product {product_id}: requested {requested}, available {available}",
            details={
                "product_id": product_id,
                "requested_units": requested,
                "available_units": available,
            },
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


class NotFound(PosError, LookupError):
    """Unknown product, pack variant, outlet or cart line."""

    status_code = 404


class NetworkError(PosError):
    """Collaborator could not be reached."""

    status_code = 503


class ServerError(PosError):
    """Collaborator failed while processing the request."""

    status_code = 502


class ConflictError(PosError):
    """Business rule conflict (e.g., duplicate SKU)."""

    status_code = 409
