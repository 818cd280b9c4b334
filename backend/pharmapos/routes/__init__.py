# Overview: Shared helpers for the JSON blueprints.

from __future__ import annotations

from flask import current_app, jsonify, request

from ..errors import PosError, ValidationError
from ..extensions import db


def error_response(exc: Exception):
    """
    Map an exception to a JSON error response.

    PosError subclasses carry their own status code and details; anything
    else is logged with its traceback and reported as a 500. Any pending
    changes in the session are rolled back either way.
    """
    db.session.rollback()
    if isinstance(exc, PosError):
        return jsonify(exc.to_dict()), exc.status_code
    current_app.logger.exception("Unhandled error: %s", exc)
    return jsonify({"error": "Internal server error", "details": {}}), 500


def json_body() -> dict:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def require_int(payload: dict, key: str) -> int:
    value = payload.get(key)
    if value is None:
        raise ValidationError(f"{key} is required", details={"field": key})
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{key} must be an integer", details={"field": key, "value": value})
    return value
