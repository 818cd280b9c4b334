# Overview: Request and permission decorators for API routes.

from functools import wraps
from flask import current_app, g, jsonify, request

from .permissions import role_has_permission


def require_permission(permission_code: str):
    """
    Require the calling actor's role to grant permission_code.

    Sets the following Flask g attributes:
    - g.actor_id: integer id from the X-Actor-Id header
    - g.actor_role: lower-cased role from the X-Actor-Role header

    Returns 401 if either header is missing or the id is not an integer,
    403 if the role lacks the permission.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            raw_id = (request.headers.get("X-Actor-Id") or "").strip()
            role = (request.headers.get("X-Actor-Role") or "").strip().lower()

            if not raw_id or not role:
                return jsonify({"error": "Authentication required", "details": {}}), 401
            if not raw_id.isdigit():
                return jsonify({"error": "X-Actor-Id must be an integer", "details": {}}), 401

            if not role_has_permission(role, permission_code):
                current_app.logger.warning(
                    "Permission denied: actor=%s role=%s permission=%s path=%s",
                    raw_id, role, permission_code, request.path,
                )
                return jsonify({
                    "error": "Permission denied",
                    "details": {"required_permission": permission_code},
                }), 403

            g.actor_id = int(raw_id)
            g.actor_role = role
            return f(*args, **kwargs)

        return decorated_function
    return decorator
