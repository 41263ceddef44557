# Overview: Request and permission decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .permissions import has_permission
from .services import session_service


def _is_authenticated() -> bool:
    return getattr(g, "current_user", None) is not None


def require_auth(f):
    """
    Require a valid bearer token.

    Sets g.current_user to the authenticated User.
    Returns 401 when the header is missing or the token is invalid/expired.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Token de acceso requerido"}), 401

        token = auth_header.split(" ", 1)[1].strip()
        user = session_service.validate_session(token)
        if not user:
            return jsonify({"error": "Token inválido o expirado"}), 401

        g.current_user = user
        g.auth_token = token
        return f(*args, **kwargs)

    return decorated_function


def require_permission(permission_code: str):
    """Require a permission granted by the current user's role. Use after @require_auth."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Token de acceso requerido"}), 401

            if not has_permission(g.current_user.role, permission_code):
                return jsonify({
                    "error": "Permiso denegado",
                    "required_permission": permission_code,
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
