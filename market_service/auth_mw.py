from functools import wraps
from types import SimpleNamespace

import jwt
from flask import current_app, jsonify, request

from market_service.db import db
from market_service.models import User


def _decode(token: str) -> dict:
    return jwt.decode(
        token,
        current_app.config["JWT_SECRET"],
        algorithms=[current_app.config.get("JWT_ALGO", "HS256")],
    )


def require_user(*roles):
    """Resolve the bearer token to a user and pass it to the view as ``actor``.

    ``roles`` restricts the endpoint to buyers and/or artisans.
    """
    allowed = {r.value if hasattr(r, "value") else r for r in roles}

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            auth = request.headers.get("Authorization", "")
            if not auth.startswith("Bearer "):
                return jsonify({"error": "missing_token"}), 401
            token = auth.split(" ", 1)[1]
            try:
                payload = _decode(token)
            except jwt.PyJWTError:
                return jsonify({"error": "invalid_token"}), 401

            try:
                user_id = int(payload.get("sub"))
            except (TypeError, ValueError):
                return jsonify({"error": "invalid_token"}), 401
            u = db.session.get(User, user_id)
            if not u:
                return jsonify({"error": "user_not_found"}), 404
            if allowed and u.role.value not in allowed:
                return jsonify({"error": "forbidden_role"}), 403

            actor = SimpleNamespace(id=u.id, role=u.role.value, name=u.name)
            return func(*args, actor=actor, **kwargs)

        return wrapper

    return decorator
